# lab_core/tests/test_numbering.py

from datetime import date

import pytest

from lab_core.models import DocumentSequence, TravelOrder
from lab_core.services.numbering import (
    format_document_number,
    next_document_number,
    next_number,
    parse_sequence,
)


def test_format_and_parse():
    assert format_document_number("TO", 2025, 3, 7) == "TO/2025/03/0007"
    assert parse_sequence("TO/2025/03/0007") == 7
    assert parse_sequence("INV-2024-12345") == 12345
    assert parse_sequence(None) == 0
    assert parse_sequence("draft") == 0


@pytest.mark.django_db
def test_numbers_strictly_increase_within_a_month():
    today = date(2025, 3, 7)

    issued = [next_document_number("travel_order", today=today) for _ in range(5)]

    assert issued == [f"TO/2025/03/{n:04d}" for n in range(1, 6)]
    assert len(set(issued)) == len(issued)
    assert DocumentSequence.objects.get(prefix="TO", year=2025, month=3).last_number == 5


@pytest.mark.django_db
def test_each_month_and_prefix_has_its_own_counter():
    assert next_number("TO", today=date(2025, 3, 31)) == "TO/2025/03/0001"
    assert next_number("TO", today=date(2025, 4, 1)) == "TO/2025/04/0001"
    assert next_number("JO", today=date(2025, 4, 1)) == "JO/2025/04/0001"
    assert next_number("TO", today=date(2025, 4, 2)) == "TO/2025/04/0002"


@pytest.mark.django_db
def test_new_counter_continues_after_existing_numbers(assignment_factory):
    TravelOrder.objects.create(
        assignment=assignment_factory(),
        document_number="TO/2025/03/0041",
        departure_date=date(2025, 3, 10),
        return_date=date(2025, 3, 11),
        destination="Bekasi",
        purpose="Sampling air limbah",
    )

    assert next_document_number("travel_order", today=date(2025, 3, 12)) == "TO/2025/03/0042"


@pytest.mark.django_db
def test_counter_skips_numbers_entered_after_it_started(assignment_factory):
    today = date(2025, 3, 12)
    assert next_document_number("travel_order", today=today) == "TO/2025/03/0001"

    TravelOrder.objects.create(
        assignment=assignment_factory(),
        document_number="TO/2025/03/0050",
        departure_date=date(2025, 3, 13),
        return_date=date(2025, 3, 14),
        destination="Karawang",
        purpose="Sampling udara ambien",
    )

    assert next_document_number("travel_order", today=today) == "TO/2025/03/0051"
    assert DocumentSequence.objects.get(prefix="TO", year=2025, month=3).last_number == 51


@pytest.mark.django_db
def test_configured_prefix_is_used(settings):
    settings.DOCUMENT_NUMBER_PREFIXES = {"quotation": "QUO"}
    assert next_document_number("quotation", today=date(2025, 1, 5)) == "QUO/2025/01/0001"


def test_unknown_kind_is_rejected():
    with pytest.raises(ValueError):
        next_document_number("invoice")
