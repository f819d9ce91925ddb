# lab_core/management/commands/seed_lab.py

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from lab_core.models import COMPANY_DEFAULTS, CompanyProfile, Profile, Service, ServiceCategory

User = get_user_model()

CATALOG = {
    "Air": [
        ("Air Limbah", "sampel", Decimal("750000"), ["pH", "BOD", "COD", "TSS", "Minyak & Lemak"]),
        ("Air Bersih", "sampel", Decimal("500000"), ["pH", "Kekeruhan", "TDS", "Besi", "Mangan"]),
    ],
    "Udara": [
        ("Udara Ambien", "titik", Decimal("1250000"), ["SO2", "NO2", "CO", "TSP", "PM10"]),
        ("Kebisingan", "titik", Decimal("350000"), ["Leq"]),
    ],
}

DEMO_USERS = (
    ("admin", "admin@wahfalab.com", "WahfaLab Administrator", Profile.Role.ADMIN),
    ("operator", "operator@wahfalab.com", "Operator Lab", Profile.Role.OPERATOR),
    ("petugas", "petugas@wahfalab.com", "Petugas Lapangan", Profile.Role.FIELD_OFFICER),
    ("klien", "klien@example.com", "Klien Demo", Profile.Role.CLIENT),
)


class Command(BaseCommand):
    help = "Seed the company profile, a starter service catalog and optional demo users"

    def add_arguments(self, parser):
        parser.add_argument("--demo-users", action="store_true", help="Create one user per role")
        parser.add_argument("--password", default="wahfalab123", help="Password for demo users")

    @transaction.atomic
    def handle(self, *args, **options):
        if not CompanyProfile.objects.exists():
            CompanyProfile.objects.create(**COMPANY_DEFAULTS)
            self.stdout.write("[OK] company profile")

        for category_name, services in CATALOG.items():
            category, _ = ServiceCategory.objects.get_or_create(name=category_name)
            for name, unit, price, parameters in services:
                _, created = Service.objects.get_or_create(
                    category=category,
                    name=name,
                    defaults={"unit": unit, "price": price, "parameters": parameters},
                )
                if created:
                    self.stdout.write(f"[OK] service {name}")

        if options["demo_users"]:
            for username, email, full_name, role in DEMO_USERS:
                user, created = User.objects.get_or_create(username=username, defaults={"email": email})
                if created:
                    user.set_password(options["password"])
                    user.save()
                Profile.objects.update_or_create(user=user, defaults={"full_name": full_name, "role": role})
                self.stdout.write(f"[OK] user {username} ({role})")

        self.stdout.write(self.style.SUCCESS("Seeding complete."))
