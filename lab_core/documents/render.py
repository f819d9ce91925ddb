# lab_core/documents/render.py
"""
ReportLab rendering of the document mappings in lab_core.documents.fields.
Both renderers return the PDF as bytes.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any, Dict

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas


W, H = A4
MARGIN = 45
CONTENT_W = W - 2 * MARGIN

GREEN = HexColor("#047857")
GREEN_PALE = HexColor("#F0FDF4")
SLATE = HexColor("#64748B")
CHARCOAL = HexColor("#2D3748")

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


class PdfPage:
    """Top-down text cursor over a ReportLab canvas."""

    def __init__(self, title: str, author: str = ""):
        self.buffer = BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=A4)
        self.c.setTitle(title)
        if author:
            self.c.setAuthor(author)
        self.y = H - MARGIN

    # --- layout ---------------------------------------------------
    def ensure_space(self, needed: float) -> None:
        if self.y - needed < MARGIN + 30:
            self.c.showPage()
            self.y = H - MARGIN

    def gap(self, height: float = 8) -> None:
        self.y -= height

    def text(self, value: str, *, size: float = 10, bold: bool = False, x: float = MARGIN, color=CHARCOAL, leading: float = 14) -> None:
        for line in str(value or "").splitlines() or [""]:
            self.ensure_space(leading)
            self.c.setFillColor(color)
            self.c.setFont(FONT_BOLD if bold else FONT, size)
            self.c.drawString(x, self.y, line)
            self.y -= leading

    def centered(self, value: str, *, size: float = 12, bold: bool = True) -> None:
        self.ensure_space(size + 6)
        self.c.setFillColor(CHARCOAL)
        self.c.setFont(FONT_BOLD if bold else FONT, size)
        self.c.drawCentredString(W / 2, self.y, value)
        self.y -= size + 6

    def row(self, label: str, value: str, *, label_w: float = 130) -> None:
        self.ensure_space(14)
        self.c.setFillColor(CHARCOAL)
        self.c.setFont(FONT, 10)
        self.c.drawString(MARGIN, self.y, label)
        self.c.drawString(MARGIN + label_w, self.y, ":")
        self.c.drawString(MARGIN + label_w + 10, self.y, str(value or "-"))
        self.y -= 14

    def table(self, headers, rows, widths) -> None:
        self.ensure_space(18)
        self.c.setFillColor(GREEN_PALE)
        self.c.rect(MARGIN, self.y - 4, CONTENT_W, 16, stroke=0, fill=1)
        self._cells(headers, widths, bold=True)
        for r in rows:
            self._cells(r, widths)

    def _cells(self, values, widths, bold: bool = False) -> None:
        self.ensure_space(16)
        x = MARGIN + 4
        self.c.setFillColor(CHARCOAL)
        self.c.setFont(FONT_BOLD if bold else FONT, 9)
        for value, width in zip(values, widths):
            self.c.drawString(x, self.y, str(value))
            x += width
        self.y -= 16

    def rule(self) -> None:
        self.c.setStrokeColor(GREEN)
        self.c.setLineWidth(1.5)
        self.c.line(MARGIN, self.y, W - MARGIN, self.y)
        self.y -= 14

    def footer(self, value: str) -> None:
        self.c.setFillColor(SLATE)
        self.c.setFont(FONT, 8)
        self.c.drawCentredString(W / 2, MARGIN - 15, value)

    def finish(self) -> bytes:
        self.c.showPage()
        self.c.save()
        return self.buffer.getvalue()

    # --- shared blocks --------------------------------------------
    def letterhead(self, company: Dict[str, str], right_lines=()) -> None:
        top = self.y
        self.text(company["company_name"], size=16, bold=True, color=GREEN, leading=18)
        if company.get("tagline"):
            self.text(company["tagline"], size=9, color=SLATE, leading=12)
        if company.get("address"):
            self.text(company["address"], size=9, color=SLATE, leading=12)
        if company.get("phone"):
            self.text(f"Telp: {company['phone']}", size=9, color=SLATE, leading=12)
        if company.get("email"):
            self.text(f"Email: {company['email']}", size=9, color=SLATE, leading=12)

        y = top
        self.c.setFont(FONT, 9)
        self.c.setFillColor(CHARCOAL)
        for line in right_lines:
            self.c.drawRightString(W - MARGIN, y, line)
            y -= 12

        self.gap(4)
        self.rule()

    def signatures(self, blocks) -> None:
        self.ensure_space(90)
        self.gap(20)
        col_w = CONTENT_W / max(len(blocks), 1)
        top = self.y
        for i, block in enumerate(blocks):
            x = MARGIN + i * col_w + col_w / 2
            y = top
            self.c.setFont(FONT, 10)
            self.c.setFillColor(CHARCOAL)
            for line in block["title"].splitlines():
                self.c.drawCentredString(x, y, line)
                y -= 13
            y -= 45
            self.c.setFont(FONT_BOLD, 10)
            self.c.drawCentredString(x, y, block["name"])
            if block.get("role"):
                self.c.setFont(FONT, 9)
                self.c.drawCentredString(x, y - 12, block["role"])
        self.y = top - 90


def render_travel_order_pdf(doc: Dict[str, Any]) -> bytes:
    page = PdfPage(title=f"Surat Tugas {doc['document_number']}", author=doc["company"]["company_name"])

    page.letterhead(
        doc["company"],
        right_lines=(f"Nomor: {doc['document_number']}", f"Tanggal: {doc['issued_on']}"),
    )
    page.centered(doc["title"], size=13)
    page.gap(6)

    page.text("I. DATA PETUGAS", bold=True, color=GREEN)
    officer = doc["officer"]
    page.row("Nama", officer["name"])
    page.row("Email", officer["email"])
    page.row("Jabatan", officer["position"])
    page.gap()

    page.text("II. PELAKSANAAN TUGAS", bold=True, color=GREEN)
    trip = doc["trip"]
    page.row("Tanggal Berangkat", trip["departure_date"])
    page.row("Tanggal Kembali", trip["return_date"])
    page.row("Lokasi Tujuan", trip["destination"])
    page.row("Dasar Tugas", trip["basis"])
    page.row("Customer", trip["customer"])
    page.row("Maksud & Tujuan", trip["purpose"])
    page.gap()

    section = 3
    if doc["budget_rows"]:
        page.text("III. RINCIAN BIAYA", bold=True, color=GREEN)
        page.table(
            ("Jenis Biaya", "Keterangan", "Jumlah"),
            [(r["label"], r["description"], r["amount"]) for r in doc["budget_rows"]],
            (150, 200, 150),
        )
        page.gap()
        section += 1

    if doc.get("notes"):
        numeral = {3: "III", 4: "IV"}[section]
        page.text(f"{numeral}. CATATAN TAMBAHAN", bold=True, color=GREEN)
        page.text(doc["notes"], size=10)

    page.signatures(doc["signatures"])
    page.footer(doc["footer"])
    return page.finish()


def render_quotation_pdf(doc: Dict[str, Any]) -> bytes:
    page = PdfPage(title=f"Penawaran {doc['quotation_number']}", author=doc["company"]["company_name"])

    page.letterhead(doc["company"])
    page.centered(doc["title"], size=13)
    page.gap(6)

    page.text("Kepada Yth:", bold=True)
    page.text(doc["client_name"])
    if doc.get("company_name"):
        page.text(doc["company_name"])
    page.gap(4)
    page.row("No. Penawaran", doc["quotation_number"], label_w=90)
    page.row("Tanggal", doc["date"], label_w=90)
    page.gap()

    page.table(
        ("No", "Deskripsi Layanan", "Qty", "Harga Satuan", "Total"),
        [(r["no"], r["name"], r["qty"], r["price"], r["total"]) for r in doc["items"]],
        (30, 220, 40, 110, 110),
    )
    page.gap()

    for line in doc["summary"]:
        page.ensure_space(14)
        bold = line["label"] == "TOTAL"
        page.c.setFont(FONT_BOLD if bold else FONT, 10)
        page.c.setFillColor(CHARCOAL)
        page.c.drawString(W - MARGIN - 220, page.y, line["label"])
        page.c.drawRightString(W - MARGIN, page.y, line["amount"])
        page.y -= 14

    page.signatures(doc["signatures"])
    return page.finish()
