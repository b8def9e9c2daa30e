"""Utilities for rendering purchase order and budgetary offer PDFs.

Rendering is a pure function of the snapshot: the canvas runs in
reportlab's ``invariant`` mode, which pins the creation date and document
ID, so identical snapshots yield byte-identical PDFs.
"""

from __future__ import annotations

from io import BytesIO
from typing import Sequence

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from procurement.backend.src.services.document_snapshots import (
    ApprovalStamp,
    BudgetaryOfferSnapshot,
    PartySnapshot,
    PurchaseOrderSnapshot,
)
from procurement.backend.src.services.formatting import (
    amount_in_words,
    format_currency,
    format_date,
    format_indian_number,
)

PRIMARY_COLOR = HexColor("#0F172A")
ACCENT_COLOR = HexColor("#6366F1")
MUTED_TEXT = HexColor("#64748B")
LIGHT_PANEL = HexColor("#F8FAFC")
TABLE_HEADER_COLOR = HexColor("#EEF2FF")
BORDER_COLOR = HexColor("#E2E8F0")
APPROVED_COLOR = HexColor("#15803D")
REJECTED_COLOR = HexColor("#B91C1C")

MARGIN = 40
HEADER_HEIGHT = 96
ROW_HEIGHT = 20
CELL_LINE_HEIGHT = 11
PANEL_LINE_HEIGHT = 13
NUMERIC_CELL_WIDTH = 50
BOTTOM_LIMIT = 90


class _DocumentCanvas:
    """Small layout helper that tracks the cursor and handles page breaks."""

    def __init__(self, title: str, number: str, issued_on: str, company_name: str) -> None:
        self.buffer = BytesIO()
        self.pdf = canvas.Canvas(self.buffer, pagesize=A4, invariant=1)
        self.pdf.setTitle(f"{title} {number}")
        self.pdf.setAuthor(company_name)
        self.width, self.height = A4
        self.title = title
        self.number = number
        self.issued_on = issued_on
        self.company_name = company_name
        self.y = self._draw_brand_header()

    def _draw_brand_header(self) -> float:
        pdf = self.pdf
        badge_width = 150
        badge_height = 26
        badge_x = self.width - MARGIN - badge_width
        badge_y = self.height - HEADER_HEIGHT + 40

        pdf.setFillColor(PRIMARY_COLOR)
        pdf.rect(0, self.height - HEADER_HEIGHT, self.width, HEADER_HEIGHT, fill=1, stroke=0)

        pdf.setFont("Helvetica-Bold", 17)
        pdf.setFillColor(HexColor("#FFFFFF"))
        pdf.drawString(MARGIN, self.height - 48, self.company_name)
        pdf.setFont("Helvetica", 9)
        pdf.setFillColor(HexColor("#CBD5F5"))
        pdf.drawString(MARGIN, self.height - 66, f"{self.title} No. {self.number}")

        pdf.setFillColor(ACCENT_COLOR)
        pdf.roundRect(badge_x, badge_y, badge_width, badge_height, 8, fill=1, stroke=0)
        pdf.setFont("Helvetica-Bold", 11)
        pdf.setFillColor(HexColor("#FFFFFF"))
        pdf.drawCentredString(badge_x + badge_width / 2, badge_y + 9, self.title.upper())
        pdf.setFont("Helvetica", 9)
        pdf.setFillColor(HexColor("#E2E8F0"))
        pdf.drawRightString(self.width - MARGIN, self.height - 80, f"Date: {self.issued_on}")

        pdf.setFillColor(PRIMARY_COLOR)
        return self.height - HEADER_HEIGHT - 28

    def ensure_space(self, needed: float) -> None:
        if self.y - needed < BOTTOM_LIMIT:
            self.pdf.showPage()
            self.y = self._draw_brand_header()

    def label_block(self, label: str, text: str, *, width: float | None = None) -> None:
        """Draw a bold label followed by wrapped body text."""

        usable = width or (self.width - 2 * MARGIN)
        lines = simpleSplit(text or "-", "Helvetica", 9.5, usable)
        self.ensure_space(18 + 12 * len(lines))
        self.pdf.setFont("Helvetica-Bold", 10)
        self.pdf.setFillColor(PRIMARY_COLOR)
        self.pdf.drawString(MARGIN, self.y, label)
        self.y -= 14
        self.pdf.setFont("Helvetica", 9.5)
        self.pdf.setFillColor(MUTED_TEXT)
        for line in lines:
            self.ensure_space(12)
            self.pdf.drawString(MARGIN, self.y, line)
            self.y -= 12
        self.y -= 8
        self.pdf.setFillColor(PRIMARY_COLOR)

    def info_panel(self, left: Sequence[str], right: Sequence[str]) -> None:
        """Two-column summary card used for parties and references."""

        column_width = self.width / 2 - MARGIN - 24
        columns = []
        for column_x, entries in ((MARGIN + 16, left), (self.width / 2 + 8, right)):
            lines = []
            for index, entry in enumerate(entries):
                font = ("Helvetica-Bold", 10) if index == 0 else ("Helvetica", 9)
                lines.extend((font, part) for part in simpleSplit(entry or "-", font[0], font[1], column_width))
            columns.append((column_x, lines))

        rows = max(len(lines) for _, lines in columns)
        card_height = 22 + PANEL_LINE_HEIGHT * rows
        self.ensure_space(card_height + 16)
        bottom = self.y - card_height
        self.pdf.setFillColor(LIGHT_PANEL)
        self.pdf.roundRect(MARGIN, bottom, self.width - 2 * MARGIN, card_height, 10, fill=1, stroke=0)

        for column_x, lines in columns:
            cursor = self.y - 18
            for (font_name, font_size), text in lines:
                self.pdf.setFont(font_name, font_size)
                self.pdf.setFillColor(PRIMARY_COLOR if font_name == "Helvetica-Bold" else MUTED_TEXT)
                self.pdf.drawString(column_x, cursor, text)
                cursor -= PANEL_LINE_HEIGHT

        self.pdf.setFillColor(PRIMARY_COLOR)
        self.y = bottom - 20

    def _cell_widths(self, columns: Sequence[float], numeric: set[int]) -> list[float]:
        """Room available to each left-aligned column before the next one starts."""

        widths = []
        for idx, start in enumerate(columns):
            if idx + 1 < len(columns):
                limit = columns[idx + 1] - (NUMERIC_CELL_WIDTH if idx + 1 in numeric else 0)
            else:
                limit = self.width - MARGIN
            widths.append(max(limit - start - 6, 12))
        return widths

    def table(
        self,
        headers: Sequence[str],
        columns: Sequence[float],
        numeric: set[int],
        rows: Sequence[Sequence[str]],
    ) -> None:
        def draw_header() -> None:
            self.pdf.setFillColor(TABLE_HEADER_COLOR)
            self.pdf.roundRect(MARGIN, self.y - 22, self.width - 2 * MARGIN, 22, 6, fill=1, stroke=0)
            self.pdf.setFillColor(PRIMARY_COLOR)
            self.pdf.setFont("Helvetica-Bold", 9)
            for idx, header in enumerate(headers):
                if idx in numeric:
                    self.pdf.drawRightString(columns[idx], self.y - 15, header)
                else:
                    self.pdf.drawString(columns[idx], self.y - 15, header)
            self.y -= 22 + 14

        widths = self._cell_widths(columns, numeric)
        self.ensure_space(60)
        draw_header()
        for row_index, row in enumerate(rows):
            cells = [
                [value] if idx in numeric else simpleSplit(value or "-", "Helvetica", 9, widths[idx])
                for idx, value in enumerate(row)
            ]
            line_count = max(len(lines) for lines in cells)
            row_height = ROW_HEIGHT + CELL_LINE_HEIGHT * (line_count - 1)
            if self.y - row_height < BOTTOM_LIMIT:
                self.pdf.showPage()
                self.y = self._draw_brand_header()
                draw_header()
            if row_index % 2 == 0:
                self.pdf.setFillColor(LIGHT_PANEL)
                self.pdf.rect(MARGIN, self.y - row_height + 14, self.width - 2 * MARGIN, row_height - 4, fill=1, stroke=0)
            self.pdf.setFillColor(PRIMARY_COLOR)
            self.pdf.setFont("Helvetica", 9)
            for idx, lines in enumerate(cells):
                for offset, text in enumerate(lines):
                    line_y = self.y - offset * CELL_LINE_HEIGHT
                    if idx in numeric:
                        self.pdf.drawRightString(columns[idx], line_y, text)
                    else:
                        self.pdf.drawString(columns[idx], line_y, text)
            self.y -= row_height
        self.pdf.setStrokeColor(BORDER_COLOR)
        self.pdf.line(MARGIN, self.y + 8, self.width - MARGIN, self.y + 8)
        self.y -= 6

    def totals(self, rows: Sequence[tuple[str, str]], grand_total: tuple[str, str]) -> None:
        self.ensure_space(20 * (len(rows) + 1) + 10)
        right = self.width - MARGIN - 10
        label_x = right - 150
        for label, value in rows:
            self.pdf.setFont("Helvetica", 9.5)
            self.pdf.setFillColor(MUTED_TEXT)
            self.pdf.drawRightString(label_x, self.y, label)
            self.pdf.setFillColor(PRIMARY_COLOR)
            self.pdf.drawRightString(right, self.y, value)
            self.y -= 16
        self.pdf.setFont("Helvetica-Bold", 11)
        self.pdf.setFillColor(MUTED_TEXT)
        self.pdf.drawRightString(label_x, self.y - 4, grand_total[0])
        self.pdf.setFont("Helvetica-Bold", 13)
        self.pdf.setFillColor(ACCENT_COLOR)
        self.pdf.drawRightString(right, self.y - 4, grand_total[1])
        self.pdf.setFillColor(PRIMARY_COLOR)
        self.y -= 28

    def signature_block(self, created_by: PartySnapshot, stamp: ApprovalStamp) -> None:
        self.ensure_space(70)
        self.pdf.setStrokeColor(BORDER_COLOR)
        self.pdf.line(MARGIN, self.y, self.width - MARGIN, self.y)
        self.y -= 18

        self.pdf.setFont("Helvetica-Bold", 10)
        self.pdf.setFillColor(PRIMARY_COLOR)
        self.pdf.drawString(MARGIN, self.y, "Prepared by")
        self.pdf.drawString(self.width / 2, self.y, "Approval")
        self.y -= 14

        self.pdf.setFont("Helvetica", 9)
        self.pdf.setFillColor(MUTED_TEXT)
        self.pdf.drawString(MARGIN, self.y, f"{created_by.name} ({created_by.department})")
        status_color = {
            "APPROVED": APPROVED_COLOR,
            "REJECTED": REJECTED_COLOR,
        }.get(stamp.status, MUTED_TEXT)
        self.pdf.setFillColor(status_color)
        self.pdf.drawString(self.width / 2, self.y, stamp.status.replace("_", " "))
        self.y -= 12

        self.pdf.setFillColor(MUTED_TEXT)
        self.pdf.drawString(MARGIN, self.y, created_by.email)
        if stamp.approver_name:
            self.pdf.drawString(self.width / 2, self.y, f"By: {stamp.approver_name}")
            self.y -= 12
        if stamp.approval_date:
            self.pdf.drawString(self.width / 2, self.y, f"On: {format_date(stamp.approval_date)}")
            self.y -= 12
        if stamp.comments:
            for line in simpleSplit(f"Remarks: {stamp.comments}", "Helvetica", 9, self.width / 2 - MARGIN):
                self.pdf.drawString(self.width / 2, self.y, line)
                self.y -= 12

    def finish(self) -> bytes:
        self.pdf.save()
        self.buffer.seek(0)
        return self.buffer.read()


def render_purchase_order_pdf(snapshot: PurchaseOrderSnapshot, *, company_name: str) -> bytes:
    """Render a purchase order snapshot to PDF bytes."""

    doc = _DocumentCanvas(
        "Purchase Order",
        snapshot.po_number,
        format_date(snapshot.order_date),
        company_name,
    )
    vendor = snapshot.vendor
    doc.info_panel(
        ["Vendor", vendor.name, vendor.address, f"GSTIN: {vendor.gstin or '-'}", vendor.email, vendor.mobile],
        [
            "References",
            f"PO No.: {snapshot.po_number}",
            f"LOA No.: {snapshot.loa_number or '-'}",
            f"Date: {format_date(snapshot.order_date)}",
        ],
    )
    doc.label_block("Requirement", snapshot.requirement_desc)

    width = doc.width
    columns = [MARGIN + 8, MARGIN + 34, MARGIN + 230, MARGIN + 290, MARGIN + 360, MARGIN + 430, width - MARGIN - 10]
    rows = [
        [
            str(index),
            line.name if not line.description else f"{line.name} - {line.description}",
            line.hsn_code or "-",
            line.uom,
            format_indian_number(line.quantity),
            format_indian_number(line.unit_price),
            format_indian_number(line.total_amount),
        ]
        for index, line in enumerate(snapshot.lines, start=1)
    ]
    doc.table(
        ["#", "Item", "HSN", "UOM", "Qty", "Rate", "Amount"],
        columns,
        {4, 5, 6},
        rows,
    )

    total_rows = [("Base Amount", format_currency(snapshot.base_amount))]
    total_rows.extend((charge.description, format_currency(charge.amount)) for charge in snapshot.charges)
    total_rows.append(("Tax", format_currency(snapshot.tax_amount)))
    doc.totals(total_rows, ("Total", format_currency(snapshot.total_amount)))
    doc.label_block("Amount in words", amount_in_words(snapshot.total_amount))

    doc.label_block("Ship to", snapshot.ship_to_address)
    doc.label_block("Terms & Conditions", snapshot.terms_conditions)
    if snapshot.notes:
        doc.label_block("Notes", snapshot.notes)
    doc.signature_block(snapshot.created_by, snapshot.stamp)
    return doc.finish()


def render_budgetary_offer_pdf(snapshot: BudgetaryOfferSnapshot, *, company_name: str) -> bytes:
    """Render a budgetary offer snapshot to PDF bytes."""

    doc = _DocumentCanvas(
        "Budgetary Offer",
        snapshot.offer_number,
        format_date(snapshot.offer_date),
        company_name,
    )
    doc.label_block("To", snapshot.to_authority)
    doc.label_block("Subject", snapshot.subject)

    width = doc.width
    columns = [MARGIN + 8, MARGIN + 34, MARGIN + 290, MARGIN + 340, MARGIN + 410, MARGIN + 450, width - MARGIN - 10]
    rows = [
        [
            str(index),
            item.description,
            format_indian_number(item.quantity),
            item.unit_of_measurement,
            format_indian_number(item.base_rate),
            f"{item.tax_rate.normalize():f}%",
            format_indian_number(item.total),
        ]
        for index, item in enumerate(snapshot.work_items, start=1)
    ]
    doc.table(
        ["#", "Description", "Qty", "Unit", "Rate", "Tax", "Amount"],
        columns,
        {2, 4, 6},
        rows,
    )
    doc.totals([], ("Total", format_currency(snapshot.total_amount)))
    doc.label_block("Amount in words", amount_in_words(snapshot.total_amount))
    doc.label_block("Terms & Conditions", snapshot.terms_conditions)
    if snapshot.tags:
        doc.label_block("Tags", ", ".join(snapshot.tags))
    doc.signature_block(snapshot.created_by, snapshot.stamp)
    return doc.finish()


__all__ = ["render_budgetary_offer_pdf", "render_purchase_order_pdf"]
