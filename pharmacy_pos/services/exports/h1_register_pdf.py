# FILE: pharmacy_pos/services/exports/h1_register_pdf.py
from __future__ import annotations

from calendar import month_name
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from pharmacy_pos.core.clock import now_local
from pharmacy_pos.core.config import settings
from pharmacy_pos.models.pharmacy import ScheduleH1Entry

# -------------------------
# Colors / Styles
# -------------------------
BROWN = colors.HexColor("#6B4F2A")
ROW_ALT = colors.Color(0, 0, 0, alpha=0.035)
GRID = colors.Color(0, 0, 0, alpha=0.12)
TEXT = colors.HexColor("#111827")
SUBT = colors.HexColor("#334155")

COLUMNS = [
    ("Date", 22),
    ("Invoice No", 34),
    ("Medicine", 44),
    ("Batch", 24),
    ("Customer", 38),
    ("Doctor", 36),
    ("Prescription", 30),
    ("Qty", 12),
    ("Pharmacist Signature", 37),
]
CENTER_COLS = {0, 7}


def _fit_text(txt: str, font: str, size: float, max_w: float) -> str:
    s = str(txt or "")
    if not s or pdfmetrics.stringWidth(s, font, size) <= max_w:
        return s
    ell = "..."
    while s and pdfmetrics.stringWidth(s + ell, font, size) > max_w:
        s = s[:-1]
    return s.rstrip() + ell


def _wrap(text: str, font: str, size: float, max_w: float) -> List[str]:
    lines = simpleSplit(str(text or ""), font, size, max_w) or [""]
    return [_fit_text(ln, font, size, max_w) for ln in lines]


def _row_values(e: ScheduleH1Entry) -> List[str]:
    return [
        e.dispensed_date.strftime("%d/%m/%Y") if e.dispensed_date else "",
        e.invoice_number or "",
        e.medicine_name,
        e.batch_number,
        e.customer_name,
        e.doctor_name,
        e.prescription_number,
        str(e.quantity_dispensed),
        e.pharmacist_signature or "",
    ]


class NumberedCanvas(canvas.Canvas):
    """Defers page output so each footer can print 'Page x of y'."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states: List[Dict] = []

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        num_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self.setFillColor(SUBT)
            self.setFont("Helvetica", 8)
            self.drawRightString(self._pagesize[0] - 10 * mm, 6 * mm,
                                 f"Page {self._pageNumber} of {num_pages}")
            super().showPage()
        super().save()


def build_h1_register_pdf(
    entries: Sequence[ScheduleH1Entry],
    *,
    month: int,
    year: int,
    generated_at: datetime | None = None,
) -> bytes:
    """
    Monthly Schedule H1 register, one row per dispensed line.
    Landscape A4 with repeated column header on every page.
    """
    buf = BytesIO()
    c = NumberedCanvas(buf, pagesize=landscape(A4))
    W, H = landscape(A4)

    margin_x = 10 * mm
    col_w = [w * mm for _, w in COLUMNS]
    table_w = sum(col_w)
    usable_bottom = 16 * mm

    def draw_header() -> float:
        y = H - 14 * mm
        c.setFillColor(TEXT)
        c.setFont("Helvetica-Bold", 16)
        c.drawString(margin_x, y, "Schedule H1 Register")

        c.setFont("Helvetica-Bold", 10.5)
        c.drawRightString(W - margin_x, y, f"{month_name[month]} {year}")

        y -= 6 * mm
        c.setFont("Helvetica", 9)
        c.setFillColor(SUBT)
        c.drawString(margin_x, y, "As per Rule 65(15) of Drugs Rules, 1945")
        c.drawRightString(W - margin_x, y, settings.PROJECT_NAME)

        y -= 4 * mm
        c.setStrokeColor(GRID)
        c.setLineWidth(0.7)
        c.line(margin_x, y, W - margin_x, y)
        return y - 4 * mm

    def draw_table_header(y: float) -> float:
        font, size = "Helvetica-Bold", 8.0
        hh = 9 * mm
        x = margin_x
        for i, (title, _) in enumerate(COLUMNS):
            c.setFillColor(BROWN)
            c.setStrokeColor(colors.Color(1, 1, 1, alpha=0.25))
            c.setLineWidth(0.5)
            c.rect(x, y - hh, col_w[i], hh, stroke=1, fill=1)

            c.setFillColor(colors.white)
            c.setFont(font, size)
            c.drawCentredString(x + col_w[i] / 2, y - hh / 2 - 1 * mm,
                                _fit_text(title, font, size, col_w[i] - 2 * mm))
            x += col_w[i]
        return y - hh

    def draw_row(y: float, vals: List[str], alt: bool) -> float:
        font, size = "Helvetica", 8.2
        line_h = 3.8 * mm
        pad_x = 1.4 * mm

        wrapped = [_wrap(v, font, size, col_w[i] - 2 * pad_x) for i, v in enumerate(vals)]
        max_lines = max(len(w) for w in wrapped)
        row_h = max(7.6 * mm, max_lines * line_h + 3 * mm)

        if alt:
            c.setFillColor(ROW_ALT)
            c.rect(margin_x, y - row_h, table_w, row_h, stroke=0, fill=1)

        c.setStrokeColor(GRID)
        c.setLineWidth(0.35)
        c.setFillColor(TEXT)
        c.setFont(font, size)

        x = margin_x
        for i, lines in enumerate(wrapped):
            c.rect(x, y - row_h, col_w[i], row_h, stroke=1, fill=0)
            baseline = y - (row_h - len(lines) * line_h) / 2 - 0.75 * line_h
            for li, line in enumerate(lines):
                yy = baseline - li * line_h
                if i in CENTER_COLS:
                    c.drawCentredString(x + col_w[i] / 2, yy, line)
                else:
                    c.drawString(x + pad_x, yy, line)
            x += col_w[i]
        return y - row_h

    y = draw_table_header(draw_header())

    if not entries:
        c.setFillColor(SUBT)
        c.setFont("Helvetica-Oblique", 9)
        c.drawString(margin_x, y - 8 * mm, "No Schedule H1 dispensing recorded for this month.")
        y -= 12 * mm

    alt = False
    for e in entries:
        if y <= usable_bottom + 14 * mm:
            c.showPage()
            y = draw_table_header(draw_header())
        y = draw_row(y, _row_values(e), alt)
        alt = not alt

    total_qty = sum(int(e.quantity_dispensed or 0) for e in entries)
    generated_at = generated_at or now_local()

    c.setFillColor(SUBT)
    c.setFont("Helvetica", 8)
    c.drawString(margin_x, usable_bottom - 4 * mm,
                 f"Entries: {len(entries)}   Units dispensed: {total_qty}   "
                 f"Generated: {generated_at.strftime('%d/%m/%Y %I:%M %p')}")

    c.showPage()
    c.save()
    return buf.getvalue()
