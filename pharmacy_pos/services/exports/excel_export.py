from __future__ import annotations

from calendar import month_abbr
from decimal import Decimal
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter


def _money(x) -> float:
    try:
        return float(Decimal(str(x or "0")))
    except Exception:
        return 0.0


def build_h1_register_excel(fp, entries: Iterable, *, month: int, year: int):
    wb = Workbook()
    ws = wb.active
    ws.title = f"H1 {month_abbr[month]} {year}"

    headers = [
        "Dispensed Date", "Invoice No", "Medicine", "Batch No",
        "Customer", "Doctor", "Prescription No", "Qty", "Pharmacist Signature",
    ]
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for e in entries:
        ws.append([
            e.dispensed_date,
            e.invoice_number or "",
            e.medicine_name,
            e.batch_number,
            e.customer_name,
            e.doctor_name,
            e.prescription_number,
            int(e.quantity_dispensed),
            e.pharmacist_signature or "",
        ])

    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 20
    ws.freeze_panes = "A2"

    wb.save(fp)


def build_sales_excel(fp, sales: Iterable):
    wb = Workbook()
    ws = wb.active
    ws.title = "Sales"

    headers = [
        "Invoice No", "Sale Date", "Customer", "Phone", "Payment",
        "Subtotal", "Discount", "GST", "Total", "Pharmacist",
    ]
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for s in sales:
        ws.append([
            s.invoice_number,
            s.sale_date,
            s.customer_name or "",
            s.customer_phone or "",
            getattr(s.payment_method, "value", s.payment_method),
            _money(s.subtotal_amount),
            _money(s.discount_amount),
            _money(s.gst_amount),
            _money(s.total_amount),
            s.pharmacist_id,
        ])

    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = 18
    ws.freeze_panes = "A2"

    wb.save(fp)
