# FILE: pharmacy_pos/api/routes_sales.py
from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from pharmacy_pos.api.deps import client_ip, current_pharmacist, get_db
from pharmacy_pos.api.response import ok
from pharmacy_pos.core.clock import now_local
from pharmacy_pos.schemas.pharmacy import (
    AllocateIn,
    AllocationOut,
    CheckoutIn,
    SaleOut,
    SaleSummaryOut,
)
from pharmacy_pos.services import sales as svc
from pharmacy_pos.services.exports.excel_export import build_sales_excel
from pharmacy_pos.services.inventory import select_batches_for_sale

router = APIRouter(prefix="/sales", tags=["Sales"])


def _sale_out(sale) -> SaleOut:
    return SaleOut.model_validate(sale, from_attributes=True)


@router.post("/allocate")
def allocate(payload: AllocateIn, db: Session = Depends(get_db)):
    """
    FEFO proposal for add-to-cart. Nothing is reserved or written;
    send back units already in the cart as `reserved` (batch_id -> qty).
    """
    allocations = select_batches_for_sale(db, payload.medicine_id, payload.quantity,
                                          reserved=payload.reserved)
    return ok([
        AllocationOut(
            medicine_id=payload.medicine_id,
            batch_id=a.batch.id,
            batch_number=a.batch.batch_number,
            expiry_date=a.batch.expiry_date,
            quantity=a.qty,
            unit_price=a.batch.selling_price,
        ) for a in allocations
    ])


@router.post("/quote")
def quote(payload: CheckoutIn, db: Session = Depends(get_db)):
    lines = svc.resolve_lines(db, payload.lines)
    return ok(svc.compute_totals(lines, payload.discount_percent))


@router.post("")
def checkout(
        payload: CheckoutIn,
        request: Request,
        db: Session = Depends(get_db),
        pharmacist: str = Depends(current_pharmacist),
):
    sale = svc.process_sale(
        db,
        payload.lines,
        payload.customer,
        payload.payment_method,
        payload.discount_percent,
        pharmacist_id=pharmacist,
        ip_address=client_ip(request),
    )
    return ok(
        {
            "sale": _sale_out(sale),
            "restock_requests": svc.restock_requests_for_sale(sale),
        },
        status_code=201,
    )


@router.get("")
def list_sales(
        date_from: Optional[date] = Query(None),
        date_to: Optional[date] = Query(None),
        limit: int = Query(100, ge=1, le=500),
        db: Session = Depends(get_db),
):
    rows = svc.list_sales(db, date_from=date_from, date_to=date_to, limit=limit)
    return ok([SaleSummaryOut.model_validate(s, from_attributes=True) for s in rows])


@router.get("/export")
def export_sales(
        date_from: Optional[date] = Query(None),
        date_to: Optional[date] = Query(None),
        limit: int = Query(5000, ge=1, le=50000),
        db: Session = Depends(get_db),
):
    rows = svc.list_sales(db, date_from=date_from, date_to=date_to, limit=limit)
    buf = BytesIO()
    build_sales_excel(buf, rows)
    buf.seek(0)

    filename = f"sales_{now_local().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/invoice/{invoice_number}")
def get_sale_by_invoice(invoice_number: str, db: Session = Depends(get_db)):
    return ok(_sale_out(svc.get_sale_by_invoice(db, invoice_number)))


@router.get("/{sale_id}")
def get_sale(sale_id: int, db: Session = Depends(get_db)):
    return ok(_sale_out(svc.get_sale(db, sale_id)))


@router.get("/{sale_id}/restock-requests")
def restock_requests(sale_id: int, db: Session = Depends(get_db)):
    return ok(svc.restock_requests_for_sale(svc.get_sale(db, sale_id)))
