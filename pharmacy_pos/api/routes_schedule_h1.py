# FILE: pharmacy_pos/api/routes_schedule_h1.py
from __future__ import annotations

from io import BytesIO

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from pharmacy_pos.api.deps import get_db
from pharmacy_pos.api.response import ok
from pharmacy_pos.schemas.schedule_h1 import ScheduleH1EntryOut
from pharmacy_pos.services.exports.excel_export import build_h1_register_excel
from pharmacy_pos.services.exports.h1_register_pdf import build_h1_register_pdf
from pharmacy_pos.services.schedule_register import monthly_entries

router = APIRouter(prefix="/schedule-h1", tags=["Schedule H1 Register"])


@router.get("")
def list_entries(
        month: int = Query(..., ge=1, le=12),
        year: int = Query(..., ge=1900, le=9999),
        db: Session = Depends(get_db),
):
    rows = monthly_entries(db, month, year)
    return ok([ScheduleH1EntryOut.model_validate(r, from_attributes=True) for r in rows],
              meta={"month": month, "year": year, "count": len(rows)})


@router.get("/register.pdf")
def register_pdf(
        month: int = Query(..., ge=1, le=12),
        year: int = Query(..., ge=1900, le=9999),
        db: Session = Depends(get_db),
):
    rows = monthly_entries(db, month, year)
    pdf_bytes = build_h1_register_pdf(rows, month=month, year=year)
    return StreamingResponse(
        BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={
            "Content-Disposition":
            f'attachment; filename="schedule_h1_{year}_{month:02d}.pdf"'
        },
    )


@router.get("/register.xlsx")
def register_xlsx(
        month: int = Query(..., ge=1, le=12),
        year: int = Query(..., ge=1900, le=9999),
        db: Session = Depends(get_db),
):
    rows = monthly_entries(db, month, year)
    buf = BytesIO()
    build_h1_register_excel(buf, rows, month=month, year=year)
    buf.seek(0)
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={
            "Content-Disposition":
            f'attachment; filename="schedule_h1_{year}_{month:02d}.xlsx"'
        },
    )
