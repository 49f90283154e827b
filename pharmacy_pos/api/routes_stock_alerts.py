# FILE: pharmacy_pos/api/routes_stock_alerts.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmacy_pos.api.deps import get_db
from pharmacy_pos.api.response import ok
from pharmacy_pos.core.config import settings
from pharmacy_pos.schemas.stock_alerts import RestockPriority
from pharmacy_pos.services import stock_health

router = APIRouter(prefix="/stock", tags=["Stock Health"])


@router.get("/expiring")
def expiring_batches(
        days: Optional[int] = Query(None, ge=0, le=3650,
                                    description="Window in days (default EXPIRY_ALERT_DAYS)"),
        db: Session = Depends(get_db),
):
    window = settings.EXPIRY_ALERT_DAYS if days is None else days
    rows = stock_health.expiring_within(db, window)
    return ok(rows, meta={"days": window, "count": len(rows)})


@router.get("/low-stock")
def low_stock_batches(db: Session = Depends(get_db)):
    rows = stock_health.low_stock(db)
    return ok(rows, meta={"count": len(rows)})


@router.get("/restock-suggestions")
def restock_suggestions(
        priority: Optional[RestockPriority] = Query(None),
        db: Session = Depends(get_db),
):
    rows = stock_health.restock_suggestions(db)
    if priority:
        rows = [r for r in rows if r.priority == priority]
    return ok(rows, meta={"count": len(rows)})


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db)):
    return ok(stock_health.dashboard_summary(db))
