# FILE: pharmacy_pos/services/stock_health.py
"""
Read-only stock health projections:
- expiring batches (near / already past expiry, still holding stock)
- low stock batches (current_stock <= min_stock)
- per-medicine restock suggestions with a priority
- counter dashboard summary
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from pharmacy_pos.core import clock
from pharmacy_pos.core.config import settings
from pharmacy_pos.core.errors import ValidationError
from pharmacy_pos.models.pharmacy import Batch, Medicine, Sale
from pharmacy_pos.schemas.pharmacy import SaleSummaryOut
from pharmacy_pos.schemas.stock_alerts import (
    BatchAlertOut,
    DashboardOut,
    RestockPriority,
    RestockSuggestionOut,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Used when a medicine has no active batch to read thresholds from
DEFAULT_MIN_STOCK = 10
DEFAULT_MAX_STOCK = 100
CRITICAL_MIN_ORDER = 50

_PRIORITY_ORDER = {
    RestockPriority.CRITICAL: 0,
    RestockPriority.LOW: 1,
    RestockPriority.NORMAL: 2,
}


def _alert_row(b: Batch, today: date) -> BatchAlertOut:
    return BatchAlertOut(
        batch_id=b.id,
        medicine_id=b.medicine_id,
        medicine_name=b.medicine.name if b.medicine else "",
        batch_number=b.batch_number,
        expiry_date=b.expiry_date,
        days_to_expiry=(b.expiry_date - today).days,
        current_stock=int(b.current_stock or 0),
        min_stock=int(b.min_stock or 0),
        max_stock=int(b.max_stock or 0),
    )


def expiring_within(db: Session, days: int, today: Optional[date] = None) -> List[BatchAlertOut]:
    """Stocked batches expiring before today + days (expired ones included), soonest first."""
    if days is None or int(days) < 0:
        raise ValidationError("days", "must be >= 0")
    today = today or clock.today_local()
    cutoff = today + timedelta(days=int(days))

    rows = (db.query(Batch).options(joinedload(Batch.medicine)).filter(
        Batch.current_stock > 0,
        Batch.expiry_date < cutoff,
    ).order_by(Batch.expiry_date.asc(), Batch.id.asc()).all())
    return [_alert_row(b, today) for b in rows]


def low_stock(db: Session, today: Optional[date] = None) -> List[BatchAlertOut]:
    today = today or clock.today_local()
    rows = (db.query(Batch).options(joinedload(Batch.medicine)).filter(
        Batch.current_stock <= Batch.min_stock).order_by(Batch.current_stock.asc(),
                                                         Batch.id.asc()).all())
    return [_alert_row(b, today) for b in rows]


def _classify(stock: int, min_stock: int, max_stock: int):
    if stock == 0:
        return RestockPriority.CRITICAL, max(min_stock * 2, CRITICAL_MIN_ORDER)
    if stock <= min_stock:
        return RestockPriority.LOW, max_stock - stock
    if stock <= min_stock * 2:
        return RestockPriority.NORMAL, max(max_stock - stock, min_stock)
    return RestockPriority.NORMAL, 0


def restock_suggestions(db: Session, today: Optional[date] = None) -> List[RestockSuggestionOut]:
    """
    Per medicine, over active batches only (stocked and unexpired):
      critical  stock == 0          -> max(min*2, 50)
      low       stock <= min        -> max - stock
      normal    stock <= 2*min      -> max(max - stock, min)
    Medicines needing nothing are left out.
    """
    today = today or clock.today_local()

    active: Dict[int, List[Batch]] = {}
    for b in db.query(Batch).filter(Batch.current_stock > 0, Batch.expiry_date > today).all():
        active.setdefault(b.medicine_id, []).append(b)

    out: List[RestockSuggestionOut] = []
    for medicine in db.query(Medicine).order_by(Medicine.name.asc(), Medicine.id.asc()).all():
        batches = active.get(medicine.id, [])
        stock = sum(int(b.current_stock or 0) for b in batches)
        min_stock = min((int(b.min_stock or 0) for b in batches), default=DEFAULT_MIN_STOCK)
        max_stock = max((int(b.max_stock or 0) for b in batches), default=DEFAULT_MAX_STOCK)

        priority, suggested = _classify(stock, min_stock, max_stock)
        if suggested <= 0:
            continue

        avg_cost = ZERO
        if batches:
            avg_cost = sum((Decimal(b.purchase_price or 0) for b in batches), ZERO) / len(batches)

        out.append(
            RestockSuggestionOut(
                medicine_id=medicine.id,
                medicine_name=medicine.name,
                current_stock=stock,
                min_stock=min_stock,
                max_stock=max_stock,
                suggested_quantity=suggested,
                priority=priority,
                average_purchase_price=avg_cost.quantize(Decimal("0.01")),
            ))

    # stable: name order kept inside each priority
    out.sort(key=lambda s: _PRIORITY_ORDER[s.priority])
    return out


def dashboard_summary(db: Session, now: Optional[datetime] = None) -> DashboardOut:
    now = now or clock.now_local()
    today = now.date()
    day_start = datetime.combine(today, time.min)
    day_end = day_start + timedelta(days=1)

    today_count, today_revenue = (db.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_amount), 0),
    ).filter(Sale.sale_date >= day_start, Sale.sale_date < day_end).one())

    recent = (db.query(Sale).order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(5).all())

    return DashboardOut(
        total_medicines=db.query(func.count(Medicine.id)).scalar() or 0,
        total_batches=db.query(func.count(Batch.id)).scalar() or 0,
        today_sales_count=int(today_count or 0),
        today_revenue=Decimal(str(today_revenue or 0)).quantize(Decimal("0.01")),
        low_stock_count=len(low_stock(db, today=today)),
        expiring_count=len(expiring_within(db, settings.EXPIRY_ALERT_DAYS, today=today)),
        expiry_alert_days=settings.EXPIRY_ALERT_DAYS,
        recent_sales=[SaleSummaryOut.model_validate(s, from_attributes=True) for s in recent],
    )
