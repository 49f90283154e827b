# FILE: pharmacy_pos/services/inventory.py
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Mapping, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from pharmacy_pos.core import clock
from pharmacy_pos.core.errors import InsufficientStock, ValidationError
from pharmacy_pos.models.pharmacy import Batch

logger = logging.getLogger(__name__)


class AllocatedBatch:

    def __init__(self, batch: Batch, qty: int) -> None:
        self.batch = batch
        self.qty = qty

    def __repr__(self) -> str:
        return f"AllocatedBatch(batch_id={self.batch.id}, qty={self.qty})"


def _saleable_batches(db: Session, medicine_id: int, today: date):
    """Stocked batches expiring strictly after today, FEFO ordered."""
    return (
        db.query(Batch).filter(
            Batch.medicine_id == medicine_id,
            Batch.current_stock > 0,
            Batch.expiry_date > today,
        ).order_by(
            Batch.expiry_date.asc(),  # earliest expiry first
            Batch.id.asc(),  # tie-breaker
        ))


def select_batches_for_sale(
    db: Session,
    medicine_id: int,
    quantity: int,
    *,
    reserved: Optional[Mapping[int, int]] = None,
    today: Optional[date] = None,
) -> List[AllocatedBatch]:
    """
    FEFO allocation (First-Expiry-First-Out) for a medicine.

    - Uses only batches with stock and an expiry strictly in the future
    - Orders by expiry date (earliest first), then id
    - ``reserved`` maps batch id -> units already held by a cart
    - Returns list of (batch, qty_to_use); never mutates stock
    - Raises InsufficientStock with the unmet quantity
    """
    if quantity is None:
        raise ValidationError("quantity", "is required")
    if int(quantity) <= 0:
        raise ValidationError("quantity", "must be > 0")

    today = today or clock.today_local()
    reserved = reserved or {}
    if any(int(held) < 0 for held in reserved.values()):
        raise ValidationError("reserved", "must be >= 0")

    remaining = int(quantity)
    allocations: List[AllocatedBatch] = []

    for batch in _saleable_batches(db, medicine_id, today).all():
        if remaining <= 0:
            break

        available = int(batch.current_stock or 0) - int(reserved.get(batch.id, 0))
        if available <= 0:
            continue

        use_qty = min(available, remaining)
        allocations.append(AllocatedBatch(batch=batch, qty=use_qty))
        remaining -= use_qty

    if remaining > 0:
        logger.info("FEFO allocation short for medicine %s: requested %s, short by %s",
                    medicine_id, quantity, remaining)
        raise InsufficientStock(medicine_id, remaining)

    return allocations


def available_stock(db: Session, medicine_id: int, today: Optional[date] = None) -> int:
    """Sum of saleable (stocked, unexpired) units of a medicine."""
    today = today or clock.today_local()
    total = (db.query(func.coalesce(func.sum(Batch.current_stock), 0)).filter(
        Batch.medicine_id == medicine_id,
        Batch.current_stock > 0,
        Batch.expiry_date > today,
    ).scalar())
    return int(total or 0)


def consume_batch_stock(db: Session, *, batch_id: int, medicine_id: int, qty: int) -> None:
    """
    Atomic conditional decrement:
      UPDATE batches SET current_stock = current_stock - :q
       WHERE id = :id AND current_stock >= :q

    The database re-reads the row, so a concurrent sale can never drive
    stock negative or overwrite another decrement.
    """
    if qty <= 0:
        raise ValidationError("quantity", "must be > 0")

    result = db.execute(
        update(Batch).where(
            Batch.id == batch_id,
            Batch.medicine_id == medicine_id,
            Batch.current_stock >= qty,
        ).values(current_stock=Batch.current_stock - qty).execution_options(
            synchronize_session=False))

    if result.rowcount != 1:
        current = db.query(Batch.current_stock).filter(Batch.id == batch_id).scalar()
        shortfall = qty - int(current or 0)
        logger.warning("Stock changed under batch %s: wanted %s, has %s",
                       batch_id, qty, current)
        raise InsufficientStock(medicine_id, max(shortfall, 1))


def reserved_by_batch(lines) -> Dict[int, int]:
    """Units per batch id held by cart lines (anything with batch_id/quantity)."""
    out: Dict[int, int] = {}
    for line in lines:
        out[line.batch_id] = out.get(line.batch_id, 0) + int(line.quantity)
    return out
