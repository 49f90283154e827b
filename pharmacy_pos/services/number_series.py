# FILE: pharmacy_pos/services/number_series.py
"""
Invoice numbers: ``<prefix>-YYYYMMDD-NNNN``, restarting at 0001 each sale day.

One NumberSeries row per (series key, day) holds the next sequence. The row
is locked for the rest of the caller's transaction, so the sale commit and
the counter bump are a single unit.
"""
from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pharmacy_pos.core.config import settings
from pharmacy_pos.core.errors import PersistenceError
from pharmacy_pos.models.pharmacy import NumberSeries

INVOICE_SERIES = "INV"


def _day_row(db: Session, series: str, day_key: int) -> NumberSeries | None:
    return (
        db.query(NumberSeries)
        .filter(NumberSeries.key == series, NumberSeries.date_key == day_key)
        .with_for_update()
        .first()
    )


def _claim_day_row(db: Session, series: str, day_key: int) -> NumberSeries:
    row = _day_row(db, series, day_key)
    if row:
        return row

    # First sale of the day. A concurrent first sale trips the unique key;
    # nothing else has been written yet, so rolling back is safe.
    db.add(NumberSeries(key=series, date_key=day_key, next_seq=1))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
    row = _day_row(db, series, day_key)
    if row is None:
        raise PersistenceError(f"Number series {series}/{day_key} could not be claimed.")
    return row


def next_invoice_number(db: Session, sale_day: date, *, pad: int = 4) -> str:
    """Reserve the next invoice number for ``sale_day``. Call before any other write."""
    row = _claim_day_row(db, INVOICE_SERIES, int(sale_day.strftime("%Y%m%d")))
    seq = int(row.next_seq or 1)
    row.next_seq = seq + 1
    db.flush()
    return f"{settings.INVOICE_PREFIX}-{sale_day:%Y%m%d}-{seq:0{pad}d}"
