# FILE: pharmacy_pos/services/schedule_register.py
from __future__ import annotations

from datetime import datetime
from typing import List, Tuple

from sqlalchemy.orm import Session

from pharmacy_pos.core.errors import ValidationError
from pharmacy_pos.models.pharmacy import ScheduleH1Entry


def month_bounds(month: int, year: int) -> Tuple[datetime, datetime]:
    """[first day 00:00, first day of next month 00:00)"""
    if month is None or not 1 <= int(month) <= 12:
        raise ValidationError("month", "must be between 1 and 12")
    if year is None or not 1900 <= int(year) <= 9999:
        raise ValidationError("year", "is out of range")

    start = datetime(int(year), int(month), 1)
    if int(month) == 12:
        end = datetime(int(year) + 1, 1, 1)
    else:
        end = datetime(int(year), int(month) + 1, 1)
    return start, end


def monthly_entries(db: Session, month: int, year: int) -> List[ScheduleH1Entry]:
    start, end = month_bounds(month, year)
    return (db.query(ScheduleH1Entry).filter(
        ScheduleH1Entry.dispensed_date >= start,
        ScheduleH1Entry.dispensed_date < end,
    ).order_by(ScheduleH1Entry.dispensed_date.asc(), ScheduleH1Entry.id.asc()).all())
