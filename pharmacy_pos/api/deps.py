# FILE: pharmacy_pos/api/deps.py
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header, Request
from sqlalchemy.orm import Session

from pharmacy_pos.core.config import settings
from pharmacy_pos.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def current_pharmacist(x_pharmacist_id: Optional[str] = Header(None)) -> str:
    """Counter operator from the X-Pharmacist-Id header."""
    value = (x_pharmacist_id or "").strip()
    return value or settings.DEFAULT_PHARMACIST_ID


def client_ip(request: Request) -> Optional[str]:
    fwd = request.headers.get("x-forwarded-for")
    if fwd:
        return fwd.split(",")[0].strip()
    return request.client.host if request.client else None
