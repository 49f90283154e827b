# FILE: pharmacy_pos/api/response.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _envelope(status_code: int, body: Dict[str, Any]) -> JSONResponse:
    # Decimal money fields come out as strings ("376.32"), never floats
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def ok(
    data: Any = None,
    *,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> JSONResponse:
    """``{"ok": true, "data": ..., "meta": ...}``; meta only when given (counts, windows)."""
    body: Dict[str, Any] = {"ok": True, "data": data}
    if meta is not None:
        body["meta"] = meta
    return _envelope(status_code, body)


def err(
    msg: str = "Something went wrong",
    *,
    status_code: int = 400,
    code: Optional[str] = None,
    details: Any = None,
) -> JSONResponse:
    """
    Failure envelope. Counter clients branch on ``error.code``
    (INSUFFICIENT_STOCK, HAS_ACTIVE_STOCK, NOT_FOUND...) and read the
    shortfall or offending field from ``error.details``.
    """
    return _envelope(status_code, {
        "ok": False,
        "error": {"msg": msg, "code": code, "details": details},
    })
