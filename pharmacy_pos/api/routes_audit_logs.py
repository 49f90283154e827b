# FILE: pharmacy_pos/api/routes_audit_logs.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmacy_pos.api.deps import get_db
from pharmacy_pos.api.response import ok
from pharmacy_pos.models.audit import AuditEntity
from pharmacy_pos.schemas.audit import AuditLogOut
from pharmacy_pos.services.audit import get_audit_trail, get_recent_activity

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("")
def recent_activity(
        limit: int = Query(50, ge=1, le=500),
        db: Session = Depends(get_db),
):
    """
    GET /api/audit-logs?limit=50
    Newest first, across all entities.
    """
    rows = get_recent_activity(db, limit=limit)
    return ok([AuditLogOut.model_validate(r, from_attributes=True) for r in rows])


@router.get("/{entity_id}")
def entity_trail(
        entity_id: str,
        entity_type: Optional[AuditEntity] = Query(None),
        db: Session = Depends(get_db),
):
    rows = get_audit_trail(db, entity_id, entity_type)
    return ok([AuditLogOut.model_validate(r, from_attributes=True) for r in rows])
