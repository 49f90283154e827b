# FILE: pharmacy_pos/services/audit.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from pharmacy_pos.core.config import settings
from pharmacy_pos.models.audit import AuditAction, AuditEntity, AuditLog

logger = logging.getLogger(__name__)


def snapshot(obj: Any) -> Dict[str, Any]:
    """Column values of an ORM row as JSON-safe dict (for old/new values)."""
    mapper = inspect(obj).mapper
    data = {c.key: getattr(obj, c.key) for c in mapper.column_attrs}
    return jsonable_encoder(data)


def log_action(
    db: Session,
    *,
    action: AuditAction,
    entity_type: AuditEntity,
    entity_id: Any,
    user_id: Optional[str] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Central creator for AuditLog rows.
    Does not commit: the entry belongs to the caller's transaction.
    """
    entry = AuditLog(
        user_id=user_id or settings.DEFAULT_PHARMACIST_ID,
        action=action.value,
        entity_type=entity_type.value,
        entity_id=str(entity_id),
        old_values=old_values,
        new_values=new_values,
        ip_address=ip_address,
    )
    db.add(entry)
    logger.debug("audit %s %s %s by %s", entry.action, entry.entity_type,
                 entry.entity_id, entry.user_id)
    return entry


def get_audit_trail(db: Session,
                    entity_id: Any,
                    entity_type: Optional[AuditEntity] = None) -> List[AuditLog]:
    q = db.query(AuditLog).filter(AuditLog.entity_id == str(entity_id))
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type.value)
    return q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).all()


def get_recent_activity(db: Session, limit: int = 50) -> List[AuditLog]:
    return (db.query(AuditLog).order_by(AuditLog.timestamp.desc(),
                                        AuditLog.id.desc()).limit(limit).all())
