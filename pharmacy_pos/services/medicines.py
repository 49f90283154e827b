# FILE: pharmacy_pos/services/medicines.py
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmacy_pos.core import clock
from pharmacy_pos.core.errors import (
    HasActiveStock,
    NotFound,
    PersistenceError,
    ValidationError,
)
from pharmacy_pos.models.audit import AuditAction, AuditEntity
from pharmacy_pos.models.pharmacy import Batch, Medicine
from pharmacy_pos.schemas.pharmacy import (
    BatchCreate,
    MedicineCreate,
    MedicineStockOut,
    MedicineOut,
    MedicineUpdate,
)
from pharmacy_pos.services.audit import log_action, snapshot

logger = logging.getLogger(__name__)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Commit failed")
        raise PersistenceError(f"Failed to save changes: {type(e).__name__}") from e


# ---------- Medicines ----------


def get_medicine(db: Session, medicine_id: int) -> Medicine:
    medicine = db.get(Medicine, medicine_id)
    if not medicine:
        raise NotFound("Medicine", medicine_id)
    return medicine


def list_medicines(db: Session, search: Optional[str] = None, limit: int = 100) -> List[Medicine]:
    q = db.query(Medicine)
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.filter(
            or_(
                func.lower(Medicine.name).like(like),
                func.lower(Medicine.brand_name).like(like),
                func.lower(Medicine.manufacturer).like(like),
            ))
    return q.order_by(Medicine.name.asc(), Medicine.id.asc()).limit(limit).all()


def create_medicine(
    db: Session,
    data: MedicineCreate,
    *,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Medicine:
    if not data.name.strip():
        raise ValidationError("name", "is required")

    medicine = Medicine(**data.model_dump())
    medicine.name = data.name.strip()
    db.add(medicine)
    db.flush()

    log_action(
        db,
        action=AuditAction.CREATE,
        entity_type=AuditEntity.MEDICINE,
        entity_id=medicine.id,
        user_id=user_id,
        new_values=snapshot(medicine),
        ip_address=ip_address,
    )
    _commit(db)
    db.refresh(medicine)
    logger.info("Medicine %s created (%s)", medicine.id, medicine.name)
    return medicine


def update_medicine(
    db: Session,
    medicine_id: int,
    data: MedicineUpdate,
    *,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Medicine:
    medicine = get_medicine(db, medicine_id)
    changes = data.model_dump(exclude_unset=True)
    if "name" in changes and not (changes["name"] or "").strip():
        raise ValidationError("name", "is required")

    before = snapshot(medicine)
    for field, value in changes.items():
        if value is not None:
            setattr(medicine, field, value)
    db.flush()

    log_action(
        db,
        action=AuditAction.UPDATE,
        entity_type=AuditEntity.MEDICINE,
        entity_id=medicine.id,
        user_id=user_id,
        old_values=before,
        new_values=snapshot(medicine),
        ip_address=ip_address,
    )
    _commit(db)
    db.refresh(medicine)
    return medicine


def delete_medicine(
    db: Session,
    medicine_id: int,
    *,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> None:
    """
    Deletes a medicine together with its (empty) batches.
    Any batch still holding stock aborts with HasActiveStock, nothing removed.
    """
    medicine = get_medicine(db, medicine_id)
    batches = db.query(Batch).filter(Batch.medicine_id == medicine.id).all()

    if any(int(b.current_stock or 0) > 0 for b in batches):
        raise HasActiveStock(medicine.id)

    before = snapshot(medicine)
    for b in batches:
        db.delete(b)
    db.flush()
    db.delete(medicine)

    log_action(
        db,
        action=AuditAction.DELETE,
        entity_type=AuditEntity.MEDICINE,
        entity_id=medicine_id,
        user_id=user_id,
        old_values=before,
        ip_address=ip_address,
    )
    _commit(db)
    logger.info("Medicine %s deleted with %d empty batches", medicine_id, len(batches))


# ---------- Batches ----------


def create_batch(
    db: Session,
    medicine_id: int,
    data: BatchCreate,
    *,
    user_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Batch:
    """
    Initial stock entry or restock.
    Always a pure insert: a repeated batch_number still gets its own row.
    """
    medicine = get_medicine(db, medicine_id)
    if data.current_stock < 0:
        raise ValidationError("current_stock", "cannot be negative")
    if data.max_stock and data.min_stock > data.max_stock:
        raise ValidationError("min_stock", "cannot exceed max_stock")

    values = data.model_dump()
    values["received_date"] = data.received_date or clock.today_local()
    batch = Batch(medicine_id=medicine.id, **values)
    db.add(batch)
    db.flush()

    log_action(
        db,
        action=AuditAction.PURCHASE,
        entity_type=AuditEntity.BATCH,
        entity_id=batch.id,
        user_id=user_id,
        new_values=snapshot(batch),
        ip_address=ip_address,
    )
    _commit(db)
    db.refresh(batch)
    logger.info("Batch %s (%s) received for medicine %s: %s units",
                batch.id, batch.batch_number, medicine.id, batch.current_stock)
    return batch


def list_batches(db: Session, medicine_id: int) -> List[Batch]:
    get_medicine(db, medicine_id)
    return (db.query(Batch).filter(Batch.medicine_id == medicine_id).order_by(
        Batch.expiry_date.asc(), Batch.id.asc()).all())


def inventory_overview(
    db: Session,
    search: Optional[str] = None,
    limit: int = 100,
    today: Optional[date] = None,
) -> List[MedicineStockOut]:
    today = today or clock.today_local()
    out: List[MedicineStockOut] = []

    for medicine in list_medicines(db, search=search, limit=limit):
        batches = db.query(Batch).filter(Batch.medicine_id == medicine.id).all()
        stocked = [b for b in batches if int(b.current_stock or 0) > 0]
        saleable = [b for b in stocked if b.expiry_date > today]

        out.append(
            MedicineStockOut(
                medicine=MedicineOut.model_validate(medicine, from_attributes=True),
                batch_count=len(batches),
                total_stock=sum(int(b.current_stock or 0) for b in stocked),
                saleable_stock=sum(int(b.current_stock or 0) for b in saleable),
                nearest_expiry=min((b.expiry_date for b in stocked), default=None),
            ))
    return out
