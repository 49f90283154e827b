# FILE: pharmacy_pos/api/routes_medicines.py
from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from pharmacy_pos.api.deps import client_ip, current_pharmacist, get_db
from pharmacy_pos.api.response import ok
from pharmacy_pos.schemas.pharmacy import (
    BatchCreate,
    BatchOut,
    MedicineCreate,
    MedicineOut,
    MedicineUpdate,
)
from pharmacy_pos.services import medicines as svc
from pharmacy_pos.services.drug_schedules import list_schedules

router = APIRouter(prefix="/medicines", tags=["Medicines & Batches"])


def _medicine_out(m) -> MedicineOut:
    return MedicineOut.model_validate(m, from_attributes=True)


def _batch_out(b) -> BatchOut:
    return BatchOut.model_validate(b, from_attributes=True)


@router.get("/schedules")
def schedules_meta():
    return ok(list_schedules())


@router.get("/inventory")
def inventory(
        q: Optional[str] = Query(None, description="Search name / brand / manufacturer"),
        limit: int = Query(100, ge=1, le=500),
        on_date: Optional[date] = Query(None, description="Saleability reference date"),
        db: Session = Depends(get_db),
):
    return ok(svc.inventory_overview(db, search=q, limit=limit, today=on_date))


@router.get("")
def list_medicines(
        q: Optional[str] = Query(None, description="Search name / brand / manufacturer"),
        limit: int = Query(100, ge=1, le=500),
        db: Session = Depends(get_db),
):
    rows = svc.list_medicines(db, search=q, limit=limit)
    return ok([_medicine_out(m) for m in rows])


@router.post("")
def create_medicine(
        payload: MedicineCreate,
        request: Request,
        db: Session = Depends(get_db),
        pharmacist: str = Depends(current_pharmacist),
):
    m = svc.create_medicine(db, payload, user_id=pharmacist, ip_address=client_ip(request))
    return ok(_medicine_out(m), status_code=201)


@router.get("/{medicine_id}")
def get_medicine(medicine_id: int, db: Session = Depends(get_db)):
    return ok(_medicine_out(svc.get_medicine(db, medicine_id)))


@router.patch("/{medicine_id}")
def update_medicine(
        medicine_id: int,
        payload: MedicineUpdate,
        request: Request,
        db: Session = Depends(get_db),
        pharmacist: str = Depends(current_pharmacist),
):
    m = svc.update_medicine(db, medicine_id, payload, user_id=pharmacist,
                            ip_address=client_ip(request))
    return ok(_medicine_out(m))


@router.delete("/{medicine_id}")
def delete_medicine(
        medicine_id: int,
        request: Request,
        db: Session = Depends(get_db),
        pharmacist: str = Depends(current_pharmacist),
):
    svc.delete_medicine(db, medicine_id, user_id=pharmacist, ip_address=client_ip(request))
    return ok({"deleted": medicine_id})


# ---------- Batches ----------


@router.get("/{medicine_id}/batches")
def list_batches(medicine_id: int, db: Session = Depends(get_db)):
    return ok([_batch_out(b) for b in svc.list_batches(db, medicine_id)])


@router.post("/{medicine_id}/batches")
def create_batch(
        medicine_id: int,
        payload: BatchCreate,
        request: Request,
        db: Session = Depends(get_db),
        pharmacist: str = Depends(current_pharmacist),
):
    b = svc.create_batch(db, medicine_id, payload, user_id=pharmacist,
                         ip_address=client_ip(request))
    return ok(_batch_out(b), status_code=201)
