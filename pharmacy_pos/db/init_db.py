# pharmacy_pos/db/init_db.py
from __future__ import annotations

import argparse
import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmacy_pos.core.clock import today_local
from pharmacy_pos.db.base import Base
from pharmacy_pos.db.session import engine
# Import all models so metadata is complete
from pharmacy_pos.models import Batch, Medicine, ScheduleType  # noqa: F401

logger = logging.getLogger(__name__)

SAMPLE_CATALOGUE = [
    (
        dict(name="Paracetamol 500mg", generic_name="Paracetamol", brand_name="Crocin",
             dosage="500mg", medicine_type="Tablet", manufacturer="GSK",
             schedule_type=ScheduleType.GENERAL, hsn="30049099", gst=Decimal("12"),
             description="Pain relief and fever reducer"),
        dict(batch_number="PCM001", expiry_days=540, mrp="25", purchase_price="18",
             selling_price="23", current_stock=100, min_stock=20, max_stock=500,
             supplier_id="SUP001"),
    ),
    (
        dict(name="Alprazolam 0.5mg", generic_name="Alprazolam", brand_name="Alprax",
             dosage="0.5mg", medicine_type="Tablet", manufacturer="Torrent",
             schedule_type=ScheduleType.H1, hsn="30049099", gst=Decimal("12"),
             description="Anti-anxiety medication"),
        dict(batch_number="ALP001", expiry_days=180, mrp="45", purchase_price="35",
             selling_price="42", current_stock=50, min_stock=10, max_stock=200,
             supplier_id="SUP002"),
    ),
    (
        dict(name="Amoxicillin 500mg", generic_name="Amoxicillin", brand_name="Amoxil",
             dosage="500mg", medicine_type="Capsule", manufacturer="Cipla",
             schedule_type=ScheduleType.H, hsn="30049099", gst=Decimal("12"),
             description="Antibiotic for bacterial infections"),
        dict(batch_number="AMX001", expiry_days=240, mrp="85", purchase_price="65",
             selling_price="78", current_stock=75, min_stock=15, max_stock=300,
             supplier_id="SUP001"),
    ),
]


def seed_sample_catalogue(db: Session) -> int:
    """
    Inserts the demo medicines (one batch each) into an empty catalogue.
    Returns the number of medicines inserted; safe to run multiple times.
    """
    if db.query(Medicine.id).first():
        return 0

    today = today_local()
    for med_values, batch_values in SAMPLE_CATALOGUE:
        medicine = Medicine(**med_values)
        db.add(medicine)
        db.flush()

        values = dict(batch_values)
        expiry = today + timedelta(days=values.pop("expiry_days"))
        for key in ("mrp", "purchase_price", "selling_price"):
            values[key] = Decimal(values[key])
        db.add(Batch(medicine_id=medicine.id, expiry_date=expiry, received_date=today, **values))

    return len(SAMPLE_CATALOGUE)


def run(fresh: bool = False, seed: bool = False) -> None:
    if fresh:
        logger.warning("Dropping ALL tables (dev only)")
        Base.metadata.drop_all(bind=engine)

    logger.info("Creating all missing tables")
    Base.metadata.create_all(bind=engine)

    if not seed:
        return

    try:
        with Session(engine) as db:
            inserted = seed_sample_catalogue(db)
            db.commit()
            logger.info("Sample catalogue seeded (%d medicines inserted)", inserted)
    except SQLAlchemyError:
        logger.exception("Seeding failed")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] [%(levelname)s] %(message)s")
    parser = argparse.ArgumentParser(
        description="Initialize DB (create tables, optionally seed sample medicines).")
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Drop & recreate all tables (DEV ONLY).",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Insert the sample catalogue when no medicine exists.",
    )
    args = parser.parse_args()
    run(fresh=args.fresh, seed=args.seed)
