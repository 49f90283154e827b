from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pharmacy_pos.core.clock import today_local
from pharmacy_pos.db.base import Base
from pharmacy_pos.models import Batch, Medicine, ScheduleType

# Fixed counter date for deterministic FEFO scenarios
TODAY = date(2024, 12, 1)


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_medicine(db):

    def _make(name="Paracetamol 500mg", schedule=ScheduleType.GENERAL, gst="12", **extra):
        values = dict(
            name=name,
            brand_name=extra.pop("brand_name", name.split()[0]),
            manufacturer=extra.pop("manufacturer", "GSK"),
            schedule_type=schedule,
            hsn="30049099",
            gst=Decimal(gst),
        )
        values.update(extra)
        medicine = Medicine(**values)
        db.add(medicine)
        db.commit()
        db.refresh(medicine)
        return medicine

    return _make


@pytest.fixture()
def make_batch(db):

    def _make(medicine, batch_number="B001", expiry=None, stock=10, price="10.00",
              min_stock=0, max_stock=100, purchase_price="5.00"):
        batch = Batch(
            medicine_id=medicine.id,
            batch_number=batch_number,
            expiry_date=expiry or (today_local() + timedelta(days=365)),
            mrp=Decimal(price),
            selling_price=Decimal(price),
            purchase_price=Decimal(purchase_price),
            current_stock=stock,
            min_stock=min_stock,
            max_stock=max_stock,
            supplier_id="SUP001",
        )
        db.add(batch)
        db.commit()
        db.refresh(batch)
        return batch

    return _make


@pytest.fixture()
def client(session_factory):
    from pharmacy_pos.api.deps import get_db
    from pharmacy_pos.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
