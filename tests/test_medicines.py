from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaError

from pharmacy_pos.core.errors import HasActiveStock, NotFound, ValidationError
from pharmacy_pos.models import AuditLog, Batch, Medicine, ScheduleType
from pharmacy_pos.schemas.pharmacy import BatchCreate, MedicineCreate, MedicineUpdate
from pharmacy_pos.services import medicines as svc
from pharmacy_pos.services.audit import get_audit_trail, get_recent_activity
from pharmacy_pos.services.drug_schedules import (
    get_schedule_meta,
    normalize_schedule,
    requires_register,
)

TODAY = date(2024, 12, 1)


def _batch_in(number="B001", stock=10, **extra):
    values = dict(batch_number=number, expiry_date=date(2025, 6, 1), mrp=Decimal("25"),
                  selling_price=Decimal("23"), purchase_price=Decimal("18"),
                  current_stock=stock, min_stock=5, max_stock=100)
    values.update(extra)
    return BatchCreate(**values)


def test_create_medicine_normalizes_schedule_and_audits(db):
    m = svc.create_medicine(
        db,
        MedicineCreate(name=" Alprazolam 0.5mg ", brand_name="Alprax", manufacturer="Torrent",
                       schedule_type="schedule h-1", gst=Decimal("12")),
        user_id="ph-2",
    )

    assert m.name == "Alprazolam 0.5mg"
    assert m.schedule_type == ScheduleType.H1
    trail = get_audit_trail(db, m.id)
    assert [(a.action, a.entity_type, a.user_id) for a in trail] == [("CREATE", "MEDICINE", "ph-2")]
    assert trail[0].new_values["name"] == "Alprazolam 0.5mg"


def test_unknown_schedule_is_a_schema_error():
    with pytest.raises(SchemaError):
        MedicineCreate(name="Mystery", schedule_type="Z")


def test_schedule_helpers():
    assert normalize_schedule("") == ScheduleType.GENERAL
    assert normalize_schedule("otc") == ScheduleType.GENERAL
    assert normalize_schedule("H-1") == ScheduleType.H1
    assert requires_register(ScheduleType.H1) is True
    assert requires_register("H") is False
    assert get_schedule_meta("x")["strict_storage"] is True
    with pytest.raises(ValidationError):
        normalize_schedule("Q")


def test_update_is_partial_and_keeps_before_image(db, make_medicine):
    m = make_medicine("Amoxicillin 500mg", manufacturer="Cipla")

    svc.update_medicine(db, m.id, MedicineUpdate(dosage="250mg"))

    db.expire_all()
    fresh = db.get(Medicine, m.id)
    assert fresh.dosage == "250mg"
    assert fresh.manufacturer == "Cipla"
    update = get_audit_trail(db, m.id)[0]
    assert update.action == "UPDATE"
    assert update.old_values["dosage"] != "250mg"
    assert update.new_values["dosage"] == "250mg"


def test_get_missing_medicine(db):
    with pytest.raises(NotFound) as exc:
        svc.get_medicine(db, 77)
    assert exc.value.details == {"entity": "Medicine", "id": 77}


def test_search_matches_name_brand_and_manufacturer(db, make_medicine):
    make_medicine("Paracetamol 500mg", brand_name="Crocin", manufacturer="GSK")
    make_medicine("Amoxicillin 500mg", brand_name="Amoxil", manufacturer="Cipla")
    make_medicine("Cetirizine 10mg", brand_name="Okacet", manufacturer="Cipla")

    assert [m.name for m in svc.list_medicines(db, search="crocin")] == ["Paracetamol 500mg"]
    assert [m.name for m in svc.list_medicines(db, search="CIPLA")] == [
        "Amoxicillin 500mg", "Cetirizine 10mg"
    ]
    assert len(svc.list_medicines(db, limit=2)) == 2


def test_delete_with_stock_is_refused_and_nothing_removed(db, make_medicine, make_batch):
    m = make_medicine()
    make_batch(m, "EMPTY", stock=0)
    make_batch(m, "FULL", stock=3)

    with pytest.raises(HasActiveStock) as exc:
        svc.delete_medicine(db, m.id)

    assert exc.value.medicine_id == m.id
    assert db.query(Medicine).count() == 1
    assert db.query(Batch).count() == 2


def test_delete_removes_empty_batches_then_medicine(db, make_medicine, make_batch):
    m = make_medicine()
    make_batch(m, "E1", stock=0)
    make_batch(m, "E2", stock=0)
    medicine_id = m.id

    svc.delete_medicine(db, medicine_id)

    assert db.query(Medicine).count() == 0
    assert db.query(Batch).count() == 0
    assert get_audit_trail(db, medicine_id)[0].action == "DELETE"


def test_restock_with_same_batch_number_adds_a_row(db, make_medicine):
    m = make_medicine()

    first = svc.create_batch(db, m.id, _batch_in("PCM001", stock=10))
    second = svc.create_batch(db, m.id, _batch_in("PCM001", stock=20))

    assert first.id != second.id
    rows = svc.list_batches(db, m.id)
    assert [(b.batch_number, b.current_stock) for b in rows] == [("PCM001", 10), ("PCM001", 20)]
    assert second.received_date is not None
    assert [a.action for a in get_recent_activity(db)] == ["PURCHASE", "PURCHASE"]


def test_batch_for_unknown_medicine(db):
    with pytest.raises(NotFound):
        svc.create_batch(db, 5, _batch_in())


def test_batch_thresholds_are_checked(db, make_medicine):
    m = make_medicine()
    with pytest.raises(ValidationError) as exc:
        svc.create_batch(db, m.id, _batch_in(min_stock=50, max_stock=10))
    assert exc.value.field == "min_stock"


def test_negative_stock_is_a_schema_error():
    with pytest.raises(SchemaError):
        _batch_in(stock=-1)


def test_inventory_overview(db, make_medicine, make_batch):
    m = make_medicine()
    make_batch(m, "OLD", expiry=date(2024, 10, 1), stock=4)
    make_batch(m, "NEW", expiry=date(2025, 4, 1), stock=6)
    make_batch(m, "EMPTY", expiry=date(2025, 1, 1), stock=0)

    [row] = svc.inventory_overview(db, today=TODAY)

    assert row.medicine.id == m.id
    assert row.batch_count == 3
    assert row.total_stock == 10
    assert row.saleable_stock == 6
    assert row.nearest_expiry == date(2024, 10, 1)


def test_recent_activity_is_newest_first(db, make_medicine):
    m = make_medicine()
    svc.update_medicine(db, m.id, MedicineUpdate(dosage="1"))
    svc.update_medicine(db, m.id, MedicineUpdate(dosage="2"))

    rows = get_recent_activity(db, limit=1)
    assert len(rows) == 1
    assert rows[0].new_values["dosage"] == "2"
    assert db.query(AuditLog).count() == 2
