from datetime import date

import pytest

from pharmacy_pos.core.errors import InsufficientStock, ValidationError
from pharmacy_pos.models import Batch
from pharmacy_pos.services.inventory import (
    available_stock,
    consume_batch_stock,
    select_batches_for_sale,
)

TODAY = date(2024, 12, 1)


def _stock(db, *batches):
    db.expire_all()
    return [db.get(Batch, b.id).current_stock for b in batches]


def test_allocation_follows_expiry_order_and_sums_exactly(db, make_medicine, make_batch):
    m = make_medicine()
    late = make_batch(m, "LATE", expiry=date(2026, 3, 1), stock=20)
    early = make_batch(m, "EARLY", expiry=date(2025, 2, 1), stock=4)
    mid = make_batch(m, "MID", expiry=date(2025, 8, 1), stock=6)

    allocations = select_batches_for_sale(db, m.id, 15, today=TODAY)

    assert [a.batch.id for a in allocations] == [early.id, mid.id, late.id]
    assert [a.qty for a in allocations] == [4, 6, 5]
    assert sum(a.qty for a in allocations) == 15
    expiries = [a.batch.expiry_date for a in allocations]
    assert expiries == sorted(expiries)


def test_first_scenario_split_across_two_batches(db, make_medicine, make_batch):
    m = make_medicine()
    a = make_batch(m, "A", expiry=date(2025, 1, 1), stock=5)
    b = make_batch(m, "B", expiry=date(2025, 6, 1), stock=10)

    allocations = select_batches_for_sale(db, m.id, 8, today=TODAY)

    assert [(x.batch.id, x.qty) for x in allocations] == [(a.id, 5), (b.id, 3)]
    # proposal only
    assert _stock(db, a, b) == [5, 10]


def test_expired_and_empty_batches_never_qualify(db, make_medicine, make_batch):
    m = make_medicine()
    c = make_batch(m, "C", expiry=date(2020, 1, 1), stock=3)
    d = make_batch(m, "D", expiry=date(2030, 1, 1), stock=0)

    with pytest.raises(InsufficientStock) as exc:
        select_batches_for_sale(db, m.id, 2, today=TODAY)

    assert exc.value.shortfall == 2
    assert exc.value.medicine_id == m.id
    assert _stock(db, c, d) == [3, 0]


def test_expired_batch_skipped_even_when_earliest(db, make_medicine, make_batch):
    m = make_medicine()
    make_batch(m, "OLD", expiry=date(2024, 11, 30), stock=50)
    fresh = make_batch(m, "NEW", expiry=date(2025, 5, 1), stock=5)

    allocations = select_batches_for_sale(db, m.id, 5, today=TODAY)

    assert [(x.batch.id, x.qty) for x in allocations] == [(fresh.id, 5)]


def test_batch_expiring_today_is_not_saleable(db, make_medicine, make_batch):
    m = make_medicine()
    make_batch(m, "TODAY", expiry=TODAY, stock=5)

    assert available_stock(db, m.id, today=TODAY) == 0
    with pytest.raises(InsufficientStock):
        select_batches_for_sale(db, m.id, 1, today=TODAY)


def test_shortfall_is_requested_minus_available(db, make_medicine, make_batch):
    m = make_medicine()
    a = make_batch(m, "A", expiry=date(2025, 1, 1), stock=5)
    b = make_batch(m, "B", expiry=date(2025, 6, 1), stock=10)

    with pytest.raises(InsufficientStock) as exc:
        select_batches_for_sale(db, m.id, 22, today=TODAY)

    assert exc.value.shortfall == 7
    assert exc.value.details == {"medicine_id": m.id, "shortfall": 7}
    assert _stock(db, a, b) == [5, 10]


def test_same_expiry_ties_break_by_id(db, make_medicine, make_batch):
    m = make_medicine()
    first = make_batch(m, "X1", expiry=date(2025, 3, 1), stock=2)
    second = make_batch(m, "X2", expiry=date(2025, 3, 1), stock=2)

    allocations = select_batches_for_sale(db, m.id, 3, today=TODAY)

    assert [(x.batch.id, x.qty) for x in allocations] == [(first.id, 2), (second.id, 1)]


def test_reserved_units_are_not_offered_again(db, make_medicine, make_batch):
    m = make_medicine()
    a = make_batch(m, "A", expiry=date(2025, 1, 1), stock=5)
    b = make_batch(m, "B", expiry=date(2025, 6, 1), stock=10)

    allocations = select_batches_for_sale(db, m.id, 4, reserved={a.id: 3}, today=TODAY)

    assert [(x.batch.id, x.qty) for x in allocations] == [(a.id, 2), (b.id, 2)]

    with pytest.raises(InsufficientStock) as exc:
        select_batches_for_sale(db, m.id, 5, reserved={a.id: 5, b.id: 8}, today=TODAY)
    assert exc.value.shortfall == 3


@pytest.mark.parametrize("qty", [0, -3])
def test_non_positive_quantity_is_rejected(db, make_medicine, make_batch, qty):
    m = make_medicine()
    make_batch(m, stock=10)

    with pytest.raises(ValidationError) as exc:
        select_batches_for_sale(db, m.id, qty, today=TODAY)
    assert exc.value.field == "quantity"


def test_conditional_decrement_refuses_to_go_negative(db, make_medicine, make_batch):
    m = make_medicine()
    b = make_batch(m, stock=3)

    consume_batch_stock(db, batch_id=b.id, medicine_id=m.id, qty=2)
    db.commit()
    assert _stock(db, b) == [1]

    with pytest.raises(InsufficientStock) as exc:
        consume_batch_stock(db, batch_id=b.id, medicine_id=m.id, qty=2)
    db.rollback()

    assert exc.value.shortfall == 1
    assert _stock(db, b) == [1]


def test_negative_reservation_cannot_inflate_a_batch(db, make_medicine, make_batch):
    m = make_medicine()
    b = make_batch(m, "ONLY", expiry=date(2025, 6, 1), stock=5)

    with pytest.raises(ValidationError) as exc:
        select_batches_for_sale(db, m.id, 50, reserved={b.id: -45}, today=TODAY)

    assert exc.value.field == "reserved"
    assert _stock(db, b) == [5]


def test_allocation_never_exceeds_batch_stock(db, make_medicine, make_batch):
    m = make_medicine()
    a = make_batch(m, "A", expiry=date(2025, 1, 1), stock=5)
    b = make_batch(m, "B", expiry=date(2025, 6, 1), stock=10)

    allocations = select_batches_for_sale(db, m.id, 12, reserved={a.id: 2}, today=TODAY)

    assert [(x.batch.id, x.qty) for x in allocations] == [(a.id, 3), (b.id, 9)]
    assert all(x.qty <= x.batch.current_stock for x in allocations)
