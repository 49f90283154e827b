# FILE: pharmacy_pos/services/sales.py
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from pharmacy_pos.core import clock
from pharmacy_pos.core.config import settings
from pharmacy_pos.core.errors import (
    NotFound,
    PersistenceError,
    PharmacyError,
    ValidationError,
)
from pharmacy_pos.models.audit import AuditAction, AuditEntity
from pharmacy_pos.models.pharmacy import (
    Batch,
    Medicine,
    PaymentMethod,
    Sale,
    SaleItem,
    ScheduleH1Entry,
)
from pharmacy_pos.schemas.pharmacy import CustomerInfo, RestockRequestOut, TotalsOut
from pharmacy_pos.services.audit import log_action
from pharmacy_pos.services.drug_schedules import requires_register
from pharmacy_pos.services.inventory import consume_batch_stock
from pharmacy_pos.services.number_series import next_invoice_number

logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")
ZERO = Decimal("0")

WALK_IN_CUSTOMER = "Walk-in Customer"
DOCTOR_NOT_SPECIFIED = "Not specified"
PRESCRIPTION_NOT_PROVIDED = "Not provided"

RESTOCK_MIN_REQUEST = 50


def _round_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY, rounding=ROUND_HALF_UP)


def _d(x) -> Decimal:
    try:
        return Decimal(str(x if x is not None else 0))
    except Exception:
        return ZERO


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


# ---------- Pricing ----------


class ResolvedLine:
    """A cart line bound to concrete rows: (medicine, batch, quantity)."""

    def __init__(self, medicine: Medicine, batch: Batch, quantity: int) -> None:
        self.medicine = medicine
        self.batch = batch
        self.quantity = int(quantity)

    @property
    def medicine_id(self) -> int:
        return self.medicine.id

    @property
    def batch_id(self) -> int:
        return self.batch.id

    @property
    def unit_price(self) -> Decimal:
        return _round_money(_d(self.batch.selling_price))

    @property
    def line_subtotal(self) -> Decimal:
        return _round_money(self.unit_price * self.quantity)

    def __repr__(self) -> str:
        return (f"ResolvedLine(medicine_id={self.medicine_id}, "
                f"batch_id={self.batch_id}, quantity={self.quantity})")


class PricedLine:

    def __init__(self, line: ResolvedLine, discount_share: Decimal, gst_percent: Decimal,
                 gst_amount: Decimal) -> None:
        self.line = line
        self.discount_share = discount_share
        self.gst_percent = gst_percent
        self.gst_amount = gst_amount


def _split_discount(discount: Decimal, subtotals: Sequence[Decimal]) -> List[Decimal]:
    """
    Largest-remainder apportionment: every share is floored to the cent,
    then the leftover cents go to the lines with the biggest fractions
    (earlier line first on a tie). Shares sum to ``discount`` and each lies
    in [0, line subtotal].
    """
    subtotal = sum(subtotals, ZERO)
    if subtotal <= 0 or discount <= 0:
        return [ZERO for _ in subtotals]

    exact = [discount * s / subtotal for s in subtotals]
    shares = [e.quantize(MONEY, rounding=ROUND_DOWN) for e in exact]
    leftover = int((discount - sum(shares, ZERO)) / MONEY)

    by_fraction = sorted(range(len(shares)), key=lambda i: (shares[i] - exact[i], i))
    for i in by_fraction[:leftover]:
        shares[i] += MONEY
    return shares


def price_lines(lines: Sequence[ResolvedLine],
                discount_percent) -> tuple[List[PricedLine], TotalsOut]:
    """
    Discount is a percentage of the overall subtotal, apportioned to lines
    pro rata to their subtotal (see _split_discount).
    GST per line = (line subtotal - line discount share) * gst / 100.
    total = subtotal - discount + gst
    """
    pct = _d(discount_percent)
    if pct < 0 or pct > 100:
        raise ValidationError("discount_percent", "must be between 0 and 100")

    subtotal = sum((ln.line_subtotal for ln in lines), ZERO)
    discount = _round_money(subtotal * pct / Decimal(100))
    shares = _split_discount(discount, [ln.line_subtotal for ln in lines])

    priced: List[PricedLine] = []
    for ln, share in zip(lines, shares):
        gst_percent = _d(ln.medicine.gst)
        gst_amount = _round_money((ln.line_subtotal - share) * gst_percent / Decimal(100))
        priced.append(PricedLine(ln, share, gst_percent, gst_amount))

    gst_total = sum((p.gst_amount for p in priced), ZERO)
    totals = TotalsOut(
        subtotal=_round_money(subtotal),
        discount_amount=discount,
        gst_amount=_round_money(gst_total),
        total=_round_money(subtotal - discount + gst_total),
    )
    return priced, totals


def compute_totals(lines: Sequence[ResolvedLine], discount_percent=0) -> TotalsOut:
    return price_lines(lines, discount_percent)[1]


# ---------- Line resolution ----------


def resolve_lines(db: Session, lines, *, today: Optional[date] = None) -> List[ResolvedLine]:
    """
    Accepts anything with medicine_id / batch_id / quantity (CartLineIn,
    ResolvedLine...). Validation happens before any write.
    """
    today = today or clock.today_local()
    if not lines:
        raise ValidationError("lines", "cart is empty")

    resolved: List[ResolvedLine] = []
    for raw in lines:
        qty = int(getattr(raw, "quantity", 0) or 0)
        if qty <= 0:
            raise ValidationError("quantity", "must be > 0")

        batch = db.get(Batch, raw.batch_id)
        if not batch:
            raise NotFound("Batch", raw.batch_id)
        if batch.medicine_id != raw.medicine_id:
            raise ValidationError(
                "batch_id", f"batch {batch.id} does not belong to medicine {raw.medicine_id}")
        if batch.expiry_date <= today:
            raise ValidationError("batch_id", f"batch {batch.batch_number} has expired")

        medicine = db.get(Medicine, raw.medicine_id)
        if not medicine:
            raise NotFound("Medicine", raw.medicine_id)

        resolved.append(ResolvedLine(medicine, batch, qty))
    return resolved


# ---------- Sale transaction ----------


def process_sale(
    db: Session,
    lines,
    customer: Optional[CustomerInfo] = None,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    discount_percent=0,
    *,
    pharmacist_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Sale:
    """
    Completes a sale in one database transaction:
      1) invoice number from the locked day series
      2) Sale + SaleItem rows with medicine/batch snapshots
      3) atomic conditional stock decrement per line
      4) Schedule H1 register rows for H1 lines
      5) SALE audit entry
    Any failure rolls back everything, stock included.
    """
    now = now or clock.now_local()
    customer = customer or CustomerInfo()
    pharmacist_id = pharmacist_id or settings.DEFAULT_PHARMACIST_ID

    resolved = resolve_lines(db, lines, today=now.date())
    priced, totals = price_lines(resolved, discount_percent)

    try:
        invoice_number = next_invoice_number(db, now.date())

        sale = Sale(
            invoice_number=invoice_number,
            customer_name=_clean(customer.customer_name),
            customer_phone=_clean(customer.customer_phone),
            doctor_name=_clean(customer.doctor_name),
            prescription_number=_clean(customer.prescription_number),
            subtotal_amount=totals.subtotal,
            discount_percent=_d(discount_percent),
            discount_amount=totals.discount_amount,
            gst_amount=totals.gst_amount,
            total_amount=totals.total,
            payment_method=payment_method,
            sale_date=now,
            pharmacist_id=pharmacist_id,
        )
        for p in priced:
            ln = p.line
            sale.items.append(
                SaleItem(
                    medicine_id=ln.medicine.id,
                    medicine_name=ln.medicine.name,
                    batch_id=ln.batch.id,
                    batch_number=ln.batch.batch_number,
                    expiry_date=ln.batch.expiry_date,
                    quantity=ln.quantity,
                    unit_price=ln.unit_price,
                    total_price=ln.line_subtotal,
                    discount_amount=p.discount_share,
                    gst_percent=p.gst_percent,
                    gst_amount=p.gst_amount,
                ))
        db.add(sale)
        db.flush()

        for ln in resolved:
            consume_batch_stock(db, batch_id=ln.batch.id, medicine_id=ln.medicine.id,
                                qty=ln.quantity)

        h1_count = 0
        for ln in resolved:
            if not requires_register(ln.medicine.schedule_type):
                continue
            db.add(
                ScheduleH1Entry(
                    sale_id=sale.id,
                    invoice_number=sale.invoice_number,
                    medicine_id=ln.medicine.id,
                    medicine_name=ln.medicine.name,
                    batch_number=ln.batch.batch_number,
                    customer_name=sale.customer_name or WALK_IN_CUSTOMER,
                    doctor_name=sale.doctor_name or DOCTOR_NOT_SPECIFIED,
                    prescription_number=sale.prescription_number or PRESCRIPTION_NOT_PROVIDED,
                    quantity_dispensed=ln.quantity,
                    dispensed_date=now,
                ))
            h1_count += 1

        log_action(
            db,
            action=AuditAction.SALE,
            entity_type=AuditEntity.SALE,
            entity_id=sale.id,
            user_id=pharmacist_id,
            new_values={
                "invoice_number": sale.invoice_number,
                "total_amount": str(sale.total_amount),
                "items": [{
                    "medicine_id": ln.medicine.id,
                    "batch_id": ln.batch.id,
                    "quantity": ln.quantity,
                } for ln in resolved],
            },
            ip_address=ip_address,
        )

        db.commit()
    except PharmacyError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Sale failed, rolled back")
        raise PersistenceError(f"Failed to save sale: {type(e).__name__}") from e

    db.refresh(sale)
    logger.info("Sale %s completed: %d lines, total %s, %d H1 entries", sale.invoice_number,
                len(resolved), sale.total_amount, h1_count)
    return sale


# ---------- Queries ----------


def get_sale(db: Session, sale_id: int) -> Sale:
    sale = (db.query(Sale).options(selectinload(Sale.items)).filter(Sale.id == sale_id).first())
    if not sale:
        raise NotFound("Sale", sale_id)
    return sale


def get_sale_by_invoice(db: Session, invoice_number: str) -> Sale:
    sale = (db.query(Sale).options(selectinload(Sale.items)).filter(
        Sale.invoice_number == invoice_number).first())
    if not sale:
        raise NotFound("Sale", invoice_number)
    return sale


def list_sales(
    db: Session,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 100,
) -> List[Sale]:
    if date_from and date_to and date_from > date_to:
        raise ValidationError("date_from", "must be on or before date_to")

    q = db.query(Sale)
    if date_from:
        q = q.filter(Sale.sale_date >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(Sale.sale_date < datetime.combine(date_to + timedelta(days=1), time.min))
    return q.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()


def restock_requests_for_sale(sale: Sale) -> List[RestockRequestOut]:
    """
    Hand-off to the restocking workflow: one request per medicine sold,
    asking for twice the sold quantity (at least 50 units).
    """
    sold: Dict[int, int] = {}
    names: Dict[int, str] = {}
    for item in sale.items:
        sold[item.medicine_id] = sold.get(item.medicine_id, 0) + int(item.quantity)
        names.setdefault(item.medicine_id, item.medicine_name)

    return [
        RestockRequestOut(
            medicine_id=mid,
            medicine_name=names[mid],
            quantity_sold=qty,
            suggested_quantity=max(qty * 2, RESTOCK_MIN_REQUEST),
        ) for mid, qty in sold.items()
    ]
