# FILE: pharmacy_pos/models/pharmacy.py
from __future__ import annotations

import enum
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, ForeignKey, Text, Enum,
    CheckConstraint, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship

from pharmacy_pos.core.clock import now_local, today_local
from pharmacy_pos.db.base import Base

Money = Numeric(14, 2)
Percent = Numeric(5, 2)


# -------------------------
# Enums
# -------------------------
class ScheduleType(str, enum.Enum):
    GENERAL = "GENERAL"
    H = "H"
    H1 = "H1"
    X = "X"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    CREDIT = "CREDIT"


# -------------------------
# Masters
# -------------------------
class Medicine(Base):
    __tablename__ = "medicines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    generic_name = Column(String(255), default="")
    brand_name = Column(String(255), nullable=False, default="", index=True)
    dosage = Column(String(100), default="")
    medicine_type = Column(String(100), default="", index=True)  # Tablet / Capsule / Syrup
    manufacturer = Column(String(255), nullable=False, default="", index=True)
    description = Column(Text, default="")

    # Changing this never rewrites register entries already written
    schedule_type = Column(
        Enum(ScheduleType, name="medicine_schedule_type"),
        nullable=False,
        default=ScheduleType.GENERAL,
        index=True,
    )
    hsn = Column(String(50), nullable=False, default="", index=True)
    gst = Column(Percent, nullable=False, default=Decimal("0"))

    created_at = Column(DateTime, default=now_local, nullable=False)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local, nullable=False)

    # Batch references Medicine, deletion is guarded in the service layer
    batches = relationship("Batch", back_populates="medicine")


class Batch(Base):
    """
    One received lot of a medicine.
    Restocks always insert a new row, batch_number is not unique.
    """
    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_batches_stock_non_negative"),
        Index("ix_batches_medicine_expiry", "medicine_id", "expiry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False, index=True)

    batch_number = Column(String(100), nullable=False, index=True)
    expiry_date = Column(Date, nullable=False, index=True)

    mrp = Column(Money, nullable=False, default=Decimal("0"))
    selling_price = Column(Money, nullable=False, default=Decimal("0"))
    purchase_price = Column(Money, nullable=False, default=Decimal("0"))

    current_stock = Column(Integer, nullable=False, default=0, index=True)
    min_stock = Column(Integer, nullable=False, default=0)
    max_stock = Column(Integer, nullable=False, default=0)

    supplier_id = Column(String(50), nullable=False, default="")
    received_date = Column(Date, nullable=False, default=today_local)

    created_at = Column(DateTime, default=now_local, nullable=False)
    updated_at = Column(DateTime, default=now_local, onupdate=now_local, nullable=False)

    medicine = relationship("Medicine", back_populates="batches")


# -------------------------
# Safe number generator
# -------------------------
class NumberSeries(Base):
    __tablename__ = "number_series"
    __table_args__ = (
        UniqueConstraint("key", "date_key", name="uq_number_series_key_date"),
    )

    id = Column(Integer, primary_key=True)
    key = Column(String(30), nullable=False)         # INV
    date_key = Column(Integer, nullable=False)      # YYYYMMDD
    next_seq = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, default=now_local, onupdate=now_local)


# -------------------------
# Sales
# -------------------------
class Sale(Base):
    __tablename__ = "sales"
    __table_args__ = (
        Index("ix_sales_sale_date", "sale_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(64), unique=True, index=True, nullable=False)

    customer_name = Column(String(255), nullable=True, index=True)
    customer_phone = Column(String(50), nullable=True, index=True)
    doctor_name = Column(String(255), nullable=True)
    prescription_number = Column(String(100), nullable=True)

    subtotal_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    discount_percent = Column(Percent, nullable=False, default=Decimal("0"))
    discount_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    gst_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    total_amount = Column(Money, nullable=False, default=Decimal("0.00"))

    payment_method = Column(Enum(PaymentMethod, name="sale_payment_method"), nullable=False,
                            default=PaymentMethod.CASH)
    sale_date = Column(DateTime, nullable=False, default=now_local)
    pharmacist_id = Column(String(64), nullable=False, index=True)

    items = relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )


class SaleItem(Base):
    """
    Per-batch consumption line of a sale.
    medicine_name / batch_number / expiry_date are point-in-time snapshots.
    """
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)

    medicine_id = Column(Integer, nullable=False, index=True)
    medicine_name = Column(String(255), nullable=False)
    batch_id = Column(Integer, nullable=False, index=True)
    batch_number = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Money, nullable=False, default=Decimal("0.00"))
    total_price = Column(Money, nullable=False, default=Decimal("0.00"))
    discount_amount = Column(Money, nullable=False, default=Decimal("0.00"))
    gst_percent = Column(Percent, nullable=False, default=Decimal("0"))
    gst_amount = Column(Money, nullable=False, default=Decimal("0.00"))

    sale = relationship("Sale", back_populates="items")


# -------------------------
# Regulatory register
# -------------------------
class ScheduleH1Entry(Base):
    """
    Schedule H1 register: one row per dispensed sale line.
    Append-only, never aggregated.
    """
    __tablename__ = "schedule_h1_entries"
    __table_args__ = (
        Index("ix_h1_dispensed_date", "dispensed_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, nullable=True, index=True)
    invoice_number = Column(String(64), nullable=True)

    medicine_id = Column(Integer, nullable=False, index=True)
    medicine_name = Column(String(255), nullable=False)
    batch_number = Column(String(100), nullable=False)

    customer_name = Column(String(255), nullable=False, index=True)
    doctor_name = Column(String(255), nullable=False)
    prescription_number = Column(String(100), nullable=False)

    quantity_dispensed = Column(Integer, nullable=False)
    dispensed_date = Column(DateTime, nullable=False, default=now_local)
    pharmacist_signature = Column(String(255), nullable=False, default="System")
