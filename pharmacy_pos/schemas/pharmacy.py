# FILE: pharmacy_pos/schemas/pharmacy.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, field_validator

from pharmacy_pos.core.errors import ValidationError as ScheduleCodeError
from pharmacy_pos.models.pharmacy import PaymentMethod, ScheduleType
from pharmacy_pos.services.drug_schedules import normalize_schedule

Money = Decimal


def _schedule_or_value_error(v) -> ScheduleType:
    try:
        return normalize_schedule(v)
    except ScheduleCodeError as e:
        raise ValueError(e.reason)


# -------------------------
# Medicines
# -------------------------
class MedicineBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: Optional[str] = ""
    brand_name: str = ""
    dosage: Optional[str] = ""
    medicine_type: Optional[str] = ""
    manufacturer: str = ""
    description: Optional[str] = ""
    schedule_type: ScheduleType = ScheduleType.GENERAL
    hsn: str = ""
    gst: Decimal = Field(Decimal("0"), ge=0, le=100)

    @field_validator("schedule_type", mode="before")
    @classmethod
    def _norm_schedule(cls, v):
        if isinstance(v, ScheduleType):
            return v
        return _schedule_or_value_error(v)


class MedicineCreate(MedicineBase):
    pass


class MedicineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    generic_name: Optional[str] = None
    brand_name: Optional[str] = None
    dosage: Optional[str] = None
    medicine_type: Optional[str] = None
    manufacturer: Optional[str] = None
    description: Optional[str] = None
    schedule_type: Optional[ScheduleType] = None
    hsn: Optional[str] = None
    gst: Optional[Decimal] = Field(None, ge=0, le=100)

    @field_validator("schedule_type", mode="before")
    @classmethod
    def _norm_schedule(cls, v):
        if v is None or isinstance(v, ScheduleType):
            return v
        return _schedule_or_value_error(v)


class MedicineOut(MedicineBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MedicineStockOut(BaseModel):
    medicine: MedicineOut
    batch_count: int
    total_stock: int
    saleable_stock: int
    nearest_expiry: Optional[date] = None


# -------------------------
# Batches
# -------------------------
class BatchCreate(BaseModel):
    batch_number: str = Field(..., min_length=1, max_length=100)
    expiry_date: date
    mrp: Money = Field(Decimal("0"), ge=0)
    selling_price: Money = Field(Decimal("0"), ge=0)
    purchase_price: Money = Field(Decimal("0"), ge=0)
    current_stock: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)
    max_stock: int = Field(0, ge=0)
    supplier_id: str = ""
    received_date: Optional[date] = None


class BatchOut(BaseModel):
    id: int
    medicine_id: int
    batch_number: str
    expiry_date: date
    mrp: Money
    selling_price: Money
    purchase_price: Money
    current_stock: int
    min_stock: int
    max_stock: int
    supplier_id: str
    received_date: date

    model_config = ConfigDict(from_attributes=True)


# -------------------------
# Allocation / cart
# -------------------------
class AllocateIn(BaseModel):
    medicine_id: int
    quantity: int = Field(..., gt=0)
    # Units already held in the client's cart, keyed by batch id
    reserved: dict[int, conint(ge=0)] = Field(default_factory=dict)


class AllocationOut(BaseModel):
    medicine_id: int
    batch_id: int
    batch_number: str
    expiry_date: date
    quantity: int
    unit_price: Money


class CartLineIn(BaseModel):
    medicine_id: int
    batch_id: int
    quantity: int = Field(..., gt=0)


class CartLineOut(BaseModel):
    medicine_id: int
    medicine_name: str
    batch_id: int
    batch_number: str
    expiry_date: date
    quantity: int
    unit_price: Money
    line_total: Money


class CustomerInfo(BaseModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    doctor_name: Optional[str] = None
    prescription_number: Optional[str] = None


class CheckoutIn(BaseModel):
    lines: List[CartLineIn] = Field(..., min_length=1)
    customer: CustomerInfo = Field(default_factory=CustomerInfo)
    payment_method: PaymentMethod = PaymentMethod.CASH
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100)


class TotalsOut(BaseModel):
    subtotal: Money
    discount_amount: Money
    gst_amount: Money
    total: Money


# -------------------------
# Sales
# -------------------------
class SaleItemOut(BaseModel):
    id: int
    medicine_id: int
    medicine_name: str
    batch_id: int
    batch_number: str
    expiry_date: Optional[date] = None
    quantity: int
    unit_price: Money
    total_price: Money
    discount_amount: Money
    gst_percent: Decimal
    gst_amount: Money

    model_config = ConfigDict(from_attributes=True)


class SaleOut(BaseModel):
    id: int
    invoice_number: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    doctor_name: Optional[str] = None
    prescription_number: Optional[str] = None
    items: List[SaleItemOut] = []
    subtotal_amount: Money
    discount_percent: Decimal
    discount_amount: Money
    gst_amount: Money
    total_amount: Money
    payment_method: PaymentMethod
    sale_date: datetime
    pharmacist_id: str

    model_config = ConfigDict(from_attributes=True)


class SaleSummaryOut(BaseModel):
    id: int
    invoice_number: str
    customer_name: Optional[str] = None
    total_amount: Money
    payment_method: PaymentMethod
    sale_date: datetime

    model_config = ConfigDict(from_attributes=True)


class RestockRequestOut(BaseModel):
    medicine_id: int
    medicine_name: str
    quantity_sold: int
    suggested_quantity: int
