# FILE: pharmacy_pos/schemas/stock_alerts.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict

from pharmacy_pos.schemas.pharmacy import SaleSummaryOut

Money = Decimal


class RestockPriority(str, Enum):
    CRITICAL = "critical"
    LOW = "low"
    NORMAL = "normal"


class BatchAlertOut(BaseModel):
    batch_id: int
    medicine_id: int
    medicine_name: str
    batch_number: str
    expiry_date: date
    days_to_expiry: int
    current_stock: int
    min_stock: int
    max_stock: int

    model_config = ConfigDict(from_attributes=True)


class RestockSuggestionOut(BaseModel):
    medicine_id: int
    medicine_name: str
    current_stock: int
    min_stock: int
    max_stock: int
    suggested_quantity: int
    priority: RestockPriority
    average_purchase_price: Money = Decimal("0")


class DashboardOut(BaseModel):
    total_medicines: int
    total_batches: int
    today_sales_count: int
    today_revenue: Money
    low_stock_count: int
    expiring_count: int
    expiry_alert_days: int
    recent_sales: List[SaleSummaryOut] = []
