# pharmacy_pos/models/__init__.py
from .pharmacy import (
    ScheduleType,
    PaymentMethod,
    Medicine,
    Batch,
    NumberSeries,
    Sale,
    SaleItem,
    ScheduleH1Entry,
)
from .audit import AuditAction, AuditEntity, AuditLog

__all__ = [
    "ScheduleType",
    "PaymentMethod",
    "Medicine",
    "Batch",
    "NumberSeries",
    "Sale",
    "SaleItem",
    "ScheduleH1Entry",
    "AuditAction",
    "AuditEntity",
    "AuditLog",
]
