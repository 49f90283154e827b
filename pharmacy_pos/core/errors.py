# FILE: pharmacy_pos/core/errors.py
"""
Domain errors raised by the services.

Every error carries a machine readable ``code`` and a ``details`` dict so the
API layer can keep the error kind in the response envelope instead of only a
string.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class PharmacyError(Exception):
    status_code: int = 400
    code: str = "PHARMACY_ERROR"

    def __init__(self, msg: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(msg)
        self.msg = msg
        self.details: Dict[str, Any] = details or {}


class InsufficientStock(PharmacyError):
    """Requested units exceed the saleable stock of a medicine."""
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, medicine_id: int, shortfall: int):
        super().__init__(
            f"Insufficient stock. Need {shortfall} more units.",
            {
                "medicine_id": medicine_id,
                "shortfall": shortfall
            },
        )
        self.medicine_id = medicine_id
        self.shortfall = shortfall


class HasActiveStock(PharmacyError):
    """Medicine still owns batches holding stock."""
    status_code = 409
    code = "HAS_ACTIVE_STOCK"

    def __init__(self, medicine_id: int):
        super().__init__(
            "Cannot delete medicine with existing stock. "
            "Please clear all batches first.",
            {"medicine_id": medicine_id},
        )
        self.medicine_id = medicine_id


class ValidationError(PharmacyError):
    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}", {
            "field": field,
            "reason": reason
        })
        self.field = field
        self.reason = reason


class NotFound(PharmacyError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found.", {
            "entity": entity,
            "id": entity_id
        })
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(PharmacyError):
    status_code = 500
    code = "PERSISTENCE_ERROR"

    def __init__(self, msg: str = "Record store operation failed."):
        super().__init__(msg)
