# FILE: pharmacy_pos/services/drug_schedules.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pharmacy_pos.core.errors import ValidationError
from pharmacy_pos.models.pharmacy import ScheduleType


# ------------------------------------------------------------
# India: Drugs & Cosmetics Act schedules handled at the counter.
# Only H1 writes the dispense register; X is flagged for storage.
# ------------------------------------------------------------
IN_DCA: Dict[str, Dict[str, Any]] = {
    "GENERAL": {"label": "General", "desc": "Over the counter, no schedule restrictions."},
    "H":  {"label": "Schedule H",  "desc": "Prescription drug (Rx only).", "requires_prescription": True},
    "H1": {"label": "Schedule H1", "desc": "High-surveillance Rx; register tracking required.", "requires_prescription": True, "requires_register": True},
    "X":  {"label": "Schedule X",  "desc": "Narcotic/psychotropic; strict storage/sale/records.", "requires_prescription": True, "strict_storage": True},
}

_ALIASES = {
    "": "GENERAL",
    "OTC": "GENERAL",
    "NONE": "GENERAL",
    "GEN": "GENERAL",
}


def normalize_schedule(code: Optional[str]) -> ScheduleType:
    """
    "h-1" -> H1, "" / "otc" -> GENERAL.
    Unknown codes raise ValidationError.
    """
    c = (code or "").strip().upper()
    # Normalize common variants: "H-1" -> "H1", "SCHEDULE H1" -> "H1"
    c = c.replace("SCHEDULE", "").replace("-", "").replace(" ", "")
    c = _ALIASES.get(c, c)
    try:
        return ScheduleType(c)
    except ValueError:
        raise ValidationError("schedule_type", f"unknown schedule '{code}'")


def get_schedule_meta(code: Optional[str]) -> Dict[str, Any]:
    """
    Returns normalized schedule meta:
      {
        code, label, desc,
        requires_prescription, requires_register, strict_storage
      }
    """
    code_norm = normalize_schedule(code).value
    base = IN_DCA[code_norm]

    return {
        "code": code_norm,
        "label": base.get("label", code_norm),
        "desc": base.get("desc", ""),
        "requires_prescription": bool(base.get("requires_prescription", False)),
        "requires_register": bool(base.get("requires_register", False)),
        "strict_storage": bool(base.get("strict_storage", False)),
    }


def requires_register(schedule: ScheduleType | str | None) -> bool:
    code = schedule.value if isinstance(schedule, ScheduleType) else schedule
    return get_schedule_meta(code)["requires_register"]


def list_schedules() -> List[Dict[str, Any]]:
    return [get_schedule_meta(code) for code in IN_DCA]
