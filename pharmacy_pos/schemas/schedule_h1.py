# FILE: pharmacy_pos/schemas/schedule_h1.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ScheduleH1EntryOut(BaseModel):
    id: int
    sale_id: Optional[int] = None
    invoice_number: Optional[str] = None
    medicine_id: int
    medicine_name: str
    batch_number: str
    customer_name: str
    doctor_name: str
    prescription_number: str
    quantity_dispensed: int
    dispensed_date: datetime
    pharmacist_signature: str

    model_config = ConfigDict(from_attributes=True)
