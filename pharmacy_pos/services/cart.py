# FILE: pharmacy_pos/services/cart.py
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from pharmacy_pos.core.errors import NotFound, ValidationError
from pharmacy_pos.models.pharmacy import Medicine, PaymentMethod, Sale
from pharmacy_pos.schemas.pharmacy import CartLineOut, CustomerInfo, TotalsOut
from pharmacy_pos.services.inventory import reserved_by_batch, select_batches_for_sale
from pharmacy_pos.services.sales import ResolvedLine, compute_totals, process_sale

logger = logging.getLogger(__name__)


class CartSession:
    """
    Cart of one counter session. Lines are locked to a batch when added
    (FEFO at selection time) and are not re-resolved at checkout.
    """

    def __init__(self, db: Session, *, pharmacist_id: Optional[str] = None) -> None:
        self.db = db
        self.pharmacist_id = pharmacist_id
        self.lines: List[ResolvedLine] = []

    def __len__(self) -> int:
        return len(self.lines)

    def _find(self, batch_id: int) -> Optional[ResolvedLine]:
        for line in self.lines:
            if line.batch_id == batch_id:
                return line
        return None

    def add(self, medicine_id: int, quantity: int, *, today: Optional[date] = None) -> List[ResolvedLine]:
        """
        Allocates `quantity` units of a medicine FEFO, skipping units already
        held by this cart. Same-batch allocations merge into the existing line.
        Returns the lines touched.
        """
        medicine = self.db.get(Medicine, medicine_id)
        if not medicine:
            raise NotFound("Medicine", medicine_id)

        allocations = select_batches_for_sale(
            self.db,
            medicine_id,
            quantity,
            reserved=reserved_by_batch(self.lines),
            today=today,
        )

        touched: List[ResolvedLine] = []
        for alloc in allocations:
            line = self._find(alloc.batch.id)
            if line:
                line.quantity += alloc.qty
            else:
                line = ResolvedLine(medicine, alloc.batch, alloc.qty)
                self.lines.append(line)
            touched.append(line)
        return touched

    def remove(self, medicine_id: int, batch_id: int) -> None:
        self.lines = [
            ln for ln in self.lines
            if not (ln.medicine_id == medicine_id and ln.batch_id == batch_id)
        ]

    def update_quantity(self, medicine_id: int, batch_id: int, quantity: int) -> None:
        """Sets a line's quantity, capped by the batch stock; <= 0 removes it."""
        if quantity <= 0:
            self.remove(medicine_id, batch_id)
            return

        line = self._find(batch_id)
        if not line or line.medicine_id != medicine_id:
            raise NotFound("Cart line", f"{medicine_id}/{batch_id}")
        if quantity > int(line.batch.current_stock or 0):
            raise ValidationError(
                "quantity", f"only {line.batch.current_stock} units left in batch {line.batch.batch_number}")
        line.quantity = int(quantity)

    def totals(self, discount_percent=0) -> TotalsOut:
        return compute_totals(self.lines, discount_percent)

    def clear(self) -> None:
        self.lines = []

    def view(self) -> List[CartLineOut]:
        return [
            CartLineOut(
                medicine_id=ln.medicine_id,
                medicine_name=ln.medicine.name,
                batch_id=ln.batch_id,
                batch_number=ln.batch.batch_number,
                expiry_date=ln.batch.expiry_date,
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                line_total=ln.line_subtotal,
            ) for ln in self.lines
        ]

    def checkout(
        self,
        customer: Optional[CustomerInfo] = None,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        discount_percent=0,
        *,
        ip_address: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Sale:
        """Runs the sale; the cart is emptied only when it commits."""
        sale = process_sale(
            self.db,
            self.lines,
            customer,
            payment_method,
            discount_percent,
            pharmacist_id=self.pharmacist_id,
            ip_address=ip_address,
            now=now,
        )
        self.clear()
        return sale
