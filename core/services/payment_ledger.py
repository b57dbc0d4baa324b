"""
Payment ledger for bills.

Payments are recorded against a bill and allocated to the bill items they
settle. Both are append-only: corrections are made with a negative (refund)
payment, never by editing or deleting rows. No running totals are stored on
payments; totals are always summed from the ledger.
"""

import logging
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from core.models import (
    AllocationCreate,
    AppointmentBill,
    BillStatus,
    Payment,
    PaymentAllocation,
    PaymentCreate,
    PaymentMethod,
)
from core.repository import StudioRepository
from utils.timezone import ensure_utc

logger = logging.getLogger(__name__)


class BillSummary(BaseModel):
    """Totals, paid and outstanding amounts of a bill."""

    bill_id: UUID
    status: BillStatus
    list_total: int
    discount_total: int
    bill_total: int
    paid_total: int

    @property
    def due_total(self) -> int:
        return self.bill_total - self.paid_total


def split_proportionally(amount: int, weights: list[int]) -> list[int]:
    """
    Split amount across weights, last share absorbing rounding.

    Zero total weight splits evenly. Shares always sum to amount.
    """
    if not weights:
        return []

    total = sum(weights)
    if total <= 0:
        weights = [1] * len(weights)
        total = len(weights)

    shares = [amount * weight // total for weight in weights[:-1]]
    shares.append(amount - sum(shares))
    return shares


class PaymentLedger:
    """Service for payment and allocation operations."""

    def __init__(self, repository: StudioRepository):
        self.repository = repository

    def _get_bill(self, bill_id: UUID) -> AppointmentBill:
        bill = self.repository.get_bill(bill_id)
        if bill is None:
            raise ValueError(f"Bill {bill_id} not found")
        return bill

    def record_payment(
        self,
        bill_id: UUID,
        amount: int,
        method: PaymentMethod | str = PaymentMethod.CASH,
        paid_at: datetime | None = None,
        notes: str | None = None,
    ) -> Payment:
        """
        Record a payment (or refund, if negative) against a bill.

        The bill moves between OPEN and SETTLED in the same write. A
        STORED_VALUE payment debits the customer's member balance and a
        STORED_VALUE refund credits it.

        Args:
            bill_id: Bill being paid
            amount: Amount paid; negative for a refund, never zero
            method: Payment method, case-insensitive
            paid_at: When the money changed hands (defaults to now)
            notes: Optional notes

        Returns:
            Recorded payment

        Raises:
            ValueError: If bill not found or voided, amount is zero or not
                an integer, method is unknown, or a STORED_VALUE payment has
                no member account or exceeds its balance
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValueError(f"Payment amount must be an integer, got {amount!r}")

        if isinstance(method, str):
            try:
                method = PaymentMethod(method.strip().upper())
            except ValueError:
                raise ValueError(f"Unknown payment method: {method}")

        bill = self._get_bill(bill_id)
        if bill.is_void:
            raise ValueError(f"Bill {bill_id} is voided")

        payment = self.repository.create_payment(PaymentCreate(
            bill_id=bill_id,
            amount=amount,
            method=method,
            paid_at=ensure_utc(paid_at),
            notes=notes,
        ))

        logger.info(f"Payment {payment.id} of {amount} ({method.value}) recorded on bill {bill_id}")

        status = self._get_bill(bill_id).status
        if status != bill.status:
            logger.info(f"Bill {bill_id} status {bill.status.value} -> {status.value}")
        return payment

    def allocate(self, payment_id: UUID, bill_item_ids: list[UUID]) -> list[PaymentAllocation]:
        """
        Allocate a payment to the bill items it settles.

        The payment amount is split in proportion to each item's frozen
        final price.

        Args:
            payment_id: Payment being allocated
            bill_item_ids: Items settled by the payment, at least one

        Returns:
            Created allocations, one per item, summing to the payment amount

        Raises:
            ValueError: If payment or an item is not found, the payment is
                already allocated, no items are given, an item repeats, or an
                item is on another bill
        """
        if not bill_item_ids:
            raise ValueError("At least one bill item is required")
        if len(set(bill_item_ids)) != len(bill_item_ids):
            raise ValueError("Bill items must not repeat")

        payment = self.repository.get_payment(payment_id)
        if payment is None:
            raise ValueError(f"Payment {payment_id} not found")
        if self.repository.list_allocations(payment_id):
            raise ValueError(f"Payment {payment_id} is already allocated")

        items = []
        for item_id in bill_item_ids:
            item = self.repository.get_bill_item(item_id)
            if item is None:
                raise ValueError(f"Bill item {item_id} not found")
            if item.bill_id != payment.bill_id:
                raise ValueError(f"Bill item {item_id} is not on bill {payment.bill_id}")
            items.append(item)

        shares = split_proportionally(payment.amount, [item.final_price_snapshot for item in items])

        return self.repository.create_allocations(
            payment_id,
            [
                AllocationCreate(bill_item_id=item.id, amount=share)
                for item, share in zip(items, shares)
            ],
        )

    def bill_summary(self, bill_id: UUID) -> BillSummary:
        """
        Summed payments of a bill.

        Raises:
            ValueError: If bill not found
        """
        bill = self._get_bill(bill_id)
        paid_total = sum(p.amount for p in self.repository.list_payments_for_bill(bill_id))
        return BillSummary(
            bill_id=bill_id,
            status=bill.status,
            list_total=bill.list_total,
            discount_total=bill.discount_total,
            bill_total=bill.bill_total,
            paid_total=paid_total,
        )
