"""Payment ledger domain models.

Payments and allocations are append-only. Negative amounts are refunds.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from core.models.bill import BillStatus


class PaymentMethod(str, Enum):
    """How the customer paid."""

    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    STORED_VALUE = "STORED_VALUE"


class PaymentCreate(BaseModel):
    """Data required to record a payment."""

    bill_id: UUID
    amount: int
    method: PaymentMethod = PaymentMethod.CASH
    paid_at: datetime
    notes: str | None = Field(None, max_length=2000)

    @field_validator("amount")
    @classmethod
    def amount_non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("amount must be non-zero")
        return value


class Payment(BaseModel):
    """Full payment entity as stored."""

    id: UUID
    bill_id: UUID
    amount: int
    method: PaymentMethod
    paid_at: datetime
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AllocationCreate(BaseModel):
    """Portion of a payment settling one bill item."""

    bill_item_id: UUID
    amount: int


class PaymentAllocation(BaseModel):
    """Full allocation entity as stored."""

    id: UUID
    payment_id: UUID
    bill_item_id: UUID
    amount: int
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerPayment(BaseModel):
    """A payment joined with the status of the bill it was made against."""

    payment_id: UUID
    bill_id: UUID
    amount: int
    bill_status: BillStatus

    model_config = {"from_attributes": True}

    @property
    def counts_toward_spend(self) -> bool:
        return self.bill_status != BillStatus.VOID
