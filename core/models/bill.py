"""Bill and bill item domain models.

A bill item is a frozen snapshot of a priced selection. It is written once
at checkout and never recomputed from the live catalog afterwards.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BillStatus(str, Enum):
    """Bill lifecycle status."""

    OPEN = "OPEN"
    SETTLED = "SETTLED"
    VOID = "VOID"


def compute_discount_total(list_total: int, bill_total: int) -> int:
    """Amount knocked off the list price; never negative."""
    return max(0, list_total - bill_total)


def settlement_status(status: BillStatus, paid_total: int, bill_total: int) -> BillStatus:
    """
    Status a bill should have given what has been paid.

    SETTLED when paid_total covers bill_total, OPEN otherwise. VOID is final.
    """
    if status == BillStatus.VOID:
        return status
    return BillStatus.SETTLED if paid_total >= bill_total else BillStatus.OPEN


class BillCreate(BaseModel):
    """Data required to open a bill."""

    customer_id: UUID
    # Opaque; branch names are not unique across records
    branch_id: UUID | None = None


class AppointmentBill(BaseModel):
    """Full bill entity as stored."""

    id: UUID
    customer_id: UUID
    branch_id: UUID | None = None
    status: BillStatus
    # list_total sums item base prices, bill_total item final prices
    list_total: int = 0
    bill_total: int = 0
    discount_total: int = 0
    void_reason: str | None = None
    voided_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_void(self) -> bool:
        return self.status == BillStatus.VOID


class BillItemSnapshot(BaseModel):
    """Everything frozen about a billed line at the moment it is created."""

    model_config = ConfigDict(frozen=True)

    service_id: UUID | None = None
    name_snapshot: str = Field(..., min_length=1)
    base_price_snapshot: int = Field(..., ge=0)
    final_price_snapshot: int = Field(..., ge=0)
    variants_snapshot: dict[str, Any] = Field(default_factory=dict)
    notes: str | None = None


class AppointmentBillItem(BaseModel):
    """Full bill item entity as stored. Immutable after creation."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID
    bill_id: UUID
    service_id: UUID | None = None
    name_snapshot: str
    base_price_snapshot: int
    final_price_snapshot: int
    variants_snapshot: dict[str, Any] | None = None
    notes: str | None = None
    sort_order: int = 0
    created_at: datetime
