"""
Persistence port for the billing core.

Services receive a StudioRepository explicitly; there is no module-level
database handle. Implementations live in core.repositories.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from core.models import (
    AllocationCreate,
    AppointmentBill,
    AppointmentBillItem,
    BillCreate,
    BillItemSnapshot,
    BillStatus,
    CartItem,
    CartItemCreate,
    CustomerPayment,
    Member,
    Payment,
    PaymentAllocation,
    PaymentCreate,
    ServiceWithVariants,
)


class StudioRepository(ABC):
    # Catalog

    @abstractmethod
    def fetch_service_with_variants(self, service_id: UUID) -> ServiceWithVariants | None:
        """Service and all of its variant rows (inactive included), or None."""
        raise NotImplementedError

    # Cart

    @abstractmethod
    def create_cart_item(self, data: CartItemCreate) -> CartItem:
        raise NotImplementedError

    # Bills

    @abstractmethod
    def create_bill(self, data: BillCreate) -> AppointmentBill:
        """Open a new bill with status OPEN and zero total."""
        raise NotImplementedError

    @abstractmethod
    def create_bill_with_items(
        self,
        data: BillCreate,
        snapshots: list[BillItemSnapshot],
    ) -> tuple[AppointmentBill, list[AppointmentBillItem]]:
        """
        Open a bill already holding one item per snapshot, in order.

        Atomic: on any failure neither the bill nor any item is written.
        """
        raise NotImplementedError

    @abstractmethod
    def get_bill(self, bill_id: UUID) -> AppointmentBill | None:
        raise NotImplementedError

    @abstractmethod
    def list_bills(self, customer_id: UUID) -> list[AppointmentBill]:
        """Bills of a customer, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def update_bill_status(
        self,
        bill_id: UUID,
        status: BillStatus,
        void_reason: str | None = None,
    ) -> AppointmentBill:
        """Set status; VOID also stamps voided_at and void_reason, other statuses clear them."""
        raise NotImplementedError

    @abstractmethod
    def create_bill_item(self, bill_id: UUID, snapshot: BillItemSnapshot) -> AppointmentBillItem:
        """
        Insert a bill item with its snapshot and update the bill's totals.

        Adds the base price to list_total and the final price to bill_total,
        recomputes discount_total, and moves a SETTLED bill back to OPEN
        when its payments no longer cover the new total.

        Atomic: either the item, its snapshot, the totals and the status are
        all written, or nothing is.

        Raises:
            ValueError: If bill not found
        """
        raise NotImplementedError

    @abstractmethod
    def get_bill_item(self, item_id: UUID) -> AppointmentBillItem | None:
        raise NotImplementedError

    @abstractmethod
    def list_bill_items(self, bill_id: UUID) -> list[AppointmentBillItem]:
        """Items of a bill ordered by sort_order."""
        raise NotImplementedError

    # Payments

    @abstractmethod
    def create_payment(self, data: PaymentCreate) -> Payment:
        """
        Record a payment and bring the bill's status up to date.

        STORED_VALUE payments also debit (refunds credit) the balance of the
        member whose user_id is the bill's customer. The payment, the
        balance change and the status change are one atomic write.

        Raises:
            ValueError: If bill not found or voided, the customer has no
                member account, or the balance is insufficient
        """
        raise NotImplementedError

    @abstractmethod
    def get_payment(self, payment_id: UUID) -> Payment | None:
        raise NotImplementedError

    @abstractmethod
    def list_payments_for_bill(self, bill_id: UUID) -> list[Payment]:
        """Payments of a bill ordered by paid_at."""
        raise NotImplementedError

    @abstractmethod
    def create_allocations(
        self,
        payment_id: UUID,
        allocations: list[AllocationCreate],
    ) -> list[PaymentAllocation]:
        """
        Insert all allocations of one payment in a single transaction.

        A payment is allocated once.

        Raises:
            ValueError: If payment not found or already allocated
        """
        raise NotImplementedError

    @abstractmethod
    def list_allocations(self, payment_id: UUID) -> list[PaymentAllocation]:
        raise NotImplementedError

    @abstractmethod
    def find_payments_for_customer(self, user_id: UUID) -> list[CustomerPayment]:
        """
        Every payment on every bill of a customer, with the bill's status.

        No status filtering happens here; excluding void bills is the
        caller's job.
        """
        raise NotImplementedError

    # Members

    @abstractmethod
    def list_members(self) -> list[Member]:
        raise NotImplementedError

    @abstractmethod
    def get_member_by_user_id(self, user_id: UUID) -> Member | None:
        raise NotImplementedError

    @abstractmethod
    def update_member_total_spent(self, member_id: UUID, amount: int) -> bool:
        """
        Store total_spent if it differs from the stored value.

        Returns:
            True if a row changed, False for a no-op or unknown member
        """
        raise NotImplementedError
