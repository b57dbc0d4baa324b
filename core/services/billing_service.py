"""
Billing service for bills and their snapshotted items.

A bill item is priced against the live catalog exactly once, when it is
created, and stored as a snapshot. Display and reporting go through the
breakdown decoder, which reads only the snapshot.
"""

import logging
from typing import Any, Iterable, Mapping
from uuid import UUID

from core.breakdown import BillItemBreakdown, breakdown_for_item
from core.config import BillingConfig
from core.models import (
    AppointmentBill,
    AppointmentBillItem,
    BillCreate,
    BillStatus,
    CartItem,
)
from core.pricing import resolve_price
from core.repository import StudioRepository
from core.services.catalog_service import CatalogService
from core.snapshot import build_snapshot

logger = logging.getLogger(__name__)


class BillingService:
    """Service for bill operations."""

    def __init__(
        self,
        repository: StudioRepository,
        catalog: CatalogService,
        config: BillingConfig | None = None,
    ):
        self.repository = repository
        self.catalog = catalog
        self.config = config or BillingConfig()

    def create_bill(self, customer_id: UUID, branch_id: UUID | None = None) -> AppointmentBill:
        """
        Open an empty bill for a customer.

        Args:
            customer_id: Customer the bill belongs to
            branch_id: Optional opaque branch identifier

        Returns:
            Created bill in OPEN status
        """
        bill = self.repository.create_bill(BillCreate(customer_id=customer_id, branch_id=branch_id))
        logger.info(f"Bill {bill.id} opened for customer {customer_id}")
        return bill

    def get_bill(self, bill_id: UUID) -> AppointmentBill:
        """
        Get bill by ID.

        Raises:
            ValueError: If bill not found
        """
        bill = self.repository.get_bill(bill_id)
        if bill is None:
            raise ValueError(f"Bill {bill_id} not found")
        return bill

    def add_item(
        self,
        bill_id: UUID,
        service_id: UUID,
        selections: Mapping[str, Any] | None,
        notes: str | None = None,
    ) -> AppointmentBillItem:
        """
        Price a selection and freeze it onto a bill.

        A SETTLED bill goes back to OPEN when its payments no longer cover
        the new total.

        Args:
            bill_id: Bill to add the item to
            service_id: Service being billed
            selections: Variant selections and free-form addon amounts
            notes: Optional notes stored on the item

        Returns:
            Created bill item carrying its snapshot

        Raises:
            ValueError: If bill not found or voided, or service not found
            VariantValidationError: If the selections cannot be priced
        """
        bill = self.get_bill(bill_id)
        if bill.is_void:
            raise ValueError(f"Bill {bill_id} is voided")

        catalog = self.catalog.get_catalog(service_id)
        resolution = resolve_price(catalog, selections)
        snapshot = build_snapshot(catalog.service, resolution, selections, notes=notes)

        item = self.repository.create_bill_item(bill_id, snapshot)

        logger.info(
            f"Bill item {item.id} on bill {bill_id}: '{item.name_snapshot}' "
            f"final {item.final_price_snapshot}"
        )
        return item

    def checkout(
        self,
        customer_id: UUID,
        cart_items: Iterable[CartItem],
        branch_id: UUID | None = None,
    ) -> tuple[AppointmentBill, list[AppointmentBillItem]]:
        """
        Turn cart items into a bill with one snapshotted item each.

        The bill and its items are written in one step: if any item fails,
        no bill is left behind.

        Every item is re-priced against the live catalog; the checkout price
        is what gets frozen, even if the catalog changed since the item was
        put in the cart.

        Args:
            customer_id: Customer checking out
            cart_items: Items from the customer's cart
            branch_id: Optional opaque branch identifier

        Returns:
            (bill, items) with the bill's final total

        Raises:
            ValueError: If the cart is empty or a service is gone
            VariantValidationError: If an item's selections no longer price
        """
        cart_items = list(cart_items)
        if not cart_items:
            raise ValueError("Cart is empty")

        # Price everything before writing so an invalid item opens no bill
        priced = []
        for cart_item in cart_items:
            catalog = self.catalog.get_catalog(cart_item.service_id)
            resolution = resolve_price(catalog, cart_item.selected_variants)
            if resolution.final_price != cart_item.final_price:
                logger.info(
                    f"Cart item {cart_item.id} price changed since added: "
                    f"{cart_item.final_price} -> {resolution.final_price}"
                )
            priced.append(build_snapshot(catalog.service, resolution, cart_item.selected_variants, notes=cart_item.notes))

        bill, items = self.repository.create_bill_with_items(
            BillCreate(customer_id=customer_id, branch_id=branch_id),
            priced,
        )

        logger.info(
            f"Bill {bill.id} checked out for customer {customer_id}: "
            f"{len(items)} item(s), total {bill.bill_total}"
        )
        return bill, items

    def void_bill(self, bill_id: UUID, reason: str | None = None) -> AppointmentBill:
        """
        Void a bill. Its payments stop counting toward member spend.

        Raises:
            ValueError: If bill not found or already voided
        """
        bill = self.get_bill(bill_id)
        if bill.is_void:
            raise ValueError(f"Bill {bill_id} is already voided")

        updated = self.repository.update_bill_status(bill_id, BillStatus.VOID, void_reason=reason)
        logger.info(f"Bill {bill_id} voided (was {bill.status.value}): {reason or 'no reason given'}")
        return updated

    def list_items(self, bill_id: UUID) -> list[AppointmentBillItem]:
        self.get_bill(bill_id)
        return self.repository.list_bill_items(bill_id)

    def get_breakdowns(self, bill_id: UUID) -> list[BillItemBreakdown]:
        """Decode every item of a bill from its snapshot alone."""
        return [breakdown_for_item(item, self.config) for item in self.list_items(bill_id)]
