"""
Cart service for pricing items while the customer is shopping.

Cart prices are live: they are computed from the current catalog and are
recomputed again at checkout.
"""

import logging
from typing import Any, Mapping
from uuid import UUID

from core.models import CartItem, CartItemCreate
from core.pricing import resolve_price
from core.repository import StudioRepository
from core.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class CartService:
    """Service for cart item operations."""

    def __init__(self, repository: StudioRepository, catalog: CatalogService):
        self.repository = repository
        self.catalog = catalog

    def add_item(
        self,
        service_id: UUID,
        selections: Mapping[str, Any] | None,
        notes: str | None = None,
    ) -> CartItem:
        """
        Price a selection and store it as a cart item.

        Args:
            service_id: Service being added
            selections: Variant selections and free-form addon amounts
            notes: Optional customer notes

        Returns:
            Created cart item with base_price and final_price set

        Raises:
            ValueError: If service not found or inactive
            VariantValidationError: If the selections cannot be priced
        """
        catalog = self.catalog.get_catalog(service_id)
        resolution = resolve_price(catalog, selections)

        item = self.repository.create_cart_item(CartItemCreate(
            service_id=service_id,
            service_name=catalog.service.name,
            selected_variants=dict(selections or {}),
            base_price=resolution.base_price,
            final_price=resolution.final_price,
            notes=notes,
        ))

        logger.info(f"Cart item {item.id} priced at {item.final_price} for service {service_id}")
        return item

    def reprice(self, item: CartItem, changes: Mapping[str, Any]) -> CartItem:
        """
        Merge selection changes into an item and price the result.

        Returns a new cart item; the caller discards the old one.
        """
        merged = {**item.selected_variants, **changes}
        return self.add_item(item.service_id, merged, notes=item.notes)
