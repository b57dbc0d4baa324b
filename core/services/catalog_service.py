"""
Catalog service for pricing against the live service catalog.

Loads a service with its variants through the repository and builds a
VariantCatalog from it. Only new price computations read the live catalog;
bill item snapshots never do.
"""

import logging
from typing import Any, Mapping
from uuid import UUID

from core.catalog import VariantCatalog
from core.pricing import PriceResolution, resolve_price
from core.repository import StudioRepository

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for live catalog lookups and price quotes."""

    def __init__(self, repository: StudioRepository):
        self.repository = repository

    def get_catalog(self, service_id: UUID) -> VariantCatalog:
        """
        Build the variant catalog of a service.

        Args:
            service_id: Service UUID

        Returns:
            VariantCatalog over the service's current variants

        Raises:
            ValueError: If service not found or inactive
        """
        data = self.repository.fetch_service_with_variants(service_id)
        if data is None:
            raise ValueError(f"Service {service_id} not found")

        if not data.service.is_active:
            raise ValueError(f"Service {service_id} is inactive")

        return VariantCatalog.from_service(data)

    def quote(self, service_id: UUID, selections: Mapping[str, Any] | None) -> PriceResolution:
        """
        Price a selection set against the live catalog.

        Args:
            service_id: Service UUID
            selections: Variant selections and free-form addon amounts

        Returns:
            PriceResolution

        Raises:
            ValueError: If service not found or inactive
            VariantValidationError: If the selections cannot be priced
        """
        return resolve_price(self.get_catalog(service_id), selections)
