"""
Price resolution for a service and a set of variant selections.

resolve_price is pure: the same catalog and the same selections always give
the same PriceResolution. It is used to price cart items while shopping and,
at checkout, to produce the values frozen into a bill item snapshot.
"""

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, computed_field

from core.catalog import PriceModifier, VariantCatalog
from core.models import FREE_FORM_ADDON_KEYS, ServiceWithVariants


class PriceResolution(BaseModel):
    """Outcome of pricing one selection set. final_price = base_price + sum(modifiers)."""

    model_config = ConfigDict(frozen=True)

    base_price: int
    modifiers: tuple[PriceModifier, ...] = ()

    @computed_field
    @property
    def final_price(self) -> int:
        return self.base_price + sum(m.amount for m in self.modifiers)

    @property
    def addon_amounts(self) -> dict[str, int]:
        """Totals of the addon-style lines (design fee, custom addon) by key."""
        amounts: dict[str, int] = {}
        for modifier in self.modifiers:
            if modifier.type in FREE_FORM_ADDON_KEYS and modifier.amount > 0:
                amounts[modifier.type] = amounts.get(modifier.type, 0) + modifier.amount
        return amounts


def resolve_price(
    service: ServiceWithVariants | VariantCatalog,
    selections: Mapping[str, Any] | None,
) -> PriceResolution:
    """
    Compute the base and final price of a selection set.

    Args:
        service: Service with its variants, or a catalog already built from one
        selections: Map of variant type to selected value, plus free-form
            numeric design_fee / custom_addon

    Returns:
        PriceResolution with one modifier per priced selection

    Raises:
        MissingVariantError: A required variant type has no value
        InvalidVariantError: A value matches no active variant
    """
    catalog = service if isinstance(service, VariantCatalog) else VariantCatalog.from_service(service)
    modifiers = catalog.evaluate(selections or {})
    return PriceResolution(base_price=catalog.service.price, modifiers=tuple(modifiers))
