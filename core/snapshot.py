"""
Bill item snapshots.

A snapshot copies the resolver's output and the raw selections verbatim at
the moment a bill item is created. Nothing downstream ever goes back to the
live catalog, so later catalog edits or variant deletions cannot change a
historical bill.
"""

import logging
from typing import Any, Mapping

from core.catalog import normalize_selection
from core.models import FREE_FORM_ADDON_KEYS, BillItemSnapshot, Service, VariantType
from core.pricing import PriceResolution

logger = logging.getLogger(__name__)


def compose_item_name(service_name: str, color: str | None) -> str:
    """Display name of a billed line: '<service>-<color>' when a color was chosen."""
    if color:
        return f"{service_name}-{color}"
    return service_name


def build_variants_snapshot(selections: Mapping[str, Any], resolution: PriceResolution) -> dict[str, Any]:
    """
    Flat map of raw selection values plus computed addon amounts.

    Variant selections are stored as the trimmed values the customer picked.
    design_fee and custom_addon are stored as the amounts actually charged,
    never as variant names.
    """
    snapshot: dict[str, Any] = {}

    for variant_type in VariantType:
        if variant_type.value in FREE_FORM_ADDON_KEYS:
            continue
        value = normalize_selection(variant_type, selections.get(variant_type.value))
        if value is not None:
            snapshot[variant_type.value] = value

    for key, amount in resolution.addon_amounts.items():
        snapshot[key] = amount

    ignored = set(selections) - {t.value for t in VariantType} - set(FREE_FORM_ADDON_KEYS)
    if ignored:
        logger.debug(f"Selection keys not priced and not snapshotted: {sorted(ignored)}")

    return snapshot


def build_snapshot(
    service: Service,
    resolution: PriceResolution,
    selections: Mapping[str, Any] | None,
    notes: str | None = None,
) -> BillItemSnapshot:
    """
    Freeze a priced selection into a bill item snapshot.

    Args:
        service: Service as it is in the catalog right now
        resolution: resolve_price output for the same selections
        selections: Raw selections the resolution was computed from
        notes: Optional free text carried onto the bill item

    Returns:
        BillItemSnapshot ready to be written

    Raises:
        pydantic.ValidationError: If the final price is negative
    """
    selections = selections or {}
    color = normalize_selection(VariantType.COLOR, selections.get(VariantType.COLOR.value))

    return BillItemSnapshot(
        service_id=service.id,
        name_snapshot=compose_item_name(service.name, color),
        base_price_snapshot=resolution.base_price,
        final_price_snapshot=resolution.final_price,
        variants_snapshot=build_variants_snapshot(selections, resolution),
        notes=notes,
    )
