"""
Price breakdown of a bill item, rebuilt from its snapshot alone.

The live catalog is never consulted: the service may have been repriced and
the variants the customer picked may no longer exist. Historical data can be
malformed (legacy rows, hand edits), so decoding never raises. Values that
cannot be parsed are left out rather than counted as zero-amount addons.
"""

import logging
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.config import BillingConfig
from core.exceptions import InconsistentSnapshot
from core.models import ADDON_LABELS, AppointmentBillItem
from utils.money import parse_amount

logger = logging.getLogger(__name__)

# Selection values, not money
NON_MONETARY_KEYS = frozenset({
    "side", "color", "size", "position", "style", "complexity", "technique",
})

# Known addons come first, in this order
KNOWN_ADDON_ORDER = ("custom_addon", "design_fee")


class BreakdownAddon(BaseModel):
    """One addon line of a breakdown."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    amount: int


class BillItemBreakdown(BaseModel):
    """
    Display-ready decomposition of a bill item.

    Serialize with model_dump(by_alias=True) for the camelCase wire format.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    service_name: str
    color: str | None = None
    final_price: int = 0
    service_price: int = 0
    addons: list[BreakdownAddon] = Field(default_factory=list)
    addons_total: int = 0
    design_fee: int = 0
    custom_addon: int = 0


def _snapshot_amount(key: str, raw: Any) -> int | None:
    """
    Positive amount stored under key, or None when there is nothing to show.

    Raises:
        InconsistentSnapshot: raw is present but not a number
    """
    if raw is None:
        return None
    amount = parse_amount(raw)
    if amount is None:
        raise InconsistentSnapshot(key, raw)
    return amount if amount > 0 else None


def _snapshot_color(variants: Mapping[str, Any]) -> str | None:
    color = variants.get("color")
    if isinstance(color, str) and color.strip():
        return color.strip()
    return None


def _strip_color_suffix(name: str, color: str | None) -> str:
    if not color:
        return name
    suffix = f"-{color}"
    return name[: -len(suffix)] if name.endswith(suffix) else name


def _final_price(raw: Any) -> int:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        amount = parse_amount(raw)
        if amount is not None:
            return amount
    return 0


def decode_breakdown(
    name_snapshot: Any,
    final_price_snapshot: Any,
    variants_snapshot: Any,
    config: BillingConfig | None = None,
) -> BillItemBreakdown:
    """
    Decompose a snapshot into service price and addons.

    Args:
        name_snapshot: Stored display name ('<service>-<color>' or just '<service>')
        final_price_snapshot: Stored final price
        variants_snapshot: Stored flat map of selections and addon amounts

    Returns:
        BillItemBreakdown with service_price = max(0, final_price - addons_total)
    """
    config = config or BillingConfig()

    variants: Mapping[str, Any] = variants_snapshot if isinstance(variants_snapshot, Mapping) else {}
    raw_name = name_snapshot if isinstance(name_snapshot, str) and name_snapshot else config.default_service_label
    final_price = _final_price(final_price_snapshot)

    color = _snapshot_color(variants)
    service_name = _strip_color_suffix(raw_name, color)

    known: dict[str, BreakdownAddon] = {}
    others: list[BreakdownAddon] = []

    for key, raw in variants.items():
        if not isinstance(key, str) or key in NON_MONETARY_KEYS:
            continue
        try:
            amount = _snapshot_amount(key, raw)
        except InconsistentSnapshot as e:
            logger.debug(f"Omitting snapshot field: {e}")
            continue
        if amount is None:
            continue

        if key in ADDON_LABELS:
            known[key] = BreakdownAddon(key=key, label=ADDON_LABELS[key], amount=amount)
        else:
            others.append(BreakdownAddon(key=key, label=key, amount=amount))

    addons = [known[key] for key in KNOWN_ADDON_ORDER if key in known]
    addons.extend(sorted(others, key=lambda addon: addon.key))

    addons_total = sum(addon.amount for addon in addons)

    return BillItemBreakdown(
        service_name=service_name,
        color=color,
        final_price=final_price,
        service_price=max(0, final_price - addons_total),
        addons=addons,
        addons_total=addons_total,
        design_fee=known["design_fee"].amount if "design_fee" in known else 0,
        custom_addon=known["custom_addon"].amount if "custom_addon" in known else 0,
    )


def breakdown_for_item(item: AppointmentBillItem, config: BillingConfig | None = None) -> BillItemBreakdown:
    """Decode a stored bill item."""
    return decode_breakdown(
        item.name_snapshot,
        item.final_price_snapshot,
        item.variants_snapshot,
        config=config,
    )
