"""
Variant catalog for a single service.

Holds a service's variants grouped by type and turns a selection map into
per-selection price contributions. Variant metadata is parsed once, at
construction, into a PricingRule:

- FlatRule: contribution is the variant's own price_modifier.
- SizeRelativeRule: a color priced relative to the selected size. The size's
  modifier is the reference ("black/white") price; the color contributes
  size.price_modifier + diff, or a flat amount for excluded sizes. The size
  line is absorbed into the color line so it is not counted twice.

Evaluation order is fixed: size, color, the independent types, custom_addon.
"""

import logging
from typing import Any, Iterable, Mapping
from uuid import UUID

from pydantic import BaseModel, ConfigDict, ValidationError

from core.exceptions import InvalidVariantError, MissingVariantError
from core.models import (
    ADDON_LABELS,
    INDEPENDENT_VARIANT_TYPES,
    ColorOverrideMetadata,
    FlatRule,
    PricingRule,
    Service,
    ServiceVariant,
    ServiceWithVariants,
    SizeRelativeRule,
    VariantType,
)
from utils.money import parse_amount, parse_positive_amount

logger = logging.getLogger(__name__)


class PriceModifier(BaseModel):
    """One line of a price computation."""

    model_config = ConfigDict(frozen=True)

    type: str
    name: str
    amount: int


def parse_pricing_rule(variant: ServiceVariant) -> PricingRule:
    """
    Parse a variant's metadata into its pricing rule.

    Only color variants carrying colorPriceDiff get a size-relative rule.
    Malformed override metadata is logged and treated as flat pricing.
    """
    metadata = variant.metadata
    if variant.type != VariantType.COLOR or not metadata or "colorPriceDiff" not in metadata:
        return FlatRule(amount=variant.price_modifier)

    try:
        override = ColorOverrideMetadata.model_validate(metadata)
    except ValidationError as e:
        logger.warning(
            f"Ignoring malformed color override on variant {variant.id} ({variant.name}): "
            f"{e.error_count()} error(s)"
        )
        return FlatRule(amount=variant.price_modifier)

    return SizeRelativeRule(
        diff=override.color_price_diff,
        exclude_sizes=frozenset(override.exclude_sizes),
        flat_override_for_excluded=override.z_color_price,
        note=override.note,
    )


def normalize_selection(variant_type: VariantType, value: Any) -> str | None:
    """Trimmed selection value, or None when nothing was selected."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidVariantError(variant_type.value, str(value), "not a variant name")
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        raise InvalidVariantError(variant_type.value, repr(value), "not a variant name")
    value = value.strip()
    return value or None


class VariantCatalog:
    """
    Read-only view over one service's variants.

    Safe to share between threads: nothing is mutated after __init__.
    """

    def __init__(self, service: Service, variants: Iterable[ServiceVariant]):
        self.service = service
        self._active: dict[VariantType, list[ServiceVariant]] = {}
        self._inactive: dict[VariantType, list[ServiceVariant]] = {}
        self._rules: dict[UUID, PricingRule] = {}

        ordered = sorted(variants, key=lambda v: (v.sort_order, v.name, str(v.id)))
        for variant in ordered:
            if variant.service_id != service.id:
                logger.warning(
                    f"Variant {variant.id} belongs to service {variant.service_id}, "
                    f"not {service.id}; skipping"
                )
                continue

            if not variant.is_active:
                self._inactive.setdefault(variant.type, []).append(variant)
                continue

            group = self._active.setdefault(variant.type, [])
            if any(existing.name == variant.name for existing in group):
                logger.warning(
                    f"Duplicate active {variant.type.value} variant name '{variant.name}' "
                    f"on service {service.id}; keeping the first by sort order"
                )
            group.append(variant)
            self._rules[variant.id] = parse_pricing_rule(variant)

    @classmethod
    def from_service(cls, data: ServiceWithVariants) -> "VariantCatalog":
        return cls(data.service, data.variants)

    @property
    def required_types(self) -> frozenset[VariantType]:
        """Types with at least one active variant flagged as required."""
        return frozenset(
            variant_type
            for variant_type, group in self._active.items()
            if any(v.is_required for v in group)
        )

    def variants_of(self, variant_type: VariantType) -> list[ServiceVariant]:
        """Active variants of a type in display order."""
        return list(self._active.get(variant_type, []))

    def rule_for(self, variant: ServiceVariant) -> PricingRule:
        return self._rules.get(variant.id) or FlatRule(amount=variant.price_modifier)

    def find(self, variant_type: VariantType, value: str) -> ServiceVariant | None:
        """Active variant matching value by name, then code, then id."""
        group = self._active.get(variant_type, [])
        for attr in ("name", "code"):
            for variant in group:
                if getattr(variant, attr) == value:
                    return variant
        for variant in group:
            if str(variant.id) == value:
                return variant
        return None

    def lookup(self, variant_type: VariantType, value: str) -> ServiceVariant:
        """
        Like find, but raises when there is no active match.

        Raises:
            InvalidVariantError: value names an inactive or unknown variant
        """
        variant = self.find(variant_type, value)
        if variant is not None:
            return variant

        for inactive in self._inactive.get(variant_type, []):
            if value in (inactive.name, inactive.code, str(inactive.id)):
                raise InvalidVariantError(variant_type.value, value, "inactive")
        raise InvalidVariantError(variant_type.value, value, "not found")

    def color_contribution(
        self,
        color: ServiceVariant,
        size: ServiceVariant | None,
    ) -> tuple[int, bool]:
        """
        Amount a color contributes given the selected size.

        Returns:
            (amount, absorbs_size) where absorbs_size means the size's own
            modifier is already part of amount.
        """
        rule = self.rule_for(color)
        if isinstance(rule, FlatRule):
            return rule.amount, False

        if size is None:
            logger.info(
                f"Color '{color.name}' is priced relative to size but no size is selected; "
                f"using its own modifier"
            )
            return color.price_modifier, False

        if size.name in rule.exclude_sizes:
            return rule.flat_override_for_excluded, True
        return size.price_modifier + rule.diff, True

    def evaluate(self, selections: Mapping[str, Any]) -> list[PriceModifier]:
        """
        Price contributions of a selection map, in evaluation order.

        Raises:
            MissingVariantError: a required type has no value
            InvalidVariantError: a value matches no active variant
        """
        picked: dict[VariantType, str] = {}
        for variant_type in VariantType:
            value = normalize_selection(variant_type, selections.get(variant_type.value))
            if value is not None:
                picked[variant_type] = value

        for variant_type in sorted(self.required_types, key=lambda t: list(VariantType).index(t)):
            if variant_type not in picked:
                raise MissingVariantError(variant_type.value)

        modifiers: list[PriceModifier] = []

        color = self.lookup(VariantType.COLOR, picked[VariantType.COLOR]) if VariantType.COLOR in picked else None
        size = self._selected_size(picked.get(VariantType.SIZE), color)

        size_amount = size.price_modifier if size is not None else 0
        color_amount = 0
        if color is not None:
            color_amount, absorbs_size = self.color_contribution(color, size)
            if absorbs_size:
                size_amount = 0

        if size is not None:
            modifiers.append(PriceModifier(type=VariantType.SIZE.value, name=size.name, amount=size_amount))
        if color is not None:
            modifiers.append(PriceModifier(type=VariantType.COLOR.value, name=color.name, amount=color_amount))

        for variant_type in INDEPENDENT_VARIANT_TYPES:
            value = picked.get(variant_type)
            if value is None:
                continue

            if variant_type == VariantType.DESIGN_FEE:
                modifier = self._design_fee_modifier(value)
                if modifier is not None:
                    modifiers.append(modifier)
                continue

            variant = self.lookup(variant_type, value)
            modifiers.append(PriceModifier(type=variant_type.value, name=variant.name, amount=variant.price_modifier))

        custom_addon = parse_positive_amount(selections.get("custom_addon"))
        if custom_addon is not None:
            modifiers.append(PriceModifier(type="custom_addon", name=ADDON_LABELS["custom_addon"], amount=custom_addon))

        return modifiers

    def _selected_size(self, value: str | None, color: ServiceVariant | None) -> ServiceVariant | None:
        """
        Size variant for value.

        A size missing from the catalog is fatal, except when the color is
        priced relative to size: the color then falls back to its own
        modifier and the size line is dropped.
        """
        if value is None:
            return None
        try:
            return self.lookup(VariantType.SIZE, value)
        except InvalidVariantError as e:
            if e.reason != "not found" or color is None:
                raise
            if not isinstance(self.rule_for(color), SizeRelativeRule):
                raise
            logger.warning(
                f"Color '{color.name}' references size '{value}' which is not in the catalog "
                f"of service {self.service.id}; using the color's own modifier"
            )
            return None

    def _design_fee_modifier(self, value: str) -> PriceModifier | None:
        """A design_fee value names a variant, or is an amount typed in by staff."""
        variant = self.find(VariantType.DESIGN_FEE, value)
        if variant is not None:
            return PriceModifier(type=VariantType.DESIGN_FEE.value, name=variant.name, amount=variant.price_modifier)

        amount = parse_amount(value)
        if amount is None:
            raise InvalidVariantError(
                VariantType.DESIGN_FEE.value, value, "neither a design fee variant nor an amount"
            )
        if amount <= 0:
            return None
        return PriceModifier(type=VariantType.DESIGN_FEE.value, name=ADDON_LABELS["design_fee"], amount=amount)

