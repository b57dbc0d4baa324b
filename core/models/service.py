"""Service catalog domain models.

All prices are whole currency units (integer). Variant price modifiers are
deltas and may be negative.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class VariantType(str, Enum):
    """Kind of selectable attribute a variant prices."""

    SIZE = "size"
    COLOR = "color"
    POSITION = "position"
    SIDE = "side"
    STYLE = "style"
    COMPLEXITY = "complexity"
    TECHNIQUE = "technique"
    DESIGN_FEE = "design_fee"


# Types priced by their raw modifier, in evaluation order after size and color
INDEPENDENT_VARIANT_TYPES = (
    VariantType.POSITION,
    VariantType.SIDE,
    VariantType.STYLE,
    VariantType.COMPLEXITY,
    VariantType.TECHNIQUE,
    VariantType.DESIGN_FEE,
)

# Selection keys holding amounts typed in by staff rather than variant names
FREE_FORM_ADDON_KEYS = ("custom_addon", "design_fee")

ADDON_LABELS = {
    "custom_addon": "加購",
    "design_fee": "設計費",
}


class Service(BaseModel):
    """Full service entity as stored."""

    id: UUID
    name: str
    price: int = Field(..., ge=0)
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ServiceVariant(BaseModel):
    """A priced, selectable attribute of a service."""

    id: UUID
    service_id: UUID
    type: VariantType
    name: str
    code: str | None = None
    price_modifier: int = 0
    is_active: bool = True
    is_required: bool = False
    sort_order: int = 0
    metadata: dict[str, Any] | None = None

    model_config = {"from_attributes": True}


class ServiceWithVariants(BaseModel):
    """A service together with every variant row it owns (active or not)."""

    service: Service
    variants: list[ServiceVariant] = Field(default_factory=list)


class ColorOverrideMetadata(BaseModel):
    """
    Wire schema of the JSON attached to a color variant.

    Example:
        {"colorPriceDiff": 1000, "excludeSizes": ["Z"], "zColorPrice": 1000}
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    note: str | None = None
    color_price_diff: int = Field(..., alias="colorPriceDiff")
    exclude_sizes: list[str] = Field(default_factory=list, alias="excludeSizes")
    z_color_price: int = Field(..., alias="zColorPrice")


class FlatRule(BaseModel):
    """Contribution is a fixed amount (the variant's own modifier)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["flat"] = "flat"
    amount: int


class SizeRelativeRule(BaseModel):
    """
    Contribution is computed from the concurrently selected size.

    Sizes listed in exclude_sizes get flat_override_for_excluded instead.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["size_relative"] = "size_relative"
    diff: int
    exclude_sizes: frozenset[str] = frozenset()
    flat_override_for_excluded: int
    note: str | None = None


PricingRule = Annotated[Union[FlatRule, SizeRelativeRule], Field(discriminator="kind")]
