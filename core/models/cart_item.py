"""Cart item domain models.

Cart items are priced against the live catalog and discarded at checkout,
where a bill item snapshot takes their place.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class CartItemCreate(BaseModel):
    """Data required to create a cart item."""

    service_id: UUID
    service_name: str = Field(..., min_length=1, max_length=255)
    selected_variants: dict[str, Any] = Field(default_factory=dict)
    base_price: int = Field(..., ge=0)
    final_price: int
    notes: str | None = Field(None, max_length=2000)


class CartItem(BaseModel):
    """Full cart item entity as stored."""

    id: UUID
    service_id: UUID
    service_name: str
    selected_variants: dict[str, Any]
    base_price: int
    final_price: int
    notes: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def default_selected_variants(cls, data: Any) -> Any:
        """Rows written before variants existed carry NULL selections."""
        if isinstance(data, dict) and data.get("selected_variants") is None:
            data = {**data, "selected_variants": {}}
        return data
