"""Typed exceptions for pricing, snapshot and ledger failures."""

from uuid import UUID


class VariantValidationError(Exception):
    """Base class for selections that cannot be priced. Blocks cart/bill creation."""


class MissingVariantError(VariantValidationError):
    """A required variant type has no selected value."""

    def __init__(self, variant_type: str):
        self.variant_type = variant_type
        super().__init__(f"Missing required variant: {variant_type}")


class InvalidVariantError(VariantValidationError):
    """Selected value matches no active variant of its type."""

    def __init__(self, variant_type: str, value: str, reason: str = "not found"):
        self.variant_type = variant_type
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {variant_type} variant '{value}': {reason}")


class InconsistentSnapshot(Exception):
    """
    A persisted snapshot field cannot be interpreted.

    Only raised inside snapshot decoding, where it is caught and the field
    is omitted. Callers of the decoder never see it.
    """

    def __init__(self, key: str, value: object):
        self.key = key
        self.value = value
        super().__init__(f"Unparseable snapshot value for '{key}': {value!r}")


class ProductionGuardError(Exception):
    """Batch job refused to start. Nothing has been executed."""


class AggregationError(Exception):
    """Recomputing one member's totals failed."""

    def __init__(self, member_id: UUID, cause: Exception):
        self.member_id = member_id
        self.cause = cause
        super().__init__(f"Aggregation failed for member {member_id}: {cause}")
