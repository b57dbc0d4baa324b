"""Core domain models."""

from core.models.service import (
    Service, ServiceVariant, ServiceWithVariants, VariantType,
    ColorOverrideMetadata, FlatRule, SizeRelativeRule, PricingRule,
    INDEPENDENT_VARIANT_TYPES, FREE_FORM_ADDON_KEYS, ADDON_LABELS,
)
from core.models.cart_item import CartItem, CartItemCreate
from core.models.bill import (
    AppointmentBill, AppointmentBillItem, BillCreate, BillItemSnapshot, BillStatus,
    compute_discount_total, settlement_status,
)
from core.models.payment import (
    Payment, PaymentCreate, PaymentMethod, PaymentAllocation, AllocationCreate, CustomerPayment,
)
from core.models.member import Member, stored_value_balance_after

__all__ = [
    # Service catalog
    "Service", "ServiceVariant", "ServiceWithVariants", "VariantType",
    "ColorOverrideMetadata", "FlatRule", "SizeRelativeRule", "PricingRule",
    "INDEPENDENT_VARIANT_TYPES", "FREE_FORM_ADDON_KEYS", "ADDON_LABELS",
    # Cart
    "CartItem", "CartItemCreate",
    # Bill
    "AppointmentBill", "AppointmentBillItem", "BillCreate", "BillItemSnapshot", "BillStatus",
    "compute_discount_total", "settlement_status",
    # Payment
    "Payment", "PaymentCreate", "PaymentMethod", "PaymentAllocation", "AllocationCreate",
    "CustomerPayment",
    # Member
    "Member", "stored_value_balance_after",
]
