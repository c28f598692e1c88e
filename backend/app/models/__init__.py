"""
Модели данных магазина.
"""

from .discount import (
    DiscountType,
    DiscountCode,
    DiscountCodeCreate,
    DiscountCodeUpdate,
    DiscountValidate,
    CartLine,
    CartSnapshot,
    UserIdentity,
    GuestIdentity,
    Identity,
    RejectionReason,
    DiscountRejection,
    DiscountApplied,
    PricingResult,
)

__all__ = [
    # Discount codes
    "DiscountType", "DiscountCode", "DiscountCodeCreate", "DiscountCodeUpdate", "DiscountValidate",
    # Cart
    "CartLine", "CartSnapshot",
    # Identity
    "UserIdentity", "GuestIdentity", "Identity",
    # Pricing result
    "RejectionReason", "DiscountRejection", "DiscountApplied", "PricingResult",
]
