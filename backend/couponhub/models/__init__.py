from couponhub.db.base import Base  # noqa: F401
from couponhub.models.tenant import Site, User  # noqa: F401
from couponhub.models.coupon import Coupon, DiscountType  # noqa: F401

__all__ = [
    "Base",
    "User",
    "Site",
    "Coupon",
    "DiscountType",
]
