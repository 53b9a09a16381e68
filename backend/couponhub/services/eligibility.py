"""Coupon eligibility and discount maths.

Everything here is pure: callers hand in a coupon snapshot (an ORM row or
any object with the same attributes), the cart total and the evaluation
instant. Stored state only changes inside the redemption transaction.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal
from typing import Any, Literal, Protocol

from couponhub.core.errors import CouponServiceError, ErrorCode
from couponhub.models.coupon import DiscountType

DiscountRounding = Literal["half_up", "half_even"]

_ROUNDING_MAP: dict[str, str] = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}
_WHOLE_UNIT = Decimal("1")
MONEY_QUANT = Decimal("0.01")
_ZERO = Decimal("0")


class CouponSnapshot(Protocol):
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase: Decimal | None
    max_uses: int | None
    used_count: int
    valid_from: datetime
    valid_until: datetime
    is_active: bool


class CouponState(str, enum.Enum):
    inactive = "inactive"
    not_yet_valid = "not_yet_valid"
    expired = "expired"
    exhausted = "exhausted"
    below_minimum = "below_minimum"
    eligible = "eligible"


_STATE_ERRORS: dict[CouponState, tuple[ErrorCode, str]] = {
    CouponState.inactive: (ErrorCode.COUPON_INACTIVE, "Coupon is not active"),
    CouponState.not_yet_valid: (ErrorCode.COUPON_NOT_YET_VALID, "Coupon is not valid yet"),
    CouponState.expired: (ErrorCode.COUPON_EXPIRED, "Coupon has expired"),
    CouponState.exhausted: (ErrorCode.COUPON_MAX_USES, "Coupon has reached its usage limit"),
    CouponState.below_minimum: (ErrorCode.MIN_PURCHASE_NOT_MET, "Minimum purchase is {min_purchase}"),
}


@dataclass(frozen=True)
class DiscountBreakdown:
    discount_amount: Decimal
    final_total: Decimal


def _ensure_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def classify(coupon: CouponSnapshot, cart_total: Decimal, now: datetime) -> CouponState:
    """Return the first state that blocks redemption, or ``eligible``.

    The order is part of the contract: callers surface the first reason only.
    """
    now = _ensure_utc(now)
    if not coupon.is_active:
        return CouponState.inactive
    if now < _ensure_utc(coupon.valid_from):
        return CouponState.not_yet_valid
    # validUntil is inclusive.
    if now > _ensure_utc(coupon.valid_until):
        return CouponState.expired
    if coupon.max_uses is not None and int(coupon.used_count or 0) >= int(coupon.max_uses):
        return CouponState.exhausted
    if coupon.min_purchase is not None and Decimal(cart_total) < Decimal(coupon.min_purchase):
        return CouponState.below_minimum
    return CouponState.eligible


def check_eligibility(coupon: CouponSnapshot, cart_total: Decimal, now: datetime) -> CouponServiceError | None:
    state = classify(coupon, cart_total, now)
    if state == CouponState.eligible:
        return None
    code, template = _STATE_ERRORS[state]
    details: dict[str, Any] | None = None
    if state == CouponState.below_minimum:
        details = {"minPurchase": str(coupon.min_purchase), "cartTotal": str(cart_total)}
    return CouponServiceError(code, template.format(min_purchase=coupon.min_purchase), details)


def ensure_eligible(coupon: CouponSnapshot, cart_total: Decimal, now: datetime) -> None:
    failure = check_eligibility(coupon, cart_total, now)
    if failure is not None:
        raise failure


def quantize_money(value: Decimal, *, rounding: DiscountRounding = "half_up") -> Decimal:
    """Fix amounts to cents so every result carries the same scale."""
    mode = _ROUNDING_MAP.get(str(rounding), ROUND_HALF_UP)
    return Decimal(value).quantize(MONEY_QUANT, rounding=mode)


def compute_discount(
    discount_type: DiscountType,
    discount_value: Decimal,
    cart_total: Decimal,
    *,
    rounding: DiscountRounding = "half_up",
) -> Decimal:
    value = Decimal(discount_value)
    total = Decimal(cart_total)
    if discount_type == DiscountType.percentage:
        mode = _ROUNDING_MAP.get(str(rounding), ROUND_HALF_UP)
        return (total * value / Decimal("100")).quantize(_WHOLE_UNIT, rounding=mode)
    return min(value, total)


def price_cart(
    coupon: CouponSnapshot,
    cart_total: Decimal,
    *,
    rounding: DiscountRounding = "half_up",
) -> DiscountBreakdown:
    total = Decimal(cart_total)
    discount = compute_discount(coupon.discount_type, coupon.discount_value, total, rounding=rounding)
    return DiscountBreakdown(
        discount_amount=quantize_money(discount, rounding=rounding),
        final_total=quantize_money(max(total - discount, _ZERO), rounding=rounding),
    )
