from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from couponhub.core.errors import ErrorCode
from couponhub.models.coupon import DiscountType
from couponhub.services.eligibility import (
    CouponState,
    check_eligibility,
    classify,
    compute_discount,
    price_cart,
)

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def _coupon(**overrides: object) -> SimpleNamespace:
    values: dict[str, object] = {
        "discount_type": DiscountType.percentage,
        "discount_value": Decimal("10"),
        "min_purchase": None,
        "max_uses": None,
        "used_count": 0,
        "valid_from": NOW - timedelta(days=30),
        "valid_until": NOW + timedelta(days=30),
        "is_active": True,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.parametrize(
    ("discount_type", "value", "cart_total", "expected"),
    [
        (DiscountType.percentage, "10", "50000", "5000"),
        (DiscountType.percentage, "33", "10000", "3300"),
        (DiscountType.percentage, "100", "25000", "25000"),
        (DiscountType.percentage, "25", "50", "13"),
        (DiscountType.percentage, "15", "10", "2"),
        (DiscountType.percentage, "50", "0", "0"),
        (DiscountType.fixed, "5000", "50000", "5000"),
        (DiscountType.fixed, "50000", "10000", "10000"),
        (DiscountType.fixed, "5000", "0", "0"),
    ],
)
def test_compute_discount_vectors(discount_type: DiscountType, value: str, cart_total: str, expected: str) -> None:
    assert compute_discount(discount_type, Decimal(value), Decimal(cart_total)) == Decimal(expected)


def test_compute_discount_half_even_rounds_ties_to_even() -> None:
    assert compute_discount(DiscountType.percentage, Decimal("25"), Decimal("50"), rounding="half_even") == Decimal("12")
    assert compute_discount(DiscountType.percentage, Decimal("25"), Decimal("10"), rounding="half_even") == Decimal("2")
    assert compute_discount(DiscountType.percentage, Decimal("25"), Decimal("10")) == Decimal("3")


def test_price_cart_totals() -> None:
    percent = price_cart(_coupon(discount_value=Decimal("10")), Decimal("50000"))
    assert (percent.discount_amount, percent.final_total) == (Decimal("5000"), Decimal("45000"))

    fixed = price_cart(_coupon(discount_type=DiscountType.fixed, discount_value=Decimal("5000")), Decimal("50000"))
    assert (fixed.discount_amount, fixed.final_total) == (Decimal("5000"), Decimal("45000"))

    capped = price_cart(_coupon(discount_type=DiscountType.fixed, discount_value=Decimal("50000")), Decimal("10000"))
    assert (capped.discount_amount, capped.final_total) == (Decimal("10000"), Decimal("0"))


def test_classify_eligible_coupon() -> None:
    assert classify(_coupon(), Decimal("50000"), NOW) == CouponState.eligible
    assert check_eligibility(_coupon(), Decimal("50000"), NOW) is None


def test_inactive_is_reported_before_any_other_reason() -> None:
    coupon = _coupon(is_active=False, valid_until=NOW - timedelta(days=1), max_uses=1, used_count=1)
    failure = check_eligibility(coupon, Decimal("1"), NOW)
    assert failure is not None
    assert failure.code == ErrorCode.COUPON_INACTIVE


def test_not_yet_valid_before_usage_limit() -> None:
    coupon = _coupon(valid_from=NOW + timedelta(seconds=1), max_uses=1, used_count=1)
    assert classify(coupon, Decimal("100"), NOW) == CouponState.not_yet_valid


def test_validity_window_bounds_are_inclusive() -> None:
    assert classify(_coupon(valid_from=NOW), Decimal("100"), NOW) == CouponState.eligible
    assert classify(_coupon(valid_until=NOW), Decimal("100"), NOW) == CouponState.eligible
    expired = check_eligibility(_coupon(valid_until=NOW - timedelta(microseconds=1)), Decimal("100"), NOW)
    assert expired is not None
    assert expired.code == ErrorCode.COUPON_EXPIRED


def test_usage_limit_before_minimum_purchase() -> None:
    coupon = _coupon(max_uses=3, used_count=3, min_purchase=Decimal("1000"))
    failure = check_eligibility(coupon, Decimal("10"), NOW)
    assert failure is not None
    assert failure.code == ErrorCode.COUPON_MAX_USES


def test_unlimited_uses_when_max_uses_is_absent() -> None:
    assert classify(_coupon(max_uses=None, used_count=10_000), Decimal("1"), NOW) == CouponState.eligible


def test_minimum_purchase_equal_to_cart_passes() -> None:
    coupon = _coupon(min_purchase=Decimal("20000"))
    assert classify(coupon, Decimal("20000"), NOW) == CouponState.eligible

    failure = check_eligibility(coupon, Decimal("19999"), NOW)
    assert failure is not None
    assert failure.code == ErrorCode.MIN_PURCHASE_NOT_MET
    assert failure.details == {"minPurchase": "20000", "cartTotal": "19999"}
    assert "20000" in failure.message


def test_naive_timestamps_are_read_as_utc() -> None:
    naive_now = NOW.replace(tzinfo=None)
    coupon = _coupon(valid_from=naive_now - timedelta(hours=1), valid_until=naive_now + timedelta(hours=1))
    assert classify(coupon, Decimal("1"), NOW) == CouponState.eligible
    assert classify(coupon, Decimal("1"), NOW + timedelta(hours=2)) == CouponState.expired


def test_price_cart_amounts_are_fixed_to_cents() -> None:
    percent = price_cart(_coupon(discount_value=Decimal("25")), Decimal("50"))
    fixed = price_cart(_coupon(discount_type=DiscountType.fixed, discount_value=Decimal("5000")), Decimal("50000"))

    assert (str(percent.discount_amount), str(percent.final_total)) == ("13.00", "37.00")
    assert (str(fixed.discount_amount), str(fixed.final_total)) == ("5000.00", "45000.00")
