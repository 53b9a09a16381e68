from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from pydantic import ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from couponhub.models.coupon import DiscountType
from couponhub.schemas.common import CamelModel

PERCENTAGE_CAP = Decimal("100")
# Keeps cart x percentage inside the default 28-digit decimal context.
CART_TOTAL_DIGITS = 14

_IDENTIFIER_FIELDS = frozenset({"site_id", "coupon_id"})


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _percentage_over_cap() -> PydanticCustomError:
    return PydanticCustomError("percentage_over_cap", "Percentage cannot exceed 100", {"field": "discountValue"})


def _window_not_ordered() -> PydanticCustomError:
    return PydanticCustomError("validity_window", "validFrom must be before validUntil", {"field": "validUntil"})


class _Request(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CouponCreate(_Request):
    site_id: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=64)
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    min_purchase: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    max_uses: int | None = Field(default=None, gt=0)
    valid_from: datetime
    valid_until: datetime

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        normalized = normalize_code(value)
        if not normalized:
            raise PydanticCustomError("code_blank", "code cannot be blank")
        return normalized

    @field_validator("valid_from", "valid_until")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _cross_field_rules(self) -> "CouponCreate":
        if self.discount_type == DiscountType.percentage and self.discount_value > PERCENTAGE_CAP:
            raise _percentage_over_cap()
        if self.valid_from >= self.valid_until:
            raise _window_not_ordered()
        return self


class CouponUpdate(_Request):
    """Partial update.

    Absent keys leave the stored value untouched. ``min_purchase`` and
    ``max_uses`` accept an explicit null, which removes the limit; use
    :meth:`changes` rather than reading attributes so the two cases stay apart.
    """

    site_id: str = Field(min_length=1)
    coupon_id: str = Field(min_length=1)
    code: str | None = Field(default=None, min_length=1, max_length=64)
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    min_purchase: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    max_uses: int | None = Field(default=None, gt=0)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool | None = None

    @field_validator("code", "discount_type", "discount_value", "valid_from", "valid_until", "is_active", mode="before")
    @classmethod
    def _reject_explicit_null(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("null_not_allowed", "Field cannot be null")
        return value

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = normalize_code(value)
        if not normalized:
            raise PydanticCustomError("code_blank", "code cannot be blank")
        return normalized

    @field_validator("valid_from", "valid_until")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _cross_field_rules(self) -> "CouponUpdate":
        # Only comparable when both halves arrive together; otherwise the
        # service re-checks against the stored record.
        if (
            self.discount_type == DiscountType.percentage
            and self.discount_value is not None
            and self.discount_value > PERCENTAGE_CAP
        ):
            raise _percentage_over_cap()
        if self.valid_from is not None and self.valid_until is not None and self.valid_from >= self.valid_until:
            raise _window_not_ordered()
        return self

    def changes(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set if name not in _IDENTIFIER_FIELDS}


class GetCouponsRequest(_Request):
    site_id: str = Field(min_length=1)


class DeleteCouponRequest(_Request):
    site_id: str = Field(min_length=1)
    coupon_id: str = Field(min_length=1)


class ValidateCouponRequest(_Request):
    site_id: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=64)
    cart_total: Decimal = Field(ge=0, max_digits=CART_TOTAL_DIGITS, decimal_places=2)

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: str) -> str:
        normalized = normalize_code(value)
        if not normalized:
            raise PydanticCustomError("code_blank", "code cannot be blank")
        return normalized


class ApplyCouponRequest(_Request):
    site_id: str = Field(min_length=1)
    coupon_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    cart_total: Decimal = Field(ge=0, max_digits=CART_TOTAL_DIGITS, decimal_places=2)


class CouponRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    site_id: str
    user_id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase: Decimal | None = None
    max_uses: int | None = None
    used_count: int
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("valid_from", "valid_until", "created_at", "updated_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class DeletedCoupon(CamelModel):
    id: str


class ValidateCouponResult(CamelModel):
    valid: bool
    coupon_id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    final_total: Decimal


class ApplyCouponResult(CamelModel):
    coupon_id: str
    order_id: str
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    final_total: Decimal
    used_count: int
