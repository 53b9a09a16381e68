from __future__ import annotations

import enum
from typing import Any


class ErrorCode(str, enum.Enum):
    INVALID_INPUT = "INVALID_INPUT"
    SITE_NOT_FOUND = "SITE_NOT_FOUND"
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    DUPLICATE_CODE = "DUPLICATE_CODE"
    COUPON_LIMIT_REACHED = "COUPON_LIMIT_REACHED"
    COUPON_INACTIVE = "COUPON_INACTIVE"
    COUPON_EXPIRED = "COUPON_EXPIRED"
    COUPON_NOT_YET_VALID = "COUPON_NOT_YET_VALID"
    COUPON_MAX_USES = "COUPON_MAX_USES"
    MIN_PURCHASE_NOT_MET = "MIN_PURCHASE_NOT_MET"
    INTERNAL_ERROR = "INTERNAL_ERROR"


INTERNAL_ERROR_MESSAGE = "Internal server error"


class CouponServiceError(Exception):
    """A domain failure that is reported to the caller verbatim."""

    def __init__(self, code: ErrorCode, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class RedemptionConflictError(RuntimeError):
    """The usage counter kept moving underneath a redemption; nothing was committed."""
