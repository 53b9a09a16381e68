from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.config import Settings, settings as default_settings
from couponhub.core.errors import (
    INTERNAL_ERROR_MESSAGE,
    CouponServiceError,
    ErrorCode,
    RedemptionConflictError,
)
from couponhub.models.coupon import Coupon, DiscountType
from couponhub.schemas.common import FunctionResponse, parse_request
from couponhub.schemas.coupons import (
    PERCENTAGE_CAP,
    ApplyCouponRequest,
    ApplyCouponResult,
    CouponCreate,
    CouponRead,
    CouponUpdate,
    DeleteCouponRequest,
    DeletedCoupon,
    GetCouponsRequest,
    ValidateCouponRequest,
    ValidateCouponResult,
    as_utc,
    normalize_code,
)
from couponhub.services.eligibility import ensure_eligible, price_cart
from couponhub.services.plan_limits import PlanQuota, SqlPlanQuota, ensure_quota
from couponhub.services.tenancy import (
    SiteDirectory,
    SqlSiteDirectory,
    ensure_same_site,
    require_coupon,
    require_site_owner,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _rollback_quietly(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except SQLAlchemyError as exc:
        logger.warning("session_rollback_failed", extra={"error": str(exc)})


def with_error_handling(
    operation: str,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[FunctionResponse[T]]]]:
    """Wrap an operation so it always answers with a FunctionResponse.

    Domain failures keep their code and message. Anything unexpected is
    logged with its traceback and reported as a bare INTERNAL_ERROR.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[FunctionResponse[T]]]:
        @functools.wraps(fn)
        async def wrapper(session: AsyncSession, payload: Any, **kwargs: Any) -> FunctionResponse[T]:
            try:
                data = await fn(session, payload, **kwargs)
            except CouponServiceError as exc:
                await _rollback_quietly(session)
                logger.info("coupon_rejected", extra={"operation": operation, "error_code": exc.code.value})
                return FunctionResponse.failure(exc.code, exc.message, exc.details)
            except Exception:
                await _rollback_quietly(session)
                logger.exception(f"{operation}_failed")
                return FunctionResponse.failure(ErrorCode.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)
            return FunctionResponse.success(data)

        return wrapper

    return decorator


def _to_read(coupon: Coupon) -> CouponRead:
    return CouponRead.model_validate(coupon, from_attributes=True)


def _duplicate_code(code: str) -> CouponServiceError:
    return CouponServiceError(
        ErrorCode.DUPLICATE_CODE,
        f'A coupon with code "{code}" already exists for this site',
        {"code": code},
    )


def _invalid(path: str, message: str) -> CouponServiceError:
    return CouponServiceError(
        ErrorCode.INVALID_INPUT,
        f"{path}: {message}",
        {"issues": [{"path": path, "message": message}]},
    )


async def find_coupon_by_code(session: AsyncSession, *, site_id: str, code: str) -> Coupon | None:
    cleaned = normalize_code(code)
    if not cleaned:
        return None
    result = await session.execute(
        select(Coupon).where(Coupon.site_id == site_id, Coupon.code == cleaned).limit(1)
    )
    return result.scalars().first()


async def _ensure_code_available(
    session: AsyncSession,
    *,
    site_id: str,
    code: str,
    exclude_id: str | None = None,
) -> None:
    stmt = select(Coupon.id).where(Coupon.site_id == site_id, Coupon.code == normalize_code(code))
    if exclude_id is not None:
        stmt = stmt.where(Coupon.id != exclude_id)
    existing = (await session.execute(stmt.limit(1))).scalars().first()
    if existing is not None:
        raise _duplicate_code(normalize_code(code))


def _check_merged_rules(coupon: Coupon, changes: dict[str, Any]) -> None:
    discount_type = changes.get("discount_type", coupon.discount_type)
    discount_value = Decimal(changes.get("discount_value", coupon.discount_value))
    if discount_type == DiscountType.percentage and discount_value > PERCENTAGE_CAP:
        raise _invalid("discountValue", "Percentage cannot exceed 100")

    valid_from = as_utc(changes.get("valid_from", coupon.valid_from))
    valid_until = as_utc(changes.get("valid_until", coupon.valid_until))
    if valid_from >= valid_until:
        raise _invalid("validUntil", "validFrom must be before validUntil")

    max_uses = changes.get("max_uses")
    used_count = int(coupon.used_count or 0)
    if max_uses is not None and int(max_uses) < used_count:
        raise _invalid("maxUses", f"maxUses cannot be below usedCount ({used_count})")


async def _commit_code_write(session: AsyncSession, code: str) -> None:
    # UNIQUE(site_id, code) backs up the pre-check when two writers race.
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise _duplicate_code(code) from exc


@with_error_handling("create_coupon")
async def create_coupon(
    session: AsyncSession,
    payload: Any,
    *,
    sites: SiteDirectory | None = None,
    quotas: PlanQuota | None = None,
) -> CouponRead:
    request = parse_request(CouponCreate, payload)
    sites = sites or SqlSiteDirectory(session)
    quotas = quotas or SqlPlanQuota(session)

    user_id = await require_site_owner(sites, request.site_id)
    await ensure_quota(quotas, user_id=user_id, site_id=request.site_id)
    await _ensure_code_available(session, site_id=request.site_id, code=request.code)

    now = _now()
    coupon = Coupon(
        site_id=request.site_id,
        user_id=user_id,
        code=request.code,
        discount_type=request.discount_type,
        discount_value=request.discount_value,
        min_purchase=request.min_purchase,
        max_uses=request.max_uses,
        used_count=0,
        valid_from=request.valid_from,
        valid_until=request.valid_until,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    session.add(coupon)
    await _commit_code_write(session, request.code)
    await session.refresh(coupon)
    logger.info(
        "coupon_created",
        extra={"coupon_id": coupon.id, "site_id": coupon.site_id, "coupon_code": coupon.code},
    )
    return _to_read(coupon)


@with_error_handling("get_coupons")
async def get_coupons(
    session: AsyncSession,
    payload: Any,
    *,
    sites: SiteDirectory | None = None,
) -> list[CouponRead]:
    request = parse_request(GetCouponsRequest, payload)
    await require_site_owner(sites or SqlSiteDirectory(session), request.site_id)

    result = await session.execute(
        select(Coupon).where(Coupon.site_id == request.site_id).order_by(Coupon.created_at.desc(), Coupon.id)
    )
    return [_to_read(coupon) for coupon in result.scalars().all()]


@with_error_handling("update_coupon")
async def update_coupon(
    session: AsyncSession,
    payload: Any,
    *,
    sites: SiteDirectory | None = None,
) -> CouponRead:
    request = parse_request(CouponUpdate, payload)
    await require_site_owner(sites or SqlSiteDirectory(session), request.site_id)

    coupon = require_coupon(await session.get(Coupon, request.coupon_id))
    ensure_same_site(coupon, request.site_id)

    changes = request.changes()
    new_code = changes.get("code")
    if new_code is not None and new_code != coupon.code:
        await _ensure_code_available(session, site_id=request.site_id, code=new_code, exclude_id=coupon.id)

    _check_merged_rules(coupon, changes)

    for field, value in changes.items():
        setattr(coupon, field, value)
    coupon.updated_at = _now()
    await _commit_code_write(session, coupon.code)
    await session.refresh(coupon)
    logger.info(
        "coupon_updated",
        extra={"coupon_id": coupon.id, "site_id": coupon.site_id, "fields": sorted(changes)},
    )
    return _to_read(coupon)


@with_error_handling("delete_coupon")
async def delete_coupon(
    session: AsyncSession,
    payload: Any,
    *,
    sites: SiteDirectory | None = None,
) -> DeletedCoupon:
    request = parse_request(DeleteCouponRequest, payload)
    await require_site_owner(sites or SqlSiteDirectory(session), request.site_id)

    coupon = require_coupon(await session.get(Coupon, request.coupon_id))
    ensure_same_site(coupon, request.site_id)

    await session.delete(coupon)
    await session.commit()
    logger.info("coupon_deleted", extra={"coupon_id": request.coupon_id, "site_id": request.site_id})
    return DeletedCoupon(id=request.coupon_id)


@with_error_handling("validate_coupon")
async def validate_coupon(
    session: AsyncSession,
    payload: Any,
    *,
    sites: SiteDirectory | None = None,
    config: Settings = default_settings,
) -> ValidateCouponResult:
    """Preview a coupon against a cart. Never touches ``used_count``."""
    request = parse_request(ValidateCouponRequest, payload)
    await require_site_owner(sites or SqlSiteDirectory(session), request.site_id)

    coupon = require_coupon(await find_coupon_by_code(session, site_id=request.site_id, code=request.code))
    ensure_eligible(coupon, request.cart_total, _now())
    breakdown = price_cart(coupon, request.cart_total, rounding=config.money_rounding)
    return ValidateCouponResult(
        valid=True,
        coupon_id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        discount_amount=breakdown.discount_amount,
        final_total=breakdown.final_total,
    )


async def _load_coupon_for_update(session: AsyncSession, coupon_id: str) -> Coupon | None:
    result = await session.execute(
        select(Coupon)
        .where(Coupon.id == coupon_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _claim_use(session: AsyncSession, *, coupon_id: str, seen: int, now: datetime) -> bool:
    """Compare-and-set increment: only succeeds if nobody redeemed since ``seen`` was read."""
    result = await session.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon_id,
            Coupon.used_count == seen,
            or_(Coupon.max_uses.is_(None), Coupon.used_count < Coupon.max_uses),
        )
        .values(used_count=Coupon.used_count + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


@with_error_handling("apply_coupon")
async def apply_coupon(
    session: AsyncSession,
    payload: Any,
    *,
    sites: SiteDirectory | None = None,
    config: Settings = default_settings,
) -> ApplyCouponResult:
    """Redeem a coupon for an order.

    Eligibility is decided on a row read under ``FOR UPDATE`` and the
    increment is a compare-and-set on the count that was read, so two
    concurrent redemptions can never both consume the last use. A lost race
    rolls back and starts over from a fresh read.
    """
    request = parse_request(ApplyCouponRequest, payload)
    await require_site_owner(sites or SqlSiteDirectory(session), request.site_id)

    attempts = max(1, int(config.apply_max_attempts))
    for attempt in range(1, attempts + 1):
        coupon = require_coupon(await _load_coupon_for_update(session, request.coupon_id))
        ensure_same_site(coupon, request.site_id)

        now = _now()
        ensure_eligible(coupon, request.cart_total, now)
        breakdown = price_cart(coupon, request.cart_total, rounding=config.money_rounding)

        seen = int(coupon.used_count or 0)
        if await _claim_use(session, coupon_id=coupon.id, seen=seen, now=now):
            result = ApplyCouponResult(
                coupon_id=coupon.id,
                order_id=request.order_id,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
                discount_amount=breakdown.discount_amount,
                final_total=breakdown.final_total,
                used_count=seen + 1,
            )
            await session.commit()
            logger.info(
                "coupon_applied",
                extra={
                    "coupon_id": result.coupon_id,
                    "site_id": request.site_id,
                    "order_id": request.order_id,
                    "used_count": result.used_count,
                },
            )
            return result

        await session.rollback()
        logger.warning("coupon_apply_conflict", extra={"coupon_id": request.coupon_id, "attempt": attempt})

    raise RedemptionConflictError(f"coupon {request.coupon_id} kept changing during redemption")
