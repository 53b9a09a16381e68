from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.db.session import get_session
from couponhub.schemas.common import FunctionResponse
from couponhub.schemas.coupons import ApplyCouponResult, CouponRead, DeletedCoupon, ValidateCouponResult
from couponhub.services import coupons as coupons_service

router = APIRouter(prefix="/coupons", tags=["coupons"])

# Callable-style endpoints: the raw body goes to the service, which owns
# validation, and the envelope always comes back with HTTP 200.


@router.post("/create", response_model=FunctionResponse[CouponRead])
async def create_coupon(
    payload: Any = Body(default=None),
    session: AsyncSession = Depends(get_session),
) -> FunctionResponse[CouponRead]:
    return await coupons_service.create_coupon(session, payload)


@router.post("/list", response_model=FunctionResponse[list[CouponRead]])
async def list_coupons(
    payload: Any = Body(default=None),
    session: AsyncSession = Depends(get_session),
) -> FunctionResponse[list[CouponRead]]:
    return await coupons_service.get_coupons(session, payload)


@router.post("/update", response_model=FunctionResponse[CouponRead])
async def update_coupon(
    payload: Any = Body(default=None),
    session: AsyncSession = Depends(get_session),
) -> FunctionResponse[CouponRead]:
    return await coupons_service.update_coupon(session, payload)


@router.post("/delete", response_model=FunctionResponse[DeletedCoupon])
async def delete_coupon(
    payload: Any = Body(default=None),
    session: AsyncSession = Depends(get_session),
) -> FunctionResponse[DeletedCoupon]:
    return await coupons_service.delete_coupon(session, payload)


@router.post("/validate", response_model=FunctionResponse[ValidateCouponResult])
async def validate_coupon(
    payload: Any = Body(default=None),
    session: AsyncSession = Depends(get_session),
) -> FunctionResponse[ValidateCouponResult]:
    return await coupons_service.validate_coupon(session, payload)


@router.post("/apply", response_model=FunctionResponse[ApplyCouponResult])
async def apply_coupon(
    payload: Any = Body(default=None),
    session: AsyncSession = Depends(get_session),
) -> FunctionResponse[ApplyCouponResult]:
    return await coupons_service.apply_coupon(session, payload)
