from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.config import Settings, settings as default_settings
from couponhub.core.errors import CouponServiceError, ErrorCode
from couponhub.models.coupon import Coupon
from couponhub.models.tenant import User


@dataclass(frozen=True)
class PlanLimitCheck:
    allowed: bool
    current: int
    limit: int


class PlanQuota(Protocol):
    async def check(self, user_id: str, site_id: str) -> PlanLimitCheck: ...


def limit_for_plan(plan: str | None, *, config: Settings = default_settings) -> int:
    limits = config.coupon_plan_limits
    key = (plan or "").strip().lower()
    if key in limits:
        return int(limits[key])
    return int(limits.get(config.coupon_default_plan, 0))


class SqlPlanQuota:
    """Plan quota backed by the owner's ``plan`` column and the site's coupon count."""

    def __init__(self, session: AsyncSession, *, config: Settings = default_settings) -> None:
        self._session = session
        self._config = config

    async def check(self, user_id: str, site_id: str) -> PlanLimitCheck:
        plan = (await self._session.execute(select(User.plan).where(User.id == user_id))).scalar_one_or_none()
        limit = limit_for_plan(plan, config=self._config)
        current = int(
            (
                await self._session.execute(
                    select(func.count()).select_from(Coupon).where(Coupon.site_id == site_id)
                )
            ).scalar_one()
        )
        return PlanLimitCheck(allowed=current < limit, current=current, limit=limit)


async def ensure_quota(quotas: PlanQuota, *, user_id: str, site_id: str) -> None:
    verdict = await quotas.check(user_id, site_id)
    if not verdict.allowed:
        raise CouponServiceError(
            ErrorCode.COUPON_LIMIT_REACHED,
            f"Coupon limit reached ({verdict.current}/{verdict.limit})",
            {"current": verdict.current, "limit": verdict.limit},
        )
