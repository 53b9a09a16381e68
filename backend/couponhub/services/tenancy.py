from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.core.errors import CouponServiceError, ErrorCode
from couponhub.models.coupon import Coupon
from couponhub.models.tenant import Site


class SiteDirectory(Protocol):
    async def resolve_owner(self, site_id: str) -> str | None:
        """Return the owning user id for ``site_id``, or None when unknown."""
        ...


class SqlSiteDirectory:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def resolve_owner(self, site_id: str) -> str | None:
        owner = (await self._session.execute(select(Site.user_id).where(Site.id == site_id))).scalar_one_or_none()
        return str(owner) if owner else None


async def require_site_owner(sites: SiteDirectory, site_id: str) -> str:
    user_id = await sites.resolve_owner(site_id)
    if not user_id:
        raise CouponServiceError(ErrorCode.SITE_NOT_FOUND, "Site not found")
    return user_id


def require_coupon(coupon: Coupon | None) -> Coupon:
    if coupon is None:
        raise CouponServiceError(ErrorCode.COUPON_NOT_FOUND, "Coupon not found")
    return coupon


def ensure_same_site(coupon: Coupon, site_id: str) -> None:
    # A coupon id from one tenant must never be usable through another.
    if coupon.site_id != site_id:
        raise CouponServiceError(ErrorCode.FORBIDDEN, "Coupon does not belong to this site")
