from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TypedDict

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from couponhub.models.coupon import Coupon, DiscountType
from couponhub.models.tenant import Site, User


class SeedTenant(TypedDict):
    user_id: str
    email: str
    plan: str
    site_id: str
    site_name: str


class SeedCoupon(TypedDict):
    id: str
    site_id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase: Decimal | None
    max_uses: int | None


DEMO_TENANTS: list[SeedTenant] = [
    {"user_id": "user123", "email": "test@example.com", "plan": "service", "site_id": "site456", "site_name": "Demo Store"},
    {"user_id": "user789", "email": "rival@example.com", "plan": "free", "site_id": "site999", "site_name": "Rival Store"},
]

# WELCOME exists on both sites on purpose: codes are unique per site only.
DEMO_COUPONS: list[SeedCoupon] = [
    {
        "id": "coupon001",
        "site_id": "site456",
        "code": "WELCOME",
        "discount_type": DiscountType.percentage,
        "discount_value": Decimal("10"),
        "min_purchase": None,
        "max_uses": 100,
    },
    {
        "id": "coupon002",
        "site_id": "site999",
        "code": "WELCOME",
        "discount_type": DiscountType.fixed,
        "discount_value": Decimal("5000"),
        "min_purchase": Decimal("20000"),
        "max_uses": 10,
    },
    {
        "id": "coupon003",
        "site_id": "site456",
        "code": "WELCOME3",
        "discount_type": DiscountType.percentage,
        "discount_value": Decimal("5"),
        "min_purchase": None,
        "max_uses": 50,
    },
]


async def seed_demo(session: AsyncSession, *, validity_days: int = 365) -> dict[str, int]:
    """Replace users, sites and coupons with the demo tenants. Safe to re-run."""
    await session.execute(delete(Coupon))
    await session.execute(delete(Site))
    await session.execute(delete(User))

    owners: dict[str, str] = {}
    for tenant in DEMO_TENANTS:
        session.add(User(id=tenant["user_id"], email=tenant["email"], plan=tenant["plan"]))
        session.add(Site(id=tenant["site_id"], user_id=tenant["user_id"], name=tenant["site_name"]))
        owners[tenant["site_id"]] = tenant["user_id"]
    await session.flush()

    now = datetime.now(timezone.utc)
    for row in DEMO_COUPONS:
        session.add(
            Coupon(
                id=row["id"],
                site_id=row["site_id"],
                user_id=owners[row["site_id"]],
                code=row["code"],
                discount_type=row["discount_type"],
                discount_value=row["discount_value"],
                min_purchase=row["min_purchase"],
                max_uses=row["max_uses"],
                used_count=0,
                valid_from=now - timedelta(days=1),
                valid_until=now + timedelta(days=validity_days),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
    await session.commit()
    return {"users": len(DEMO_TENANTS), "sites": len(DEMO_TENANTS), "coupons": len(DEMO_COUPONS)}
