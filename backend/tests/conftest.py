from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from couponhub.db.session import build_engine, create_tables
from couponhub.models.coupon import Coupon, DiscountType
from couponhub.models.tenant import Site, User

# Two tenants: site456 belongs to a "service" plan owner, site999 to a "free" one.
TENANTS = (
    ("user123", "service", "site456"),
    ("user789", "free", "site999"),
)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


async def _create_store(db_path: Path) -> tuple[Any, async_sessionmaker[AsyncSession]]:
    engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
    await create_tables(engine)
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        for user_id, plan, site_id in TENANTS:
            session.add(User(id=user_id, email=f"{user_id}@example.com", plan=plan))
            session.add(Site(id=site_id, user_id=user_id, name=site_id))
        await session.commit()
    return engine, factory


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine, factory = await _create_store(tmp_path / "coupons.db")
    yield factory
    await engine.dispose()


def coupon_payload(**overrides: Any) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "siteId": "site456",
        "code": "welcome",
        "discountType": "percentage",
        "discountValue": 10,
        "validFrom": (now - timedelta(days=1)).isoformat(),
        "validUntil": (now + timedelta(days=30)).isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    return coupon_payload


@pytest.fixture
def insert_coupon(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[str]]:
    """Write a coupon row directly, bypassing the service rules."""

    async def _insert(**fields: Any) -> str:
        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {
            "site_id": "site456",
            "user_id": "user123",
            "code": "DIRECT",
            "discount_type": DiscountType.percentage,
            "discount_value": Decimal("10"),
            "used_count": 0,
            "valid_from": now - timedelta(days=1),
            "valid_until": now + timedelta(days=30),
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        values.update(fields)
        async with session_factory() as session:
            coupon = Coupon(**values)
            session.add(coupon)
            await session.commit()
            return coupon.id

    return _insert


@pytest.fixture
def read_coupon(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], Awaitable[Coupon | None]]:
    async def _read(coupon_id: str) -> Coupon | None:
        async with session_factory() as session:
            return await session.get(Coupon, coupon_id)

    return _read
