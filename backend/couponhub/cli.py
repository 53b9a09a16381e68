import argparse
import asyncio
import json

from couponhub.db.session import SessionLocal, create_tables
from couponhub import models  # noqa: F401
from couponhub import seeds as app_seeds


async def init_db() -> None:
    await create_tables()


async def _seed_demo(validity_days: int) -> dict[str, int]:
    await init_db()
    async with SessionLocal() as session:
        return await app_seeds.seed_demo(session, validity_days=validity_days)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Coupon service utilities")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init-db", help="Create database tables")
    seed_demo = subparsers.add_parser("seed-demo", help="Load two demo tenants with sample coupons")
    seed_demo.add_argument("--validity-days", type=int, default=365, help="Days until the demo coupons expire")
    return parser


def _run_cli_command(args: argparse.Namespace) -> bool:
    if args.command == "init-db":
        asyncio.run(init_db())
        print("Tables created")
        return True

    if args.command == "seed-demo":
        counts = asyncio.run(_seed_demo(args.validity_days))
        print(json.dumps(counts))
        return True

    return False


def main():
    parser = _build_parser()
    args = parser.parse_args()
    if not _run_cli_command(args):
        parser.print_help()


if __name__ == "__main__":
    main()
