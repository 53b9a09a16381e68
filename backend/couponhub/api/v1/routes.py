from fastapi import APIRouter

from couponhub.api.v1 import coupons

api_router = APIRouter()

api_router.include_router(coupons.router)


@api_router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
