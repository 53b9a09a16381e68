from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from couponhub.api.v1.routes import api_router
from couponhub.core.config import settings
from couponhub.core.errors import ErrorCode
from couponhub.core.logging_config import configure_logging
from couponhub.middleware.request_log import RequestLoggingMiddleware
from couponhub.schemas.common import FunctionResponse, format_issues, validation_issues


def get_application() -> FastAPI:
    configure_logging(settings.log_json)
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_tags=[{"name": "coupons", "description": "Coupon management and redemption"}],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        issues = validation_issues(exc.errors())
        payload = FunctionResponse.failure(ErrorCode.INVALID_INPUT, format_issues(issues), {"issues": issues})
        return JSONResponse(status_code=200, content=jsonable_encoder(payload.model_dump(by_alias=True)))

    return app


app = get_application()
