from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from couponhub.core.errors import CouponServiceError, ErrorCode

T = TypeVar("T")
ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FunctionResponse(CamelModel, Generic[T]):
    """Result envelope shared by every coupon operation.

    Exactly one of ``data`` / ``error`` is populated. ``error_code`` travels
    with ``error`` and ``error_details`` optionally adds structured context.
    """

    data: T | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    error_details: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "FunctionResponse[T]":
        if (self.data is None) == (self.error is None):
            raise ValueError("exactly one of data or error must be set")
        if (self.error is None) != (self.error_code is None):
            raise ValueError("error and error_code must be set together")
        return self

    @classmethod
    def success(cls, data: T) -> "FunctionResponse[T]":
        return cls(data=data)

    @classmethod
    def failure(
        cls,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "FunctionResponse[T]":
        return cls(error=message, error_code=code, error_details=details)


def _issue_path(error: dict[str, Any]) -> str:
    loc = [str(part) for part in error.get("loc", ())]
    if not loc:
        # Model-level checks report the field they concern through the error context.
        field = (error.get("ctx") or {}).get("field")
        if field:
            loc = [str(field)]
    return ".".join(loc)


def validation_issues(errors: Sequence[Any]) -> list[dict[str, str]]:
    return [{"path": _issue_path(err), "message": err["msg"]} for err in errors]


def format_issues(issues: list[dict[str, str]]) -> str:
    return "; ".join(f"{issue['path']}: {issue['message']}" if issue["path"] else issue["message"] for issue in issues)


def parse_request(model: type[ModelT], payload: Any) -> ModelT:
    """Validate a raw payload, turning schema violations into INVALID_INPUT."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        issues = validation_issues(exc.errors(include_url=False))
        raise CouponServiceError(ErrorCode.INVALID_INPUT, format_issues(issues), {"issues": issues}) from exc
