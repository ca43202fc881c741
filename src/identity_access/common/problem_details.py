"""Problem Details helpers for consistent API error responses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .errors import (
    ConflictError,
    IdentityAccessError,
    InvalidRequestError,
    LifecycleHookExecutionError,
    LifecycleHookRejectedError,
    UnknownEntityError,
)
from .logging import log_context

_ERRORS_LOGGER = logging.getLogger("identity_access.errors")

PROBLEM_JSON = "application/problem+json"


@dataclass(frozen=True)
class ErrorDefinition:
    """Canonical Problem Details error metadata."""

    type: str
    title: str
    status: int


ERROR_DEFINITIONS: dict[str, ErrorDefinition] = {
    "bad_request": ErrorDefinition(
        type="bad_request",
        title="Bad request",
        status=status.HTTP_400_BAD_REQUEST,
    ),
    "not_found": ErrorDefinition(
        type="not_found",
        title="Not found",
        status=status.HTTP_404_NOT_FOUND,
    ),
    "conflict": ErrorDefinition(
        type="conflict",
        title="Conflict",
        status=status.HTTP_409_CONFLICT,
    ),
    "validation_error": ErrorDefinition(
        type="validation_error",
        title="Validation error",
        status=422,
    ),
    "lifecycle_rejected": ErrorDefinition(
        type="lifecycle_rejected",
        title="Operation rejected",
        status=status.HTTP_400_BAD_REQUEST,
    ),
    "internal_error": ErrorDefinition(
        type="internal_error",
        title="Internal server error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    ),
}

# Most specific first; the first isinstance match wins.
_ERROR_TYPE_BY_EXCEPTION: tuple[tuple[type[Exception], str], ...] = (
    (UnknownEntityError, "not_found"),
    (ConflictError, "conflict"),
    (InvalidRequestError, "validation_error"),
    (LifecycleHookRejectedError, "lifecycle_rejected"),
    (LifecycleHookExecutionError, "internal_error"),
)


class ProblemDetails(BaseModel):
    """Problem Details-style response payload."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    title: str
    status: int
    detail: str | None = None
    instance: str
    request_id: str | None = Field(default=None, alias="requestId")
    extensions: dict[str, Any] | None = None


def resolve_error_definition(exc: IdentityAccessError) -> ErrorDefinition:
    """Return the Problem Details metadata for a taxonomy error."""

    for exc_type, key in _ERROR_TYPE_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return ERROR_DEFINITIONS[key]
    return ERROR_DEFINITIONS["bad_request"]


def build_problem_details(
    *,
    definition: ErrorDefinition,
    instance: str,
    detail: str | None = None,
    request_id: str | None = None,
    extensions: dict[str, Any] | None = None,
) -> ProblemDetails:
    """Construct a Problem Details payload."""

    return ProblemDetails(
        type=definition.type,
        title=definition.title,
        status=definition.status,
        detail=detail,
        instance=instance,
        request_id=request_id,
        extensions=extensions or None,
    )


def problem_response(problem: ProblemDetails) -> JSONResponse:
    """Render ``problem`` as an ``application/problem+json`` response."""

    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(by_alias=True, exclude_none=True),
        media_type=PROBLEM_JSON,
    )


def _extensions_for(exc: IdentityAccessError) -> dict[str, Any]:
    if isinstance(exc, LifecycleHookRejectedError):
        return {"operation": exc.operation, "reason": exc.reason}
    if isinstance(exc, LifecycleHookExecutionError):
        return {"operation": exc.operation}
    if isinstance(exc, UnknownEntityError) and exc.entity:
        return {"entity": exc.entity, "identifiers": [str(value) for value in exc.identifiers]}
    return {}


async def identity_access_exception_handler(
    request: Request,
    exc: IdentityAccessError,
) -> JSONResponse:
    """Translate taxonomy errors into Problem Details responses."""

    definition = resolve_error_definition(exc)
    if definition.status >= 500:
        _ERRORS_LOGGER.error(
            "identity_access.error",
            exc_info=exc,
            extra=log_context(
                path=str(request.url.path),
                method=request.method,
                exception_type=type(exc).__name__,
            ),
        )

    problem = build_problem_details(
        definition=definition,
        instance=str(request.url.path),
        detail=str(exc),
        request_id=getattr(request.state, "correlation_id", None),
        extensions={k: v for k, v in _extensions_for(exc).items() if v is not None},
    )
    return problem_response(problem)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the access-control error handlers to the FastAPI app."""

    app.add_exception_handler(IdentityAccessError, identity_access_exception_handler)


__all__ = [
    "ERROR_DEFINITIONS",
    "ErrorDefinition",
    "PROBLEM_JSON",
    "ProblemDetails",
    "build_problem_details",
    "identity_access_exception_handler",
    "problem_response",
    "register_exception_handlers",
    "resolve_error_definition",
]
