"""Bind the organization named by a request header for the rest of the request."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from identity_access.common.logging import log_context
from identity_access.common.problem_details import (
    ERROR_DEFINITIONS,
    build_problem_details,
    identity_access_exception_handler,
    problem_response,
)
from identity_access.db.database import session_scope
from identity_access.models import Organization
from identity_access.settings import Settings, get_settings

from .context import OrganizationContext, OrganizationContextAccessor
from .errors import OrganizationNotFoundError

logger = logging.getLogger(__name__)


class OrganizationContextMiddleware(BaseHTTPMiddleware):
    """Scope the request to the organization in the configured header.

    Requests without the header pass through unscoped. A malformed value is a
    400 and an unknown organization a 404.
    """

    def __init__(self, app: ASGIApp, *, settings: Settings | None = None) -> None:
        super().__init__(app)
        self._settings = settings or get_settings()
        self._accessor = OrganizationContextAccessor()

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        header_name = self._settings.organization_header_name
        raw_value = request.headers.get(header_name)
        if raw_value is None:
            return await call_next(request)

        try:
            organization_id = UUID(raw_value.strip())
        except ValueError:
            problem = build_problem_details(
                definition=ERROR_DEFINITIONS["bad_request"],
                instance=str(request.url.path),
                detail=f"Header '{header_name}' must be an organization identifier.",
                request_id=getattr(request.state, "correlation_id", None),
            )
            return problem_response(problem)

        async with session_scope() as session:
            organization = await session.get(Organization, organization_id)
        if organization is None:
            return await identity_access_exception_handler(
                request, OrganizationNotFoundError(organization_id)
            )

        context = OrganizationContext(
            organization_id=organization.id,
            slug=organization.slug,
            display_name=organization.display_name,
            tenant_id=organization.tenant_id,
        )
        logger.debug(
            "organizations.context.bound",
            extra=log_context(tenant_id=organization.tenant_id, organization_id=organization.id),
        )
        with self._accessor.begin_scope(context):
            return await call_next(request)


__all__ = ["OrganizationContextMiddleware"]
