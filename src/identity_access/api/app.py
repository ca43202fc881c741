"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.engine import make_url

from identity_access.common.logging import setup_logging
from identity_access.common.middleware import register_middleware
from identity_access.common.problem_details import register_exception_handlers
from identity_access.db.database import DatabaseConfig, db
from identity_access.features.organizations.middleware import OrganizationContextMiddleware
from identity_access.features.organizations.seeder import OrganizationRoleSeeder
from identity_access.features.roles.seeder import RoleSeeder
from identity_access.settings import Settings, get_settings

from .routes import router

logger = logging.getLogger(__name__)
API_PREFIX = "/api"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Return a configured FastAPI application."""

    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        safe_url = make_url(settings.database_url).render_as_string(hide_password=True)
        logger.info("db.init.start", extra={"database_url": safe_url})
        db.init(DatabaseConfig.from_settings(settings))
        await db.create_all()
        logger.info("db.init.complete", extra={"database_url": safe_url})

        async with db.sessionmaker() as session:
            await RoleSeeder(session=session, settings=settings).seed()
            await OrganizationRoleSeeder(session=session, settings=settings).seed()
            await session.commit()

        try:
            yield
        finally:
            await db.dispose()
            logger.info("db.dispose.complete")

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(OrganizationContextMiddleware, settings=settings)
    register_middleware(app)
    register_exception_handlers(app)
    app.include_router(router, prefix=API_PREFIX)
    return app


__all__ = ["API_PREFIX", "create_app"]
