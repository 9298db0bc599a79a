from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from credential_service.api.admin import router as admin_router
from credential_service.api.errors import register_error_handlers
from credential_service.api.login import router as login_router
from credential_service.api.logout import router as logout_router
from credential_service.api.metrics_endpoint import router as metrics_router
from credential_service.api.refresh import router as refresh_router
from credential_service.api.resource import router as resource_router
from credential_service.core.config import SETTINGS
from credential_service.core.logging import setup_logging
from credential_service.core.metrics import PrometheusAuthMetrics
from credential_service.db.redis import lifespan_redis
from credential_service.middleware.metrics import MetricsMiddleware
from credential_service.middleware.request_context import (
    RequestContextMiddleware,
    install_log_filter,
)
from credential_service.models.user import User
from credential_service.services import auth_service
from credential_service.services.container import Services, build_services

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_log_filter()

logger = logging.getLogger(__name__)


def _seed_dev_user(services: Services) -> None:
    """Seed a login for local development. Skip if already present."""
    email = "test@example.com"
    if services.users.get_by_email(email) is not None:
        return
    services.users.add(
        User.new(
            email=email,
            password_hash=auth_service.hash_password("test-password"),
            name="Dev User",
        )
    )


def create_app(services: Services) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        async with lifespan_redis(services.redis_client):
            yield

    app = FastAPI(
        title="credential-service",
        lifespan=lifespan,
        docs_url="/docs" if services.settings.is_dev else None,
        redoc_url="/redoc" if services.settings.is_dev else None,
    )
    app.state.services = services

    register_error_handlers(app)

    # Middleware execution order: last-added runs first (outermost layer).
    # RequestContext (outermost) → Metrics → route handler
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(metrics_router)
    app.include_router(admin_router)
    app.include_router(login_router)
    app.include_router(logout_router)
    app.include_router(refresh_router)
    app.include_router(resource_router)
    return app


_services = build_services(SETTINGS, metrics=PrometheusAuthMetrics())
if SETTINGS.is_dev:
    _seed_dev_user(_services)

app = create_app(_services)

logger.info(
    "credential-service started  env=%s log_level=%s store=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    "redis" if SETTINGS.redis_url else "memory",
    "on" if SETTINGS.is_dev else "off",
)
