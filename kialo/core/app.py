"""FastAPI application factory for the Kialo LTI platform."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from starlette.middleware.sessions import SessionMiddleware

from kialo.api.pages import error_page
from kialo.core.settings import KialoSettings
from kialo.lti.errors import AuthorizationError, ConfigurationError, LtiError
from kialo.lti.routes_auth import router as auth_router
from kialo.lti.routes_discovery import router as discovery_router
from kialo.lti.routes_discussion import router as discussion_router
from kialo.lti.routes_lineitem import router as lineitem_router
from kialo.lti.routes_select import router as select_router
from kialo.lti.routes_token import router as token_router
from kialo.lti.routes_view import router as view_router

logger = logging.getLogger(__name__)

HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_SERVER_ERROR = 500


async def _lti_error_handler(_request: Request, exc: LtiError) -> HTMLResponse:
    logger.warning("LTI validation failed (%s): %s", exc.kind, exc.reason)
    return HTMLResponse(error_page("Kialo launch failed"), status_code=HTTP_BAD_REQUEST)


async def _authorization_error_handler(
    _request: Request, exc: AuthorizationError
) -> HTMLResponse:
    logger.warning("Access denied: %s", exc.reason)
    return HTMLResponse(
        error_page("Access denied", "You do not have access to this Kialo activity."),
        status_code=HTTP_FORBIDDEN,
    )


async def _configuration_error_handler(
    _request: Request, exc: ConfigurationError
) -> HTMLResponse:
    logger.error("Plugin misconfigured: %s", exc.reason)
    return HTMLResponse(
        error_page("Kialo is not available"), status_code=HTTP_SERVER_ERROR
    )


def create_app(settings: KialoSettings | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = settings or KialoSettings()
    logging.getLogger("kialo").setLevel(settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield

    app = FastAPI(
        title="Kialo LTI Platform",
        version=settings.release,
        lifespan=lifespan,
    )

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        same_site="none" if settings.session_cookie_secure else "lax",
        https_only=settings.session_cookie_secure,
    )

    app.add_exception_handler(LtiError, _lti_error_handler)
    app.add_exception_handler(AuthorizationError, _authorization_error_handler)
    app.add_exception_handler(ConfigurationError, _configuration_error_handler)

    app.include_router(view_router)
    app.include_router(auth_router)
    app.include_router(select_router)
    app.include_router(discovery_router)
    app.include_router(token_router)
    app.include_router(lineitem_router)
    app.include_router(discussion_router)

    return app
