"""OAuth2 client-credentials token endpoint for LTI services."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Form
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from kialo.api.deps import get_kialo_config
from kialo.core.config import KialoConfig
from kialo.db.engine import get_session
from kialo.lti.constants import (
    CLIENT_ASSERTION_TYPE_JWT_BEARER,
    GRANT_TYPE_CLIENT_CREDENTIALS,
)
from kialo.lti.errors import LtiError
from kialo.lti.service_tokens import (
    ServiceTokenResponse,
    grant_scopes,
    issue_service_token,
    validate_client_assertion,
)

logger = logging.getLogger(__name__)

router = APIRouter()

HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401


class _TokenForm(BaseModel):
    """Bundle form fields for the token endpoint."""

    grant_type: str | None = None
    client_assertion_type: str | None = None
    client_assertion: str | None = None
    scope: str | None = None


def _error(error: str, status_code: int = HTTP_BAD_REQUEST) -> JSONResponse:
    return JSONResponse({"error": error}, status_code=status_code)


@router.post("/lti_token", response_model=None)
async def token_endpoint(
    db: Annotated[AsyncSession, Depends(get_session)],
    config: Annotated[KialoConfig, Depends(get_kialo_config)],
    form: Annotated[_TokenForm, Form()],
) -> ServiceTokenResponse | JSONResponse:
    """POST /lti_token -- exchange a client assertion for an access token."""
    if form.grant_type != GRANT_TYPE_CLIENT_CREDENTIALS:
        return _error("unsupported_grant_type")
    if (
        form.client_assertion_type != CLIENT_ASSERTION_TYPE_JWT_BEARER
        or not form.client_assertion
    ):
        return _error("invalid_request")

    try:
        client_id = await validate_client_assertion(config, form.client_assertion)
    except LtiError as exc:
        logger.warning("Rejected client assertion: %s", exc.reason)
        return _error("invalid_client", HTTP_UNAUTHORIZED)

    scopes = grant_scopes(form.scope)
    if not scopes:
        return _error("invalid_scope")
    return await issue_service_token(db, config, client_id, scopes)
