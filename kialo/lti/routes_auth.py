"""OIDC authentication endpoint (second leg of every launch)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.api.deps import get_current_user_id, get_lti_flow
from kialo.api.pages import loading_page
from kialo.db.engine import get_session
from kialo.lti.flow import LtiFlow, OidcAuthRequest
from kialo.lti.user_auth import UserIdentity, authenticate_user

router = APIRouter()


async def _read_params(request: Request) -> OidcAuthRequest:
    """Merge query and form parameters; the tool may use either."""
    params = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        params.update({k: v for k, v in form.items() if isinstance(v, str)})
    return OidcAuthRequest.model_validate(params)


@router.api_route("/lti_auth", methods=["GET", "POST"], response_class=HTMLResponse)
async def lti_auth(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_session)],
    user_id: Annotated[str | None, Depends(get_current_user_id)],
    flow: Annotated[LtiFlow, Depends(get_lti_flow)],
) -> HTMLResponse:
    """Validate the OIDC request and post the ID token to the tool."""
    params = await _read_params(request)

    async def _authenticate(login_hint: str) -> UserIdentity | None:
        return await authenticate_user(db, user_id, login_hint)

    message = await flow.lti_auth(params, _authenticate)
    return HTMLResponse(loading_page("Kialo", "Opening Kialo.", message))
