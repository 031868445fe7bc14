"""Deep linking entry point and response receiver."""

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.api.deps import (
    get_current_user_id,
    get_lti_flow,
    load_course_authorization,
    require_user,
)
from kialo.api.pages import deep_link_result_page, loading_page
from kialo.db.engine import get_session
from kialo.lti.authorization import CAP_ADD_INSTANCE
from kialo.lti.errors import AuthorizationError, LtiError, LtiErrorKind
from kialo.lti.flow import LtiFlow

logger = logging.getLogger(__name__)

router = APIRouter()

SESSION_DEPLOYMENT_KEY = "kialo_deployment_id"


def new_deployment_id(course_id: int, user_id: str) -> str:
    """Deployment id for an activity that does not exist yet."""
    return f"{course_id}{user_id}-{secrets.token_hex(8)}"


async def _start_deep_link(
    request: Request,
    db: AsyncSession,
    flow: LtiFlow,
    user_id: str | None,
    course_id: int,
    deployment_id: str | None,
) -> HTMLResponse:
    user = await require_user(db, user_id)
    authorization = await load_course_authorization(db, course_id, user.id)
    if not authorization.has_capability(CAP_ADD_INSTANCE):
        raise AuthorizationError(
            f"User {user.id} lacks {CAP_ADD_INSTANCE} in course {course_id}"
        )
    deployment_id = deployment_id or new_deployment_id(course_id, user.id)
    request.session[SESSION_DEPLOYMENT_KEY] = deployment_id
    message = flow.init_deep_link(course_id, user.id, deployment_id)
    return HTMLResponse(
        loading_page("Kialo", "Opening the Kialo discussion selection.", message)
    )


async def _finish_deep_link(
    request: Request, flow: LtiFlow, token: str
) -> HTMLResponse:
    deployment_id = request.session.get(SESSION_DEPLOYMENT_KEY)
    if not deployment_id:
        raise LtiError(
            LtiErrorKind.INVALID_REQUEST, "No deep linking request in progress"
        )
    result = await flow.validate_deep_linking_response(token, deployment_id)
    request.session.pop(SESSION_DEPLOYMENT_KEY, None)
    return HTMLResponse(deep_link_result_page(result))


@router.api_route("/lti_select", methods=["GET", "POST"], response_class=HTMLResponse)
async def lti_select(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_session)],
    user_id: Annotated[str | None, Depends(get_current_user_id)],
    flow: Annotated[LtiFlow, Depends(get_lti_flow)],
) -> HTMLResponse:
    """Start deep linking (``courseid``) or receive the response (``JWT``)."""
    params = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        params.update({k: v for k, v in form.items() if isinstance(v, str)})

    course_id = params.get("courseid", "")
    if course_id.isdigit() and int(course_id) > 0:
        return await _start_deep_link(
            request, db, flow, user_id, int(course_id), params.get("deploymentid")
        )
    if params.get("JWT"):
        return await _finish_deep_link(request, flow, params["JWT"])
    raise LtiError(LtiErrorKind.INVALID_REQUEST, "Expected courseid or JWT parameter")
