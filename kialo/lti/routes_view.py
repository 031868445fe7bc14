"""Activity view: starts the resource-link launch."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.api.deps import get_lti_flow, load_course_authorization, require_user
from kialo.api.pages import embed_page, loading_page
from kialo.db.engine import get_session
from kialo.db.models_activity import DISPLAY_EMBED
from kialo.db.models_course import UserEntity
from kialo.db.repo_activity import get_activity
from kialo.lti.authorization import CAP_VIEW
from kialo.lti.errors import AuthorizationError
from kialo.lti.flow import LtiFlow
from kialo.lti.groups import get_current_group_info

router = APIRouter()

REDIRECT_TITLE = "Redirecting to Kialo"
REDIRECT_TEXT = "You are being redirected to the Kialo discussion."


@router.get("/view", response_class=HTMLResponse)
async def view(
    cmid: Annotated[int, Query(alias="id")],
    db: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[UserEntity, Depends(require_user)],
    flow: Annotated[LtiFlow, Depends(get_lti_flow)],
) -> HTMLResponse:
    """GET /view?id={cmid} -- launch the current user into the discussion."""
    activity = await get_activity(db, cmid)
    if activity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    authorization = await load_course_authorization(db, activity.course_id, user.id)
    if not authorization.has_capability(CAP_VIEW):
        raise AuthorizationError(
            f"User {user.id} lacks {CAP_VIEW} in course {activity.course_id}"
        )

    group = await get_current_group_info(db, activity, user.id, authorization)
    message = flow.init_resource_link(
        activity.course_id,
        activity.cmid,
        flow.config.settings.deployment_id,
        user.id,
        activity.discussion_url,
        authorization,
        group,
    )
    if activity.display == DISPLAY_EMBED:
        return HTMLResponse(embed_page(activity.name, message))
    return HTMLResponse(loading_page(REDIRECT_TITLE, REDIRECT_TEXT, message))
