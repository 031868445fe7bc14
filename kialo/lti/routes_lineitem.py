"""AGS line item and score endpoints."""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from kialo.api.deps import get_kialo_config, require_service_token
from kialo.core.config import KialoConfig
from kialo.db.engine import get_session
from kialo.db.models_tokens import ServiceTokenEntity
from kialo.lti.constants import AGS_SCOPES, SCOPE_AGS_SCORE
from kialo.lti.errors import LtiError
from kialo.lti.grading import LineItem, get_line_item, update_grade

logger = logging.getLogger(__name__)

router = APIRouter()

HTTP_NO_CONTENT = 204
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404

LINEITEM_MEDIA_TYPE = "application/vnd.ims.lis.v2.lineitem+json"
LINEITEMS_MEDIA_TYPE = "application/vnd.ims.lis.v2.lineitemcontainer+json"


def _dump(item: LineItem) -> dict:
    return item.model_dump(by_alias=True, exclude_none=True, mode="json")


@router.get("/lti_lineitem", response_model=None)
async def lineitem(
    request: Request,
    course_id: Annotated[int, Query()],
    cmid: Annotated[int, Query()],
    resource_link_id: Annotated[str, Query()],
    db: Annotated[AsyncSession, Depends(get_session)],
    _token: Annotated[ServiceTokenEntity, Depends(require_service_token(AGS_SCOPES))],
) -> JSONResponse:
    """GET /lti_lineitem -- describe the activity's line item."""
    item = await get_line_item(db, course_id, cmid, resource_link_id, str(request.url))
    if item is None:
        return JSONResponse({"error": "not_found"}, status_code=HTTP_NOT_FOUND)
    return JSONResponse(_dump(item), media_type=LINEITEM_MEDIA_TYPE)


@router.get("/lti_lineitems", response_model=None)
async def lineitems(
    course_id: Annotated[int, Query()],
    cmid: Annotated[int, Query()],
    resource_link_id: Annotated[str, Query()],
    db: Annotated[AsyncSession, Depends(get_session)],
    config: Annotated[KialoConfig, Depends(get_kialo_config)],
    _token: Annotated[ServiceTokenEntity, Depends(require_service_token(AGS_SCOPES))],
) -> JSONResponse:
    """GET /lti_lineitems -- the line item container (always one item)."""
    item_url = config.lineitem_url(course_id, cmid, resource_link_id)
    item = await get_line_item(db, course_id, cmid, resource_link_id, item_url)
    items = [_dump(item)] if item is not None else []
    return JSONResponse(items, media_type=LINEITEMS_MEDIA_TYPE)


@router.post("/lti_lineitem/scores", response_model=None)
async def scores(
    request: Request,
    course_id: Annotated[int, Query()],
    cmid: Annotated[int, Query()],
    db: Annotated[AsyncSession, Depends(get_session)],
    _token: Annotated[
        ServiceTokenEntity, Depends(require_service_token([SCOPE_AGS_SCORE]))
    ],
) -> Response:
    """POST /lti_lineitem/scores -- receive a score for a user."""
    try:
        data = await request.json()
    except json.JSONDecodeError:
        return JSONResponse({"error": "invalid_request"}, status_code=HTTP_BAD_REQUEST)
    if not isinstance(data, dict):
        return JSONResponse({"error": "invalid_request"}, status_code=HTTP_BAD_REQUEST)

    try:
        stored = await update_grade(db, course_id, cmid, data)
    except (LtiError, ValidationError) as exc:
        logger.warning("Rejected score for cmid=%s: %s", cmid, exc)
        return JSONResponse({"error": "invalid_request"}, status_code=HTTP_BAD_REQUEST)
    if not stored:
        return JSONResponse({"error": "invalid_request"}, status_code=HTTP_BAD_REQUEST)
    return Response(status_code=HTTP_NO_CONTENT)
