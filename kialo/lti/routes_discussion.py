"""Endpoint letting the tool change an activity's discussion URL."""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse

from kialo.api.deps import require_service_token
from kialo.db.engine import get_session
from kialo.db.models_tokens import ServiceTokenEntity
from kialo.db.repo_activity import update_discussion_url
from kialo.lti.constants import SCOPE_UPDATE_DISCUSSION_URL

logger = logging.getLogger(__name__)

router = APIRouter()

HTTP_NO_CONTENT = 204
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404


@router.post("/update_discussion_url", response_model=None)
async def update_discussion_url_endpoint(
    request: Request,
    cmid: Annotated[int, Query()],
    db: Annotated[AsyncSession, Depends(get_session)],
    _token: Annotated[
        ServiceTokenEntity,
        Depends(require_service_token([SCOPE_UPDATE_DISCUSSION_URL])),
    ],
) -> Response:
    """POST /update_discussion_url?cmid= -- body ``{"discussion_url": ...}``."""
    body = await request.body()
    try:
        data = json.loads(body) if body else {}
    except json.JSONDecodeError:
        return JSONResponse({"error": "invalid_request"}, status_code=HTTP_BAD_REQUEST)
    if not isinstance(data, dict):
        return JSONResponse({"error": "invalid_request"}, status_code=HTTP_BAD_REQUEST)

    discussion_url = data.get("discussion_url") or ""
    if not isinstance(discussion_url, str):
        return JSONResponse({"error": "invalid_request"}, status_code=HTTP_BAD_REQUEST)

    if not await update_discussion_url(db, cmid, discussion_url):
        return JSONResponse(
            {"error": f"Activity {cmid} not found"}, status_code=HTTP_NOT_FOUND
        )
    logger.info("Discussion URL of cmid=%s set to %r", cmid, discussion_url)
    return Response(status_code=HTTP_NO_CONTENT)
