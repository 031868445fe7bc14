"""Tests for the discussion URL update endpoint."""

from collections.abc import Awaitable, Callable

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.db.models_activity import KialoActivityEntity
from kialo.db.repo_activity import get_activity
from kialo.lti.constants import SCOPE_AGS_SCORE, SCOPE_UPDATE_DISCUSSION_URL

Bearer = Callable[[list[str]], Awaitable[dict[str, str]]]

NEW_URL = "https://tool.example.com/discussions/2"


class TestUpdateDiscussionUrl:
    """Tests for POST /update_discussion_url."""

    async def test_updates_activity(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        course: KialoActivityEntity,
        bearer: Bearer,
    ) -> None:
        headers = await bearer([SCOPE_UPDATE_DISCUSSION_URL])
        resp = await client.post(
            "/update_discussion_url",
            params={"cmid": 3},
            headers=headers,
            json={"discussion_url": NEW_URL},
        )
        assert resp.status_code == 204
        activity = await get_activity(db_session, 3)
        assert activity is not None
        assert activity.discussion_url == NEW_URL

    async def test_empty_url_allowed(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        course: KialoActivityEntity,
        bearer: Bearer,
    ) -> None:
        headers = await bearer([SCOPE_UPDATE_DISCUSSION_URL])
        resp = await client.post(
            "/update_discussion_url",
            params={"cmid": 3},
            headers=headers,
            json={"discussion_url": ""},
        )
        assert resp.status_code == 204
        activity = await get_activity(db_session, 3)
        assert activity is not None
        assert activity.discussion_url == ""

    async def test_unknown_activity(
        self, client: AsyncClient, course: KialoActivityEntity, bearer: Bearer
    ) -> None:
        headers = await bearer([SCOPE_UPDATE_DISCUSSION_URL])
        resp = await client.post(
            "/update_discussion_url",
            params={"cmid": 99},
            headers=headers,
            json={"discussion_url": NEW_URL},
        )
        assert resp.status_code == 404
        assert "99" in resp.json()["error"]

    async def test_requires_discussion_scope(
        self, client: AsyncClient, course: KialoActivityEntity, bearer: Bearer
    ) -> None:
        headers = await bearer([SCOPE_AGS_SCORE])
        resp = await client.post(
            "/update_discussion_url",
            params={"cmid": 3},
            headers=headers,
            json={"discussion_url": NEW_URL},
        )
        assert resp.status_code == 401

    async def test_requires_token(
        self, client: AsyncClient, course: KialoActivityEntity
    ) -> None:
        resp = await client.post(
            "/update_discussion_url",
            params={"cmid": 3},
            json={"discussion_url": NEW_URL},
        )
        assert resp.status_code == 401

    async def test_non_string_url(
        self, client: AsyncClient, course: KialoActivityEntity, bearer: Bearer
    ) -> None:
        headers = await bearer([SCOPE_UPDATE_DISCUSSION_URL])
        resp = await client.post(
            "/update_discussion_url",
            params={"cmid": 3},
            headers=headers,
            json={"discussion_url": ["a"]},
        )
        assert resp.status_code == 400
