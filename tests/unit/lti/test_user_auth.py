"""Tests for authenticating the OIDC login hint."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from kialo.db.models_activity import KialoActivityEntity
from kialo.lti.user_auth import UserIdentity, authenticate_user, parse_login_hint


class TestParseLoginHint:
    """Tests for splitting the login hint."""

    def test_valid(self) -> None:
        assert parse_login_hint("7/u1") == (7, "u1")

    @pytest.mark.parametrize("hint", ["", "7", "7/", "abc/u1", "/u1"])
    def test_malformed(self, hint: str) -> None:
        assert parse_login_hint(hint) is None


class TestAuthenticateUser:
    """Tests for matching the hint against the logged-in user."""

    async def test_matching_user(
        self, db_session: AsyncSession, course: KialoActivityEntity
    ) -> None:
        identity = await authenticate_user(db_session, "42", "7/42")
        assert identity is not None
        assert identity.subject_id == "42"
        assert identity.full_name == "Alan Turing"
        assert identity.preferred_username == "sturing"

    async def test_other_user_rejected(
        self, db_session: AsyncSession, course: KialoActivityEntity
    ) -> None:
        assert await authenticate_user(db_session, "42", "7/u1") is None

    async def test_not_logged_in(
        self, db_session: AsyncSession, course: KialoActivityEntity
    ) -> None:
        assert await authenticate_user(db_session, None, "7/42") is None

    async def test_not_enrolled(
        self, db_session: AsyncSession, course: KialoActivityEntity
    ) -> None:
        assert await authenticate_user(db_session, "42", "8/42") is None

    async def test_guest_rejected(
        self, db_session: AsyncSession, course: KialoActivityEntity
    ) -> None:
        assert await authenticate_user(db_session, "guest", "7/guest") is None


class TestUserIdentity:
    """Tests for the OIDC claims of an identity."""

    def test_claims_skip_missing_values(self) -> None:
        identity = UserIdentity(
            subject_id="42",
            full_name="Alan Turing",
            email="alan@example.com",
            given_name="Alan",
            family_name="Turing",
            locale="en",
        )
        assert identity.to_claims() == {
            "sub": "42",
            "name": "Alan Turing",
            "email": "alan@example.com",
            "given_name": "Alan",
            "family_name": "Turing",
            "locale": "en",
        }
