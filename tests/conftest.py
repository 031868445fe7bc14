"""Shared test fixtures for the Kialo LTI plugin."""

import base64
import html
import json
import re
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import jwt
import pytest
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from kialo.api.deps import get_current_user_id
from kialo.core.app import create_app
from kialo.core.config import KialoConfig
from kialo.core.settings import KialoSettings
from kialo.crypto.jwt_manager import JWTManager
from kialo.crypto.keys import generate_rsa_keypair, keychain_from_keypair
from kialo.crypto.types import SigningKeyData
from kialo.db.base import BaseEntity
from kialo.db.engine import get_session
from kialo.db.models_activity import KialoActivityEntity
from kialo.db.models_course import CourseEntity, EnrolmentEntity, UserEntity
from kialo.lti.registration import get_platform_keychain
from kialo.lti.service_tokens import issue_service_token
from kialo.lti.tool_keys import TOOL_KEY_SET_NAME

PLATFORM_URL = "https://lms.example.com/mod/kialo"
TOOL_URL = "https://tool.example.com"
_HIDDEN_INPUT = re.compile(r'<input type="hidden" name="([^"]*)" value="([^"]*)"/>')


@pytest.fixture(scope="session")
def tool_keypair() -> SigningKeyData:
    """One tool keypair for the whole run; RSA generation is slow."""
    return generate_rsa_keypair()


@pytest.fixture(scope="session")
def fernet_key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture(autouse=True)
def _set_env(
    monkeypatch: pytest.MonkeyPatch, tool_keypair: SigningKeyData, fernet_key: str
) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("KIALO_PLATFORM_URL", PLATFORM_URL)
    monkeypatch.setenv("KIALO_TOOL_URL", TOOL_URL)
    monkeypatch.setenv("KIALO_SIGNING_KEY_ENCRYPTION_KEY", fernet_key)
    monkeypatch.setenv("KIALO_TOOL_PUBLIC_KEY_PEM", tool_keypair.public_key_pem)
    monkeypatch.setenv("KIALO_TOOL_KEY_ID", tool_keypair.kid)
    monkeypatch.setenv("KIALO_SESSION_COOKIE_SECURE", "false")
    monkeypatch.delenv("TARGET_KIALO_URL", raising=False)


@pytest.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    """Create an in-memory SQLite async session for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _rec) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(BaseEntity.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def settings() -> KialoSettings:
    return KialoSettings()


@pytest.fixture
async def config(db_session: AsyncSession, settings: KialoSettings) -> KialoConfig:
    """Configuration with the platform key chain stored in the test database."""
    keychain = await get_platform_keychain(db_session, settings)
    await db_session.commit()
    return KialoConfig(settings, platform_keychain=keychain)


@pytest.fixture
def tool_jwt(tool_keypair: SigningKeyData, settings: KialoSettings) -> JWTManager:
    """Signs messages the way the tool does: issuer is the client id."""
    keychain = keychain_from_keypair(tool_keypair, TOOL_KEY_SET_NAME)
    return JWTManager(keychain, settings.client_id)


@pytest.fixture
async def course(db_session: AsyncSession) -> KialoActivityEntity:
    """Course 7 with teacher ``u1``, student ``42`` and activity cmid 3."""
    db_session.add(CourseEntity(id=7, name="Philosophy 101"))
    db_session.add_all(
        [
            UserEntity(
                id="u1",
                username="tlovelace",
                first_name="Ada",
                last_name="Lovelace",
                email="ada@example.com",
            ),
            UserEntity(
                id="42",
                username="sturing",
                first_name="Alan",
                last_name="Turing",
                email="alan@example.com",
            ),
            UserEntity(id="guest", username="guest", is_guest=True),
        ]
    )
    db_session.add_all(
        [
            EnrolmentEntity(course_id=7, user_id="u1", role="editingteacher"),
            EnrolmentEntity(course_id=7, user_id="42", role="student"),
        ]
    )
    activity = KialoActivityEntity(
        cmid=3,
        course_id=7,
        name="Is free will an illusion?",
        discussion_url=f"{TOOL_URL}/discussions/1",
        time_modified=datetime.now(UTC),
    )
    db_session.add(activity)
    await db_session.commit()
    return activity


@pytest.fixture
def current_user() -> dict[str, str | None]:
    """Mutable stand-in for the host login; set ``user_id`` to log in."""
    return {"user_id": None}


@pytest.fixture
async def client(
    db_session: AsyncSession, current_user: dict[str, str | None]
) -> AsyncIterator[AsyncClient]:
    """Create an httpx test client with DB session and login overrides."""
    app = create_app()

    async def _override_session() -> AsyncIterator[AsyncSession]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_current_user_id] = lambda: current_user["user_id"]

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def bearer(
    db_session: AsyncSession, config: KialoConfig
) -> Callable[[list[str]], Awaitable[dict[str, str]]]:
    """Issue a service token and return the matching Authorization header."""

    async def _issue(scopes: list[str]) -> dict[str, str]:
        response = await issue_service_token(
            db_session, config, config.client_id, scopes
        )
        await db_session.commit()
        return {"Authorization": f"Bearer {response.access_token}"}

    return _issue


@pytest.fixture
def hidden_fields() -> Callable[[str], dict[str, str]]:
    """Read the hidden inputs of an auto-submitting LTI form page."""

    def _parse(page: str) -> dict[str, str]:
        return {
            html.unescape(name): html.unescape(value)
            for name, value in _HIDDEN_INPUT.findall(page)
        }

    return _parse


@pytest.fixture
def rewrite_header() -> Callable[[str, dict[str, Any]], str]:
    """Swap the header segment of a compact JWT, keeping payload and signature."""

    def _rewrite(token: str, header: dict[str, Any]) -> str:
        _, payload, signature = token.split(".")
        segment = base64.urlsafe_b64encode(json.dumps(header).encode()).rstrip(b"=")
        return f"{segment.decode()}.{payload}.{signature}"

    return _rewrite


@pytest.fixture
def sign_raw(tool_keypair: SigningKeyData) -> Callable[[dict[str, Any]], str]:
    """Sign any JSON payload with the tool key, skipping PyJWT's claim checks."""

    def _sign(payload: dict[str, Any]) -> str:
        return jwt.PyJWS().encode(
            json.dumps(payload).encode(),
            tool_keypair.private_key_pem,
            algorithm="RS256",
            headers={"kid": tool_keypair.kid},
        )

    return _sign
