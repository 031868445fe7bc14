"""SQLAlchemy model for issued LTI service access tokens."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from kialo.db.base import BaseEntity


class ServiceTokenEntity(BaseEntity):
    """Client-credentials access token granted to the tool."""

    __tablename__ = "kialo_service_tokens"

    id: Mapped[str] = mapped_column(String(48), primary_key=True)
    client_id: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )
    scope: Mapped[str] = mapped_column(String(1024), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    revoked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
