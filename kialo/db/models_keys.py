"""SQLAlchemy model for the platform signing key."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from kialo.db.base import BaseEntity


class SigningKeyEntity(BaseEntity):
    """RSA key pair anchoring every platform signature.

    Generated once on first use and kept for the lifetime of the plugin; the
    private key is stored Fernet-encrypted.
    """

    __tablename__ = "kialo_signing_keys"
    __table_args__ = (
        # At most one active key per key set
        Index(
            "uq_kialo_signing_keys_active",
            "key_set_name",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    kid: Mapped[str] = mapped_column(String(50), primary_key=True)
    key_set_name: Mapped[str] = mapped_column(
        String(50), nullable=False, server_default="kialo"
    )
    algorithm: Mapped[str] = mapped_column(
        String(10), nullable=False, server_default="RS256"
    )
    private_key_pem: Mapped[str] = mapped_column(Text, nullable=False)
    public_key_pem: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="1"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
