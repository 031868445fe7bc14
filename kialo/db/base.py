"""Declarative base for the Kialo plugin SQLAlchemy models."""

from sqlalchemy.orm import DeclarativeBase


class BaseEntity(DeclarativeBase):
    """Base class for all plugin and host database entities."""
