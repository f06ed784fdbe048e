"""
SQLAlchemy declarative base for the indexing state store.

Dependencies: sqlalchemy
"""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base; every state store table registers its metadata here."""

    pass
