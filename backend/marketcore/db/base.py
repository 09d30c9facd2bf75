"""SQLAlchemy Declarative Base — shared base class and column helpers for all ORM models.

Invariants:
    - All models inherit from Base
    - Base is the single source of truth for table metadata
    - Timestamps are generated in UTC by the application, not the database

Design Decisions:
    - Separate file for Base: avoids circular imports between models
    - Constraint naming convention: the exclusion/unique constraint names are
      matched by services when mapping IntegrityError to domain errors
"""

from datetime import datetime, timezone

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all marketplace ORM models."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
