"""SQLAlchemy declarative Base with the index naming convention used by Alembic revisions."""

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

# Index names match the ones created by the Alembic revisions (op.f("ix_<table>_<column>")).
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
}


class Base(DeclarativeBase):
    """Declarative base for the users, access_tokens and authentications tables."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
