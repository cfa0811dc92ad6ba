"""SQLAlchemy ORM models."""

from aimode.models.base import Base
from aimode.models.query_record import QueryRecord

__all__ = ["Base", "QueryRecord"]
