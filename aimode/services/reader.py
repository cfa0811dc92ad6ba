"""Query Record Reader — paginated, sorted and redacted views of stored events."""

import logging
import re
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from aimode.database import Storage
from aimode.errors import StorageError, ValidationError
from aimode.models import QueryRecord
from aimode.schemas import Pagination, PublicRecord, RecordPage, UserRecord

logger = logging.getLogger(__name__)

MIN_UID_LEN = 8

# Newest first; created_at and id keep windows disjoint when timestamps tie
_ORDER = (
    QueryRecord.timestamp.desc(),
    QueryRecord.created_at.desc(),
    QueryRecord.id.desc(),
)


def _to_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError("limit and skip must be integers")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError("limit and skip must be integers") from None


def parse_pagination(limit: Any, skip: Any, default_limit: int, max_limit: int) -> Pagination:
    """Parse raw limit/skip into a clamped window. Raises ValidationError."""
    limit_val = _to_int(limit, default_limit)
    skip_val = _to_int(skip, 0)
    return Pagination(
        limit=min(max(limit_val, 1), max_limit),
        skip=max(skip_val, 0),
    )


def _search_pattern(search: str | None) -> str | None:
    """Stripped regex from the `search` param, or None for no filter. Raises ValidationError."""
    if not search or not search.strip():
        return None
    pattern = search.strip()
    try:
        re.compile(pattern)
    except re.error:
        raise ValidationError("Invalid search pattern") from None
    return pattern


class QueryRecordReader:
    """Read side of the query store."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def list_by_user(self, uid: str, page: Pagination) -> RecordPage[UserRecord]:
        if not uid or len(uid) < MIN_UID_LEN:
            raise ValidationError("Valid uid parameter is required")

        condition = QueryRecord.uid == uid
        stmt = (
            select(QueryRecord)
            .where(condition)
            .order_by(*_ORDER)
            .offset(page.skip)
            .limit(page.limit)
        )
        try:
            async with self.storage.session() as session:
                rows = (await session.scalars(stmt)).all()
                total = await session.scalar(
                    select(func.count()).select_from(QueryRecord).where(condition)
                )
        except SQLAlchemyError as e:
            logger.error("Error fetching queries: %s", str(e)[:300])
            raise StorageError("Failed to fetch queries", str(e)[:200]) from e

        records = [UserRecord.model_validate(r, from_attributes=True) for r in rows]
        return RecordPage[UserRecord](records=records, total=total or 0)

    async def list_all(self, page: Pagination, search: str | None = None) -> RecordPage[PublicRecord]:
        conditions = []
        pattern = _search_pattern(search)
        if pattern is not None:
            conditions.append(QueryRecord.query.regexp_match(pattern, flags="i"))

        stmt = (
            select(QueryRecord)
            .where(*conditions)
            .order_by(*_ORDER)
            .offset(page.skip)
            .limit(page.limit)
        )
        try:
            async with self.storage.session() as session:
                rows = (await session.scalars(stmt)).all()
                total = await session.scalar(
                    select(func.count()).select_from(QueryRecord).where(*conditions)
                )
        except SQLAlchemyError as e:
            logger.error("Error fetching all queries: %s", str(e)[:300])
            raise StorageError("Failed to fetch queries", str(e)[:200]) from e

        records = [PublicRecord.model_validate(r, from_attributes=True) for r in rows]
        return RecordPage[PublicRecord](records=records, total=total or 0)
