"""Statistics Aggregator.

Recomputed from the full table on every call; the stats endpoint is
low-traffic analytics, not a hot path.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError

from aimode.database import Storage
from aimode.errors import StorageError
from aimode.models import QueryRecord
from aimode.schemas import Stats, TopQuery

logger = logging.getLogger(__name__)

TOP_QUERIES_LIMIT = 10
WEEK = timedelta(days=7)


def local_midnight(now: datetime) -> datetime:
    """Start of the server-local day containing `now`, as UTC."""
    local = now.astimezone()
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


class StatisticsAggregator:
    """Counts and top-N grouping over stored query events."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def compute_stats(self, now: datetime | None = None) -> Stats:
        now = now or datetime.now(timezone.utc)
        today = local_midnight(now)
        week_ago = (now - WEEK).astimezone(timezone.utc)

        occurrences = func.count(QueryRecord.id)
        last_seen = func.max(QueryRecord.timestamp)
        top_stmt = (
            select(QueryRecord.query, occurrences.label("occurrences"), last_seen.label("last_seen"))
            .group_by(QueryRecord.query)
            .order_by(occurrences.desc(), last_seen.desc(), QueryRecord.query)
            .limit(TOP_QUERIES_LIMIT)
        )

        try:
            async with self.storage.session() as session:
                total = await session.scalar(select(func.count()).select_from(QueryRecord))
                unique_users = await session.scalar(select(func.count(distinct(QueryRecord.uid))))
                today_count = await session.scalar(
                    select(func.count()).select_from(QueryRecord).where(QueryRecord.created_at >= today)
                )
                week_count = await session.scalar(
                    select(func.count()).select_from(QueryRecord).where(QueryRecord.created_at >= week_ago)
                )
                top_rows = (await session.execute(top_stmt)).all()
        except SQLAlchemyError as e:
            logger.error("Error fetching stats: %s", str(e)[:300])
            raise StorageError("Failed to fetch statistics", str(e)[:200]) from e

        return Stats(
            totalQueries=total or 0,
            uniqueUsers=unique_users or 0,
            todayQueries=today_count or 0,
            weekQueries=week_count or 0,
            topQueries=[
                TopQuery(query=row.query, count=row.occurrences, lastSeen=row.last_seen)
                for row in top_rows
            ],
        )
