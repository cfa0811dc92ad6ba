"""Query Record Writer.

Validates an event posted by the extension, normalizes it and appends one
row. The caller's address is never stored, only a truncated SHA-256 of it.
"""

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from aimode.database import Storage
from aimode.errors import StorageError, ValidationError
from aimode.models import QueryRecord
from aimode.schemas import QueryEvent, StoredRecord

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("uid", "query", "full_url", "ts")
IP_HASH_LEN = 16


def hash_address(address: str | None) -> str | None:
    """First 16 hex chars of SHA-256(address), or None without an address."""
    if not address:
        return None
    return hashlib.sha256(address.encode()).hexdigest()[:IP_HASH_LEN]


def parse_timestamp(value: Any) -> datetime:
    """Parse epoch milliseconds or an ISO-8601 string into a UTC datetime."""
    if isinstance(value, bool):
        raise ValidationError("Invalid ts value")
    if isinstance(value, str):
        value = value.strip()
        try:
            value = float(value)
        except ValueError:
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError("Invalid ts value") from None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            raise ValidationError("Invalid ts value") from None
    raise ValidationError("Invalid ts value")


def _truncate(text: str, n: int) -> str:
    return text[:n] + ("..." if len(text) > n else "")


def validate_event(body: Any) -> QueryEvent:
    """Check required fields and normalize them. Raises ValidationError."""
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    def _present(name: str) -> bool:
        value = body.get(name)
        if isinstance(value, str):
            return bool(value.strip())
        if isinstance(value, (int, float)):
            # Numeric zero counts as missing, like an empty string
            return bool(value)
        return value is not None

    missing = [name for name in REQUIRED_FIELDS if not _present(name)]
    if missing:
        logger.warning("Rejected event | missing=%s", ",".join(missing))
        raise ValidationError("Missing required fields: " + ", ".join(REQUIRED_FIELDS))

    for name in ("uid", "query", "full_url"):
        if not isinstance(body[name], str):
            raise ValidationError(f"Field '{name}' must be a string")

    return QueryEvent(
        uid=body["uid"],
        query=body["query"].strip(),
        full_url=body["full_url"],
        timestamp=parse_timestamp(body["ts"]),
    )


class QueryRecordWriter:
    """Appends query events to storage."""

    def __init__(self, storage: Storage):
        self.storage = storage

    async def store(self, event: QueryEvent, caller_address: str | None = None) -> StoredRecord:
        record = QueryRecord(
            uid=event.uid,
            query=event.query,
            full_url=event.full_url,
            timestamp=event.timestamp,
            created_at=datetime.now(timezone.utc),
            ip_hash=hash_address(caller_address),
        )
        try:
            async with self.storage.session() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Error storing query: %s", str(e)[:300])
            raise StorageError("Failed to store query", str(e)[:200]) from e

        logger.info(
            "Query stored | id=%s | query=%s | uid=%s",
            record.id, _truncate(event.query, 50), event.uid[:8] + "...",
        )
        return StoredRecord(id=record.id, created_at=record.created_at)
