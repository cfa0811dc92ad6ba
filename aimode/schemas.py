"""Pydantic models for API input/output.

Split into: typed request values, record views, and endpoint responses.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

UID_PREFIX_LEN = 8


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive values (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def redact_uid(uid: str) -> str:
    return uid[:UID_PREFIX_LEN]


# ═══════════════ REQUEST VALUES ═══════════════

class QueryEvent(BaseModel):
    """Validated event ready to be written."""
    uid: str
    query: str
    full_url: str
    timestamp: datetime


class Pagination(BaseModel):
    """Clamped result window."""
    limit: int = Field(ge=1)
    skip: int = Field(ge=0)


# ═══════════════ RECORD VIEWS ═══════════════

class _RecordView(BaseModel):
    id: uuid.UUID = Field(serialization_alias="_id")
    query: str
    timestamp: datetime
    created_at: datetime

    @field_validator("timestamp", "created_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class UserRecord(_RecordView):
    """A user's own record — no uid, no ip_hash."""
    full_url: str


class PublicRecord(_RecordView):
    """Record from the global listing with the uid cut to its prefix."""
    uid: str

    @field_validator("uid")
    @classmethod
    def _redact(cls, v: str) -> str:
        return redact_uid(v)


class StoredRecord(BaseModel):
    """Receipt returned by the writer."""
    id: uuid.UUID
    created_at: datetime


RecordT = TypeVar("RecordT", bound=_RecordView)


class RecordPage(BaseModel, Generic[RecordT]):
    """One window of records plus the size of the whole matching set."""
    records: list[RecordT] = Field(default_factory=list)
    total: int = 0

    @property
    def count(self) -> int:
        return len(self.records)


class TopQuery(BaseModel):
    query: str
    count: int
    lastSeen: datetime | None = None

    @field_validator("lastSeen")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None


class Stats(BaseModel):
    totalQueries: int = 0
    uniqueUsers: int = 0
    todayQueries: int = 0
    weekQueries: int = 0
    topQueries: list[TopQuery] = Field(default_factory=list)


# ═══════════════ API RESPONSES ═══════════════

class HealthResponse(BaseModel):
    status: str = "ok"
    message: str = "AI Mode Queries Server"
    timestamp: datetime


class StoreResponse(BaseModel):
    success: bool = True
    id: uuid.UUID
    timestamp: datetime


class UserQueriesResponse(BaseModel):
    success: bool = True
    queries: list[UserRecord] = Field(default_factory=list)
    total: int = 0
    count: int = 0
    uid: str


class AllQueriesResponse(BaseModel):
    success: bool = True
    queries: list[PublicRecord] = Field(default_factory=list)
    total: int = 0
    count: int = 0


class StatsResponse(BaseModel):
    success: bool = True
    stats: Stats
