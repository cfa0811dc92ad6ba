"""Tests for the query record reader — pagination, ordering, redaction."""

from datetime import datetime, timedelta, timezone

import pytest

from aimode.errors import ValidationError
from aimode.schemas import Pagination, QueryEvent
from aimode.services.reader import parse_pagination

BASE_TS = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


async def _seed(writer, uid: str, queries: list[str], address: str | None = "198.51.100.1"):
    for i, text in enumerate(queries):
        await writer.store(
            QueryEvent(
                uid=uid,
                query=text,
                full_url=f"https://www.google.com/search?q={text}",
                timestamp=BASE_TS + timedelta(minutes=i),
            ),
            address,
        )


class TestParsePagination:
    def test_defaults(self):
        page = parse_pagination(None, None, 100, 500)
        assert page == Pagination(limit=100, skip=0)

    def test_string_values(self):
        page = parse_pagination("25", "50", 100, 500)
        assert page == Pagination(limit=25, skip=50)

    def test_limit_clamped_to_max(self):
        assert parse_pagination("100000", "0", 50, 500).limit == 500

    def test_limit_clamped_to_one(self):
        assert parse_pagination("0", None, 50, 500).limit == 1
        assert parse_pagination("-5", None, 50, 500).limit == 1

    def test_negative_skip_clamped(self):
        assert parse_pagination(None, "-10", 50, 500).skip == 0

    @pytest.mark.parametrize("limit,skip", [("abc", "0"), ("10", "x"), ("2.5", "0")])
    def test_rejects_non_integers(self, limit, skip):
        with pytest.raises(ValidationError):
            parse_pagination(limit, skip, 50, 500)


class TestListByUser:
    @pytest.mark.asyncio
    async def test_short_uid_rejected(self, reader):
        with pytest.raises(ValidationError):
            await reader.list_by_user("user1", Pagination(limit=10, skip=0))

    @pytest.mark.asyncio
    async def test_only_that_user_newest_first(self, writer, reader):
        await _seed(writer, "user1234", ["first", "second", "third"])
        await _seed(writer, "other-user-99", ["elsewhere"])

        page = await reader.list_by_user("user1234", Pagination(limit=10, skip=0))
        assert [r.query for r in page.records] == ["third", "second", "first"]
        assert page.total == 3
        assert page.count == 3

    @pytest.mark.asyncio
    async def test_projection_excludes_uid_and_hash(self, writer, reader):
        await _seed(writer, "user1234", ["cats"])
        page = await reader.list_by_user("user1234", Pagination(limit=10, skip=0))
        dumped = page.records[0].model_dump(by_alias=True)
        assert set(dumped) == {"_id", "query", "full_url", "timestamp", "created_at"}

    @pytest.mark.asyncio
    async def test_timestamps_are_utc(self, writer, reader):
        await _seed(writer, "user1234", ["cats"])
        record = (await reader.list_by_user("user1234", Pagination(limit=10, skip=0))).records[0]
        assert record.timestamp == BASE_TS
        assert record.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_total_ignores_window(self, writer, reader):
        await _seed(writer, "user1234", [f"q{i}" for i in range(5)])
        page = await reader.list_by_user("user1234", Pagination(limit=2, skip=1))
        assert page.count == 2
        assert page.total == 5

    @pytest.mark.asyncio
    async def test_pages_reconstruct_full_set(self, writer, reader):
        await _seed(writer, "user1234", [f"q{i}" for i in range(7)])
        full = await reader.list_by_user("user1234", Pagination(limit=100, skip=0))

        collected = []
        for skip in range(0, full.total, 3):
            page = await reader.list_by_user("user1234", Pagination(limit=3, skip=skip))
            assert page.count <= 3
            collected.extend(page.records)

        assert [r.id for r in collected] == [r.id for r in full.records]
        assert len({r.id for r in collected}) == full.total

    @pytest.mark.asyncio
    async def test_repeat_reads_identical(self, writer, reader):
        await _seed(writer, "user1234", ["a", "b", "c"])
        page = Pagination(limit=2, skip=0)
        first = await reader.list_by_user("user1234", page)
        second = await reader.list_by_user("user1234", page)
        assert first == second

    @pytest.mark.asyncio
    async def test_unknown_user_is_empty(self, reader):
        page = await reader.list_by_user("nobody-here", Pagination(limit=10, skip=0))
        assert page.records == []
        assert page.total == 0


class TestListAll:
    @pytest.mark.asyncio
    async def test_uid_redacted(self, writer, reader):
        await _seed(writer, "user1234-full-secret", ["cats"])
        await _seed(writer, "abcdefghijkl", ["dogs"])

        page = await reader.list_all(Pagination(limit=50, skip=0))
        assert {r.uid for r in page.records} == {"user1234", "abcdefgh"}
        for record in page.records:
            assert len(record.uid) <= 8
            assert "full_url" not in record.model_dump()

    @pytest.mark.asyncio
    async def test_search_case_insensitive_substring(self, writer, reader):
        await _seed(writer, "user1234", ["Best Cats", "dogs", "wildcat facts"])

        page = await reader.list_all(Pagination(limit=50, skip=0), search="CAT")
        assert sorted(r.query for r in page.records) == ["Best Cats", "wildcat facts"]
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_search_is_a_pattern(self, writer, reader):
        await _seed(writer, "user1234", ["cats", "how to cook", "best how"])

        page = await reader.list_all(Pagination(limit=50, skip=0), search="ca.s")
        assert [r.query for r in page.records] == ["cats"]

        page = await reader.list_all(Pagination(limit=50, skip=0), search="^HOW")
        assert [r.query for r in page.records] == ["how to cook"]
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_invalid_search_pattern(self, reader):
        with pytest.raises(ValidationError) as exc:
            await reader.list_all(Pagination(limit=50, skip=0), search="(unclosed")
        assert exc.value.error == "Invalid search pattern"

    @pytest.mark.asyncio
    async def test_blank_search_means_no_filter(self, writer, reader):
        await _seed(writer, "user1234", ["a", "b"])
        page = await reader.list_all(Pagination(limit=50, skip=0), search="  ")
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_total_is_filtered_count(self, writer, reader):
        await _seed(writer, "user1234", ["cats", "cats again", "dogs"])
        page = await reader.list_all(Pagination(limit=1, skip=0), search="cats")
        assert page.count == 1
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_empty_store(self, reader):
        page = await reader.list_all(Pagination(limit=50, skip=0))
        assert page.count == 0
        assert page.total == 0
