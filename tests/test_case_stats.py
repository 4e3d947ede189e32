"""Tests for CaseStatsAggregator."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import aiosqlite
import pytest

from casebook.cases.case_service import CaseService
from casebook.cases.case_stats import CaseStatsAggregator, stats_cache_prefix
from casebook.cases.errors import CaseValidationError
from casebook.database.database import Database
from casebook.datatypes.case_datatypes import CaseStats, CaseType
from casebook.repositories import CaseRepository

from conftest import GUILD_ID, MODERATOR_ID, OTHER_GUILD_ID


async def record_scenario(service, make_draft):
    ban = await service.create_case(make_draft(CaseType.BAN, reason="Raiding"))
    warn = await service.create_case(make_draft(CaseType.WARN, reason="Spamming links"))
    timeout = await service.create_case(make_draft(CaseType.TIMEOUT, duration=600_000))
    return ban, warn, timeout


@pytest.mark.asyncio
async def test_stats_for_ban_warn_timeout(case_db, make_draft):
    await record_scenario(case_db.cases, make_draft)
    await case_db.cases.create_case(make_draft(CaseType.KICK, guild_id=OTHER_GUILD_ID))

    stats = await case_db.stats.get_case_stats(GUILD_ID)

    assert stats.total_cases == 3
    assert stats.active_cases == 3
    assert stats.closed_cases == 0
    assert stats.appealed_cases == 0
    assert stats.cases_by_type["ban"] == 1
    assert stats.cases_by_type["warn"] == 1
    assert stats.cases_by_type["timeout"] == 1
    assert stats.cases_by_type["kick"] == 0
    assert set(stats.cases_by_type) == {t.value for t in CaseType}


@pytest.mark.asyncio
async def test_stats_reflect_close_and_appeal(case_db, make_draft):
    ban, warn, _ = await record_scenario(case_db.cases, make_draft)
    # Warm the cache so the writes below have to invalidate it
    assert (await case_db.stats.get_case_stats(GUILD_ID)).active_cases == 3

    await case_db.cases.close_case(ban.case_id, MODERATOR_ID, "resolved")
    after_close = await case_db.stats.get_case_stats(GUILD_ID)
    assert after_close.active_cases == 2
    assert after_close.closed_cases == 1
    assert after_close.total_cases == 3

    await case_db.cases.appeal_case(warn.case_id, "It was a joke")
    after_appeal = await case_db.stats.get_case_stats(GUILD_ID)
    assert after_appeal.appealed_cases == 1


@pytest.mark.asyncio
async def test_empty_guild_has_zeroed_stats(case_db):
    stats = await case_db.stats.get_case_stats(GUILD_ID)
    assert stats == CaseStats.empty()


@pytest.mark.asyncio
async def test_cached_stats_are_not_shared(case_db, make_draft):
    await record_scenario(case_db.cases, make_draft)

    first = await case_db.stats.get_case_stats(GUILD_ID)
    first.cases_by_type["ban"] = 99
    first.total_cases = 99

    second = await case_db.stats.get_case_stats(GUILD_ID)
    assert second.cases_by_type["ban"] == 1
    assert second.total_cases == 3


@pytest.mark.asyncio
async def test_stats_failure_returns_zeros(case_db, make_draft):
    await record_scenario(case_db.cases, make_draft)
    case_db.clear_query_cache()
    failing = AsyncMock(side_effect=aiosqlite.OperationalError("no such table"))

    with patch.object(CaseRepository, "count_by_type", failing):
        stats = await case_db.stats.get_case_stats(GUILD_ID)

    assert stats == CaseStats.empty()


@pytest.mark.asyncio
async def test_stats_on_closed_store_return_zeros(tmp_path):
    db = Database(tmp_path / "never-opened.db")

    assert await db.stats.get_case_stats(GUILD_ID) == CaseStats.empty()
    assert await db.stats.get_moderator_stats(GUILD_ID) == {}


@pytest.mark.asyncio
async def test_moderator_stats_are_zero_filled(case_db, make_draft):
    await record_scenario(case_db.cases, make_draft)
    await case_db.cases.create_case(make_draft(CaseType.WARN, moderator_id=888))

    by_moderator = await case_db.stats.get_moderator_stats(GUILD_ID)

    assert set(by_moderator) == {str(MODERATOR_ID), "888"}
    assert by_moderator[str(MODERATOR_ID)]["ban"] == 1
    assert by_moderator[str(MODERATOR_ID)]["kick"] == 0
    assert by_moderator["888"]["warn"] == 1
    assert sum(by_moderator["888"].values()) == 1


@pytest.mark.asyncio
async def test_moderator_stats_respect_time_window(tmp_path, make_draft):
    start = datetime(2024, 3, 1, tzinfo=timezone.utc)
    clock_values = iter([start, start + timedelta(days=10), start + timedelta(days=20)])
    db = Database(tmp_path / "cases.db")
    assert await db.initialize()
    service = CaseService(db.connection, clock=lambda: next(clock_values))
    try:
        await service.create_case(make_draft(CaseType.BAN))
        await service.create_case(make_draft(CaseType.WARN))
        await service.create_case(make_draft(CaseType.KICK))

        aggregator = CaseStatsAggregator(db.connection)
        window = await aggregator.get_moderator_stats(
            GUILD_ID,
            start_date=start + timedelta(days=5),
            end_date=start + timedelta(days=10),
        )
        assert window[str(MODERATOR_ID)]["warn"] == 1
        assert window[str(MODERATOR_ID)]["ban"] == 0
        assert window[str(MODERATOR_ID)]["kick"] == 0

        everything = await aggregator.get_moderator_stats(GUILD_ID)
        assert sum(everything[str(MODERATOR_ID)].values()) == 3
    finally:
        await db.shutdown()


def test_cache_prefix_separates_guilds():
    assert not stats_cache_prefix("123").startswith(stats_cache_prefix("12"))


@pytest.mark.asyncio
async def test_malformed_guild_id_is_rejected(case_db):
    with pytest.raises(CaseValidationError):
        await case_db.stats.get_case_stats("not-a-guild")
    with pytest.raises(CaseValidationError):
        await case_db.stats.get_moderator_stats(-5)
