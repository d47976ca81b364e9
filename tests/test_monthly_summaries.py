from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from mongomock_motor import AsyncMongoMockClient

import utils.summary_utils as summary_utils
import cron_jobs
from cron_jobs import run_monthly_summaries
from utils.money_utils import to_decimal, to_decimal128
from utils.summary_utils import generate_monthly_summaries, serialize_summary
from utils.time_utils import current_month_cutoff

AS_OF = date(2026, 10, 17)
TWO_MONTHS_AGO = datetime(2026, 8, 12)
LAST_MONTH = datetime(2026, 9, 30)
THIS_MONTH = datetime(2026, 10, 1)


async def add_entry(database, user_id="u1", project_id="p1", day=LAST_MONTH,
                    duration_seconds=3600, hourly_rate="50.00"):
    await database.time_entries.insert_one({
        "user_id": user_id,
        "project_id": project_id,
        "date": day,
        "duration_seconds": duration_seconds,
        "hourly_rate": to_decimal128(hourly_rate),
        "description": None,
    })


async def stored_summaries(database):
    rows = await database.monthly_cost_summaries.find({}).sort("user_id", 1).to_list(length=None)
    return [serialize_summary(row) for row in rows]


async def test_three_users_in_same_month_get_one_row_each(database):
    for user_id in ("u1", "u2", "u3"):
        await add_entry(database, user_id=user_id, project_id="p2", day=TWO_MONTHS_AGO, hourly_rate="30.00")

    inserted = await generate_monthly_summaries(database, AS_OF)

    assert inserted == 3
    assert await stored_summaries(database) == [
        {"project_id": "p2", "user_id": user_id, "month": "2026-08",
         "total_duration_seconds": 3600, "total_cost": "30.00"}
        for user_id in ("u1", "u2", "u3")
    ]


async def test_single_entry_last_month(database):
    await add_entry(database, duration_seconds=3600, hourly_rate="50.00")

    await generate_monthly_summaries(database, AS_OF)

    rows = await stored_summaries(database)
    assert len(rows) == 1
    assert rows[0]["total_cost"] == "50.00"
    assert rows[0]["month"] == "2026-09"


async def test_running_twice_does_not_duplicate(database):
    await add_entry(database, duration_seconds=1800, hourly_rate="10.00")

    assert await generate_monthly_summaries(database, AS_OF) == 1
    assert await generate_monthly_summaries(database, AS_OF) == 0

    assert await database.monthly_cost_summaries.count_documents({}) == 1


async def test_current_month_is_never_summarized(database):
    await add_entry(database, day=THIS_MONTH)
    await add_entry(database, day=datetime(2026, 10, 17))

    for _ in range(3):
        await generate_monthly_summaries(database, AS_OF)

    assert await database.monthly_cost_summaries.count_documents({}) == 0


async def test_entries_of_one_tuple_are_summed(database):
    await add_entry(database, day=datetime(2026, 9, 1), duration_seconds=1800, hourly_rate="40.00")
    await add_entry(database, day=datetime(2026, 9, 20), duration_seconds=5400, hourly_rate="60.00")
    await add_entry(database, project_id="p9", day=datetime(2026, 9, 20), duration_seconds=60, hourly_rate="60.00")

    await generate_monthly_summaries(database, AS_OF)

    summary = await database.monthly_cost_summaries.find_one({"project_id": "p1"})
    assert summary["total_duration_seconds"] == 7200
    assert to_decimal(summary["total_cost"]) == Decimal("110.00")
    assert await database.monthly_cost_summaries.count_documents({}) == 2


async def test_cost_is_rounded_once_per_tuple(database):
    # each entry alone is 3.3366.. which would round to 3.34 three times
    for _ in range(3):
        await add_entry(database, duration_seconds=1200, hourly_rate="10.01")

    await generate_monthly_summaries(database, AS_OF)

    rows = await stored_summaries(database)
    assert rows[0]["total_cost"] == "10.01"


async def test_later_rate_change_keeps_historical_cost(database):
    user = {"email": "rate@example.com", "hourly_rate": to_decimal128("50.00")}
    user_id = str((await database.users.insert_one(user)).inserted_id)
    await add_entry(database, user_id=user_id, hourly_rate="50.00")

    await database.users.update_one({"email": "rate@example.com"}, {"$set": {"hourly_rate": to_decimal128("95.00")}})
    await generate_monthly_summaries(database, AS_OF)

    rows = await stored_summaries(database)
    assert rows[0]["total_cost"] == "50.00"


async def test_late_entries_for_summarized_month_are_not_picked_up(database):
    await add_entry(database, duration_seconds=3600, hourly_rate="50.00")
    await generate_monthly_summaries(database, AS_OF)

    await add_entry(database, duration_seconds=3600, hourly_rate="50.00")
    await generate_monthly_summaries(database, AS_OF)

    rows = await stored_summaries(database)
    assert len(rows) == 1
    assert rows[0]["total_duration_seconds"] == 3600


async def test_existing_summary_matches_by_calendar_month(database):
    await add_entry(database, day=datetime(2026, 9, 14))
    await database.monthly_cost_summaries.insert_one({
        "project_id": "p1",
        "user_id": "u1",
        "month": datetime(2026, 9, 1),
        "total_duration_seconds": 1,
        "total_cost": to_decimal128("0.01"),
    })

    assert await generate_monthly_summaries(database, AS_OF) == 0


async def test_progress_reports_every_candidate_tuple(database):
    await add_entry(database, user_id="u1")
    await add_entry(database, user_id="u2")
    await generate_monthly_summaries(database, AS_OF)
    await add_entry(database, user_id="u3")

    calls = []
    await generate_monthly_summaries(database, AS_OF, on_progress=lambda done, total: calls.append((done, total)))

    assert calls == [(1, 3), (2, 3), (3, 3)]


async def test_unique_index_absorbs_overlapping_runs(database, monkeypatch):
    await add_entry(database)
    await generate_monthly_summaries(database, AS_OF)

    async def stale_keys(_database):
        return set()

    # a run that loaded its keys before the other run inserted
    monkeypatch.setattr(summary_utils, "load_existing_summary_keys", stale_keys)
    inserted = await generate_monthly_summaries(database, AS_OF)

    assert inserted == 0
    assert await database.monthly_cost_summaries.count_documents({}) == 1


def test_cutoff_uses_the_reference_time_zone():
    just_after_utc_midnight = datetime(2026, 11, 1, 2, 0, tzinfo=timezone.utc)

    assert current_month_cutoff(just_after_utc_midnight, "UTC") == datetime(2026, 11, 1)
    assert current_month_cutoff(just_after_utc_midnight, "America/New_York") == datetime(2026, 10, 1)
    assert current_month_cutoff(date(2026, 1, 31)) == datetime(2026, 1, 1)


async def test_scheduled_run_swallows_failures():
    class BrokenDatabase:
        @property
        def monthly_cost_summaries(self):
            raise RuntimeError("database unavailable")

    assert await run_monthly_summaries(BrokenDatabase()) is None


async def test_scheduled_run_summarizes_closed_months(database):
    await add_entry(database, day=datetime(2020, 1, 15))

    assert await run_monthly_summaries(database) == 1


@pytest.mark.parametrize("as_of, expected", [
    (date(2026, 9, 30), 0),
    (date(2026, 10, 1), 1),
])
async def test_month_closes_on_the_first(database, as_of, expected):
    await add_entry(database, day=LAST_MONTH)

    assert await generate_monthly_summaries(database, as_of) == expected


async def test_scheduled_run_creates_the_unique_index_first():
    bare = AsyncMongoMockClient()["no_indexes_yet"]
    await add_entry(bare, day=datetime(2020, 1, 15))

    assert await run_monthly_summaries(bare) == 1
    assert "project_user_month_unique" in await bare.monthly_cost_summaries.index_information()


async def test_scheduled_run_is_skipped_when_the_index_cannot_be_created(database, monkeypatch):
    async def unreachable(_database=None):
        raise RuntimeError("index build failed")

    monkeypatch.setattr(cron_jobs, "ensure_summary_index", unreachable)
    await add_entry(database, day=datetime(2020, 1, 15))

    assert await run_monthly_summaries(database) is None
    assert await database.monthly_cost_summaries.count_documents({}) == 0
