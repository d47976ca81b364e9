import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Dict, Optional, Set, Tuple, Union

from pymongo.errors import DuplicateKeyError

from models.monthly_summaries import MonthlyCostSummary
from utils.money_utils import cost_from_rate_seconds, format_money, rate_seconds, to_decimal128
from utils.time_utils import current_month_cutoff, format_month, month_key

logger = logging.getLogger(__name__)

SummaryKey = Tuple[str, str, Tuple[int, int]]
ProgressCallback = Callable[[int, int], None]


async def load_existing_summary_keys(database) -> Set[SummaryKey]:
    """(project_id, user_id, (year, month)) of every stored summary, compared by calendar month."""
    existing = set()
    cursor = database.monthly_cost_summaries.find({}, {"project_id": 1, "user_id": 1, "month": 1})
    async for summary in cursor:
        existing.add((summary["project_id"], summary["user_id"], month_key(summary["month"])))
    return existing


async def aggregate_closed_months(database, cutoff: datetime,
                                  project_id: Optional[str] = None) -> Dict[SummaryKey, Dict[str, Union[int, Decimal]]]:
    """
    Groups every time entry dated before `cutoff` by project, user and month.
    Mongo sums the seconds per (project, user, month, rate); the seconds x rate
    products are folded here with Decimal and divided by 3600 once per group,
    so no rounding happens per entry.
    """
    match = {"date": {"$lt": cutoff}}
    if project_id is not None:
        match["project_id"] = project_id

    cursor = database.time_entries.aggregate([
        {"$match": match},
        {
            "$group": {
                "_id": {
                    "project_id": "$project_id",
                    "user_id": "$user_id",
                    "year": {"$year": "$date"},
                    "month": {"$month": "$date"},
                    "hourly_rate": {"$toString": {"$ifNull": ["$hourly_rate", "0"]}},
                },
                "duration_seconds": {"$sum": "$duration_seconds"},
            }
        },
    ])

    groups: Dict[SummaryKey, Dict[str, Union[int, Decimal]]] = {}
    async for row in cursor:
        group = row["_id"]
        key = (group["project_id"], group["user_id"], (group["year"], group["month"]))
        totals = groups.setdefault(key, {"duration_seconds": 0, "rate_seconds": Decimal(0)})
        totals["duration_seconds"] += int(row["duration_seconds"])
        totals["rate_seconds"] += rate_seconds(row["duration_seconds"], group["hourly_rate"])
    return groups


async def generate_monthly_summaries(
    database,
    current_date: Optional[Union[date, datetime]] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """
    Materializes cost summaries for all months strictly before the month of
    `current_date` (today in the reference time zone when omitted).

    Additive and idempotent: tuples that already have a summary are skipped,
    never updated. Entries added later for an already summarized month are not
    picked up; a full rebuild means clearing the collection first.

    Args:
        database: Motor database holding time_entries and monthly_cost_summaries.
        current_date: Date that decides which month is still open.
        on_progress: Called with (processed, total) for every candidate tuple.

    Returns:
        int: Number of summary rows inserted.
    """
    cutoff = current_month_cutoff(current_date)
    existing = await load_existing_summary_keys(database)
    groups = await aggregate_closed_months(database, cutoff)

    total = len(groups)
    inserted = 0
    for processed, key in enumerate(sorted(groups), start=1):
        if on_progress:
            on_progress(processed, total)
        if key in existing:
            continue

        project_id, user_id, (year, month) = key
        totals = groups[key]
        summary = MonthlyCostSummary(
            project_id=project_id,
            user_id=user_id,
            month=datetime(year, month, 1),
            total_duration_seconds=totals["duration_seconds"],
            total_cost=to_decimal128(cost_from_rate_seconds(totals["rate_seconds"])),
        )
        try:
            await database.monthly_cost_summaries.insert_one(summary.model_dump())
        except DuplicateKeyError:
            # another run inserted this tuple after we loaded the existing keys
            logger.info("Summary for project %s user %s month %s already exists, skipping",
                        project_id, user_id, format_month(key[2]))
            continue
        inserted += 1

    logger.info("Monthly cost summaries: %s candidate tuples before %s, %s inserted",
                total, format_month(cutoff), inserted)
    return inserted


async def clear_monthly_summaries(database) -> int:
    result = await database.monthly_cost_summaries.delete_many({})
    logger.warning("Cleared %s monthly cost summaries", result.deleted_count)
    return result.deleted_count


def serialize_summary(summary: dict) -> dict:
    return {
        "project_id": summary["project_id"],
        "user_id": summary["user_id"],
        "month": format_month(summary["month"]),
        "total_duration_seconds": int(summary["total_duration_seconds"]),
        "total_cost": format_money(summary["total_cost"]),
    }
