from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional, Tuple, Union

from utils.money_utils import cost_from_rate_seconds, format_money, rate_seconds, to_decimal
from utils.summary_utils import aggregate_closed_months
from utils.time_utils import current_month_cutoff, format_month, month_key


async def get_project_budget(database, project_id: str) -> Tuple[Decimal, list]:
    injections = await database.project_budget_injections.find(
        {"project_id": project_id}
    ).sort("created_at", 1).to_list(length=None)

    total_budget = sum((to_decimal(injection["amount"]) for injection in injections), Decimal(0))
    formatted = [
        {
            "id": str(injection["_id"]),
            "amount": format_money(injection["amount"]),
            "date": format_month(injection["created_at"]),
            "description": injection.get("description") or "",
        }
        for injection in injections
    ]
    return total_budget, formatted


async def get_project_monthly_costs(
    database,
    project_id: str,
    current_date: Optional[Union[date, datetime]] = None,
) -> Dict[Tuple[int, int], Decimal]:
    """
    Cost per calendar month for a project.
    Closed months come from the stored summaries. A closed (user, month) with
    no summary yet is aggregated live and rounded the way the summarizer will
    round it, so totals do not move when its summary lands. The current month
    is always computed live from its time entries.
    """
    cutoff = current_month_cutoff(current_date)
    monthly_costs: Dict[Tuple[int, int], Decimal] = {}
    summarized = set()

    async for summary in database.monthly_cost_summaries.find(
        {"project_id": project_id, "month": {"$lt": cutoff}}
    ):
        key = month_key(summary["month"])
        summarized.add((summary["user_id"], key))
        monthly_costs[key] = monthly_costs.get(key, Decimal(0)) + to_decimal(summary["total_cost"])

    pending = await aggregate_closed_months(database, cutoff, project_id=project_id)
    for (_, user_id, key), totals in pending.items():
        if (user_id, key) in summarized:
            continue
        monthly_costs[key] = monthly_costs.get(key, Decimal(0)) + cost_from_rate_seconds(totals["rate_seconds"])

    live_rate_seconds = Decimal(0)
    async for entry in database.time_entries.find({"project_id": project_id, "date": {"$gte": cutoff}}):
        live_rate_seconds += rate_seconds(entry["duration_seconds"], entry.get("hourly_rate"))

    if live_rate_seconds:
        monthly_costs[month_key(cutoff)] = cost_from_rate_seconds(live_rate_seconds)

    return monthly_costs


async def get_project_financials(
    database,
    project: dict,
    current_date: Optional[Union[date, datetime]] = None,
) -> dict:
    project_id = str(project["_id"])
    total_budget, injections = await get_project_budget(database, project_id)
    monthly_costs = await get_project_monthly_costs(database, project_id, current_date)
    total_cost = sum(monthly_costs.values(), Decimal(0))

    return {
        "project_id": project_id,
        "project_name": project.get("name"),
        "total_budget": format_money(total_budget),
        "total_cost": format_money(total_cost),
        "profit": format_money(total_budget - total_cost),
        "budget_injections": injections,
        "cost_over_time": [
            {"month": format_month(key), "cost": format_money(cost)}
            for key, cost in sorted(monthly_costs.items())
        ],
    }
