import logging
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Body, Depends, Path
from pymongo import ReturnDocument
from db import get_database
from exceptions import get_unknown_entity_exception, get_internal_server_exception
from schemas.admin import UpdateHourlyRate
from utils.app_utils import get_current_admin
from utils.cost_utils import get_project_financials
from utils.money_utils import format_money, to_decimal128
from utils.summary_utils import serialize_summary
from utils.time_utils import Clock, get_clock

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_object_id(value: str, entity: str) -> ObjectId:
    try:
        return ObjectId(value)
    except InvalidId:
        raise get_unknown_entity_exception(f"{entity} not found")


@router.get("/financials/{project_id}")
async def project_financials(project_id: str = Path(..., description="Project id"),
                             admin_and_role: tuple = Depends(get_current_admin),
                             database=Depends(get_database),
                             clock: Clock = Depends(get_clock)):
    """
    Financial overview of a project.
    Returns:
        dict: A dictionary containing:
            - total_budget (str): sum of all budget injections
            - total_cost (str): summarized cost of closed months plus live cost of the current month
            - profit (str): total_budget - total_cost
            - budget_injections (list): each injection with its month
            - cost_over_time (list): {"month": "YYYY-MM", "cost": str} in chronological order
    Raises:
        HTTPException:
            - 403 if the user is not an admin
            - 404 if the project does not exist
    """
    project = await database.projects.find_one({"_id": parse_object_id(project_id, "Project")})
    if not project:
        raise get_unknown_entity_exception("Project not found")

    try:
        return await get_project_financials(database, project, clock.now())
    except Exception as e:
        logger.exception("Failed to compute financials for project %s: %s", project_id, e)
        raise get_internal_server_exception()


@router.get("/financials/{project_id}/monthly-summaries")
async def project_monthly_summaries(project_id: str = Path(..., description="Project id"),
                                    admin_and_role: tuple = Depends(get_current_admin),
                                    database=Depends(get_database)):
    """
    Stored monthly cost summaries of a project, oldest month first.
    """
    summaries = await database.monthly_cost_summaries.find(
        {"project_id": project_id}
    ).sort([("month", 1), ("user_id", 1)]).to_list(length=None)
    return {"project_id": project_id, "summaries": [serialize_summary(summary) for summary in summaries]}


@router.patch("/users/{user_id}/rate")
async def update_user_rate(user_id: str = Path(..., description="User id"),
                           payload: UpdateHourlyRate = Body(...),
                           admin_and_role: tuple = Depends(get_current_admin),
                           database=Depends(get_database)):
    """
    Sets a user's live hourly rate.
    Only entries committed afterwards use the new rate; existing entries and
    monthly summaries keep the rate they were recorded with.
    """
    updated = await database.users.find_one_and_update(
        {"_id": parse_object_id(user_id, "User")},
        {"$set": {"hourly_rate": to_decimal128(payload.hourly_rate)}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise get_unknown_entity_exception("User not found")

    logger.info("Hourly rate of user %s set to %s", user_id, format_money(payload.hourly_rate))
    return {"message": "Hourly rate updated", "user_id": user_id, "hourly_rate": format_money(updated["hourly_rate"])}
