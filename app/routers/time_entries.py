import logging
from datetime import date
from typing import List, Optional
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, status
from pymongo import DESCENDING, ReturnDocument
from db import get_database
from exceptions import get_forbidden_exception, get_unknown_entity_exception, get_internal_server_exception
from models.time_entries import TimeEntry
from schemas.time_entry import CreateTimeEntry, UpdateTimeEntry, TimeEntryOut
from utils.app_utils import get_current_user
from utils.money_utils import entry_cost, format_money, to_decimal128
from utils.time_utils import Clock, as_utc, day_start, get_clock, local_today

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_entry(entry: dict) -> dict:
    return {
        "id": str(entry["_id"]),
        "user_id": entry["user_id"],
        "project_id": entry["project_id"],
        "date": as_utc(entry["date"]).date(),
        "duration_seconds": int(entry["duration_seconds"]),
        "hourly_rate": format_money(entry.get("hourly_rate")),
        "cost": format_money(entry_cost(entry["duration_seconds"], entry.get("hourly_rate"))),
        "description": entry.get("description"),
    }


def user_today(clock: Clock, user_timezone: Optional[str]) -> date:
    try:
        return local_today(clock.now(), user_timezone)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


async def ensure_project_exists(database, project_id: str):
    try:
        project = await database.projects.find_one({"_id": ObjectId(project_id)})
    except InvalidId:
        project = None
    if not project:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid project_id: {project_id}")
    return project


async def get_owned_entry_for_today(database, entry_id: str, user: dict, today: date) -> dict:
    try:
        entry = await database.time_entries.find_one({"_id": ObjectId(entry_id)})
    except InvalidId:
        entry = None
    if not entry:
        raise get_unknown_entity_exception("Time entry not found")

    if entry["user_id"] != str(user["_id"]):
        raise get_forbidden_exception("You cannot modify this time entry")

    if as_utc(entry["date"]).date() != today:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="You can only modify time entries dated today")
    return entry


@router.post("/", response_model=TimeEntryOut, status_code=status.HTTP_201_CREATED)
async def create_time_entry(payload: CreateTimeEntry,
                            x_user_timezone: Optional[str] = Header(None),
                            user_and_role: tuple = Depends(get_current_user),
                            database=Depends(get_database),
                            clock: Clock = Depends(get_clock)):
    """
    Commits a time entry for the logged-in user, typically the final duration
    of an ended timer session.
    The user's current hourly rate is copied onto the entry. Later rate changes
    never touch it, which keeps historical costs stable.
    Raises:
        HTTPException:
            - 400 if the project does not exist
            - 400 if the date is not today in the caller's time zone (X-User-Timezone header)
    """
    user, _ = user_and_role

    today = user_today(clock, x_user_timezone)
    if payload.date != today:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Time entries can only be submitted for today ({today.isoformat()})")

    await ensure_project_exists(database, payload.project_id)

    user_record = await database.users.find_one({"_id": user["_id"]}, {"hourly_rate": 1})
    if not user_record:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User not found")

    now = clock.now()
    try:
        entry = TimeEntry(
            user_id=str(user["_id"]),
            project_id=payload.project_id,
            date=day_start(payload.date),
            duration_seconds=payload.duration_seconds,
            hourly_rate=to_decimal128(user_record.get("hourly_rate")),
            description=payload.description,
            created_at=now,
            updated_at=now,
        ).model_dump()
        result = await database.time_entries.insert_one(entry)
    except Exception as e:
        logger.exception("Error creating time entry: %s", e)
        raise get_internal_server_exception()

    entry["_id"] = result.inserted_id
    return serialize_entry(entry)


@router.get("/", response_model=List[TimeEntryOut])
async def list_time_entries(start_date: Optional[date] = Query(None, description="Date format e.g., 2024-01-01"),
                            end_date: Optional[date] = Query(None, description="Date format e.g., 2024-01-31"),
                            user_id: Optional[List[str]] = Query(None, description="Admins only: filter by user ids"),
                            project_id: Optional[str] = Query(None),
                            user_and_role: tuple = Depends(get_current_user),
                            database=Depends(get_database)):
    """
    Lists time entries, newest first.
    Regular users only ever see their own entries; admins see everyone's,
    optionally narrowed by `user_id`.
    """
    user, role = user_and_role

    query_filter = {}
    if role != "admin":
        query_filter["user_id"] = str(user["_id"])
    elif user_id:
        query_filter["user_id"] = {"$in": user_id}

    if project_id:
        query_filter["project_id"] = project_id

    date_filter = {}
    if start_date:
        date_filter["$gte"] = day_start(start_date)
    if end_date:
        date_filter["$lte"] = day_start(end_date)
    if date_filter:
        query_filter["date"] = date_filter

    entries = await database.time_entries.find(query_filter).sort("date", DESCENDING).to_list(length=None)
    return [serialize_entry(entry) for entry in entries]


@router.patch("/{entry_id}", response_model=TimeEntryOut)
async def update_time_entry(payload: UpdateTimeEntry,
                            entry_id: str = Path(...),
                            x_user_timezone: Optional[str] = Header(None),
                            user_and_role: tuple = Depends(get_current_user),
                            database=Depends(get_database),
                            clock: Clock = Depends(get_clock)):
    """
    Updates the fields present in the body of one of the caller's entries dated today.
    """
    user, _ = user_and_role
    today = user_today(clock, x_user_timezone)
    entry = await get_owned_entry_for_today(database, entry_id, user, today)

    changes = payload.changes()
    if changes.get("date") is not None:
        if changes["date"] != today:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail=f"Time entries can only be moved to today ({today.isoformat()})")
        changes["date"] = day_start(changes["date"])
    if changes.get("project_id") is not None:
        await ensure_project_exists(database, changes["project_id"])

    for required in ("project_id", "date", "duration_seconds"):
        if required in changes and changes[required] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{required} cannot be null")

    if not changes:
        return serialize_entry(entry)

    changes["updated_at"] = clock.now()
    updated = await database.time_entries.find_one_and_update(
        {"_id": entry["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise get_unknown_entity_exception("Time entry not found")
    return serialize_entry(updated)


@router.delete("/{entry_id}")
async def delete_time_entry(entry_id: str = Path(...),
                            x_user_timezone: Optional[str] = Header(None),
                            user_and_role: tuple = Depends(get_current_user),
                            database=Depends(get_database),
                            clock: Clock = Depends(get_clock)):
    """
    Deletes one of the caller's entries dated today.
    """
    user, _ = user_and_role
    today = user_today(clock, x_user_timezone)
    entry = await get_owned_entry_for_today(database, entry_id, user, today)

    result = await database.time_entries.delete_one({"_id": entry["_id"]})
    if result.deleted_count == 0:
        raise get_unknown_entity_exception("Time entry not found")

    return {"message": "Time entry deleted", "id": entry_id}
