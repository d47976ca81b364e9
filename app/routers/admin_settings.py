import logging
from fastapi import APIRouter, Body, Depends
from db import get_database
from schemas.admin import UpdateReminderSettings
from utils.app_utils import get_current_admin
from utils.reminder_utils import get_reminder_settings, update_reminder_settings
from utils.time_utils import Clock, get_clock

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings")
async def read_settings(admin_and_role: tuple = Depends(get_current_admin),
                        database=Depends(get_database)):
    """
    Timer reminder settings: the local time of day reminders start going out,
    and whether they are sent at all.
    """
    return await get_reminder_settings(database)


@router.patch("/settings")
async def update_settings(payload: UpdateReminderSettings = Body(...),
                          admin_and_role: tuple = Depends(get_current_admin),
                          database=Depends(get_database),
                          clock: Clock = Depends(get_clock)):
    admin, _ = admin_and_role
    updated = await update_reminder_settings(database, payload.changes(), clock.now())
    logger.info("Timer reminder settings changed by %s: %s", admin.get("email"), updated)
    return updated
