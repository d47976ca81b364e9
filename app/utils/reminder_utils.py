import logging
from datetime import datetime, time
from email.mime.text import MIMEText
from typing import Dict, List

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError

from config import settings
from models.notifications import EmailNotification, SystemSetting
from utils.app_utils import send_email_async
from utils.time_utils import as_utc, current_elapsed_total, get_timezone

logger = logging.getLogger(__name__)

TIMER_REMINDER = "timer_reminder"
REMINDER_ENABLED_KEY = "timer_reminder_enabled"
REMINDER_TIME_KEY = "timer_reminder_time"

REMINDER_SUBJECT = "Timer Session Reminder - Please End Your Active Sessions"


async def get_reminder_settings(database) -> dict:
    stored = {}
    async for setting in database.system_settings.find({"key": {"$in": [REMINDER_ENABLED_KEY, REMINDER_TIME_KEY]}}):
        stored[setting["key"]] = setting["value"]

    return {
        "timer_reminder_time": stored.get(REMINDER_TIME_KEY, settings.DEFAULT_TIMER_REMINDER_TIME),
        "enable_timer_reminders": stored.get(REMINDER_ENABLED_KEY) == "true",
    }


async def save_setting(database, key: str, value: str, description: str, now: datetime):
    setting = SystemSetting(key=key, value=value, description=description, updated_at=now).model_dump()
    await database.system_settings.update_one({"key": key}, {"$set": setting}, upsert=True)


async def update_reminder_settings(database, changes: dict, now: datetime) -> dict:
    """
    Stores the reminder settings present in `changes`; a None value leaves the stored one alone.
    """
    if changes.get("timer_reminder_time") is not None:
        await save_setting(database, REMINDER_TIME_KEY, changes["timer_reminder_time"],
                           "Time of day to send timer reminder emails (HH:MM)", now)
    if changes.get("enable_timer_reminders") is not None:
        await save_setting(database, REMINDER_ENABLED_KEY,
                           "true" if changes["enable_timer_reminders"] else "false",
                           "Enable or disable timer reminder emails", now)
    return await get_reminder_settings(database)


def parse_reminder_time(value: str) -> time:
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError):
        logger.warning("Invalid timer reminder time %r, using %s", value, settings.DEFAULT_TIMER_REMINDER_TIME)
        return datetime.strptime(settings.DEFAULT_TIMER_REMINDER_TIME, "%H:%M").time()


def format_duration(seconds: int) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    return f"{hours}h {remainder // 60:02d}m"


def build_reminder_message(user: dict, sessions: List[dict], now: datetime, tz) -> MIMEText:
    rows = "".join(
        "<tr><td>{started}</td><td>{tracked}</td><td>{description}</td></tr>".format(
            started=as_utc(session["start_time"]).astimezone(tz).strftime("%H:%M"),
            tracked=format_duration(current_elapsed_total(session, now)),
            description=session.get("description") or "",
        )
        for session in sorted(sessions, key=lambda s: s["start_time"])
    )
    body = (
        "<html><body>"
        f"<p>Hi <b>{user['email']}</b>,</p>"
        "<p>You have active timer sessions running. Please remember to end your sessions "
        "at the end of your work day to keep your time tracking accurate.</p>"
        "<table><thead><tr><th>Started At</th><th>Tracked</th><th>Description</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        "<p>To end a session, open the dashboard and click <b>End Session</b>.</p>"
        "</body></html>"
    )

    message = MIMEText(body, "html")
    message["From"] = settings.SMTP_USER
    message["To"] = user["email"]
    message["Subject"] = REMINDER_SUBJECT
    return message


async def load_users(database, user_ids) -> Dict[str, dict]:
    object_ids = []
    for user_id in user_ids:
        try:
            object_ids.append(ObjectId(user_id))
        except InvalidId:
            logger.warning("Active timer session with invalid user id %s", user_id)

    users = {}
    async for user in database.users.find({"_id": {"$in": object_ids}}):
        users[str(user["_id"])] = user
    return users


async def send_timer_reminders(database, now: datetime, send=send_email_async) -> int:
    """
    Emails every user who still has an active timer session, at most once per
    user per day and only once the configured reminder time has passed in the
    reference time zone.

    Each reminder is claimed in email_notifications before it is sent; the
    unique (user_id, type, date) index makes a concurrent run skip the user.
    A failed send releases the claim so the next tick retries.

    Returns:
        int: Number of reminders sent.
    """
    reminder_settings = await get_reminder_settings(database)
    if not reminder_settings["enable_timer_reminders"]:
        return 0

    tz = get_timezone()
    local_now = as_utc(now).astimezone(tz)
    if local_now.time() < parse_reminder_time(reminder_settings["timer_reminder_time"]):
        return 0
    today = local_now.date().isoformat()

    sessions_by_user: Dict[str, List[dict]] = {}
    async for session in database.active_timer_sessions.find({}):
        sessions_by_user.setdefault(session["user_id"], []).append(session)
    if not sessions_by_user:
        return 0

    notified = set()
    async for notification in database.email_notifications.find({"type": TIMER_REMINDER, "date": today}):
        notified.add(notification["user_id"])

    pending = sorted(user_id for user_id in sessions_by_user if user_id not in notified)
    if not pending:
        return 0
    users = await load_users(database, pending)

    sent = 0
    for user_id in pending:
        user = users.get(user_id)
        if not user or not user.get("email") or user.get("account_status") == "inactive":
            continue

        claim = EmailNotification(user_id=user_id, type=TIMER_REMINDER, date=today, sent_at=now, created_at=now)
        try:
            result = await database.email_notifications.insert_one(claim.model_dump())
        except DuplicateKeyError:
            continue

        try:
            await send(build_reminder_message(user, sessions_by_user[user_id], now, tz))
        except Exception as e:
            logger.exception("Could not send timer reminder to %s: %s", user["email"], e)
            await database.email_notifications.delete_one({"_id": result.inserted_id})
            continue
        sent += 1

    logger.info("Timer reminders: %s users with active sessions, %s emails sent", len(sessions_by_user), sent)
    return sent
