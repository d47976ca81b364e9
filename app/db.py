from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING
from config import settings


client = AsyncIOMotorClient(settings.MONGODB_URL)
db = client[settings.DB_NAME]


users_collection = db.users
projects_collection = db.projects
budget_injections_collection = db.project_budget_injections
active_timer_sessions_collection = db.active_timer_sessions
time_entries_collection = db.time_entries
monthly_cost_summaries_collection = db.monthly_cost_summaries
system_settings_collection = db.system_settings
email_notifications_collection = db.email_notifications


def get_database():
    return db


async def ensure_summary_index(database=None):
    """
    The unique (project_id, user_id, month) index is the final guard against
    duplicate monthly summaries when two summary runs overlap.
    """
    database = database if database is not None else db
    await database.monthly_cost_summaries.create_index(
        [("project_id", ASCENDING), ("user_id", ASCENDING), ("month", ASCENDING)],
        unique=True,
        name="project_user_month_unique",
    )


async def ensure_indexes(database=None):
    """
    Creates the indexes every collection relies on.
    """
    database = database if database is not None else db

    await database.users.create_index([("email", ASCENDING)], unique=True)
    await database.active_timer_sessions.create_index([("user_id", ASCENDING)])
    await database.time_entries.create_index([("project_id", ASCENDING), ("date", ASCENDING)])
    await database.time_entries.create_index([("user_id", ASCENDING), ("date", ASCENDING)])
    await database.system_settings.create_index([("key", ASCENDING)], unique=True)
    # one reminder per user, type and day
    await database.email_notifications.create_index(
        [("user_id", ASCENDING), ("type", ASCENDING), ("date", ASCENDING)],
        unique=True,
        name="user_type_date_unique",
    )
    await ensure_summary_index(database)
