import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument

from exceptions import TimerSessionNotFound
from models.timer_sessions import ActiveTimerSession
from utils.time_utils import Clock, RealClock, as_utc, current_elapsed_total, elapsed_seconds

logger = logging.getLogger(__name__)

RUNNING = "running"
PAUSED = "paused"


def _object_id(session_id: str) -> ObjectId:
    try:
        return ObjectId(session_id)
    except (InvalidId, TypeError):
        raise TimerSessionNotFound(str(session_id), "Invalid timer session id")


def serialize_session(session: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    last_start = session.get("last_interval_start_time")
    data = {
        "id": str(session["_id"]),
        "user_id": session["user_id"],
        "status": session["status"],
        "start_time": as_utc(session["start_time"]),
        "total_accumulated_duration": int(session.get("total_accumulated_duration", 0)),
        "last_interval_start_time": as_utc(last_start) if last_start is not None else None,
        "description": session.get("description"),
    }
    if now is not None:
        data["current_elapsed_total"] = current_elapsed_total(session, now)
    return data


class TimerSessionManager:
    """
    Start/pause/resume/end state machine for active timer sessions.

    Elapsed time is never ticked on the server. Each session stores the seconds
    of its completed intervals plus the instant the running interval began, and
    the live total is projected from those checkpoints on every read.

    Every transition is one conditional find-and-modify whose filter carries
    the ownership and status precondition, so a request that loses a race sees
    no matching document and gets TimerSessionNotFound instead of corrupting
    the accumulated duration.
    """

    def __init__(self, collection, clock: Optional[Clock] = None):
        self.collection = collection
        self.clock = clock or RealClock()

    async def start(self, user_id: str, description: Optional[str] = None) -> Dict[str, Any]:
        now = self.clock.now()
        session = ActiveTimerSession(
            user_id=user_id,
            status=RUNNING,
            start_time=now,
            total_accumulated_duration=0,
            last_interval_start_time=now,
            description=description,
            created_at=now,
            updated_at=now,
        ).model_dump()
        result = await self.collection.insert_one(session)
        session["_id"] = result.inserted_id
        logger.info("Timer session %s started for user %s", result.inserted_id, user_id)
        return serialize_session(session, now)

    async def get_active(self, user_id: str) -> List[Dict[str, Any]]:
        now = self.clock.now()
        sessions = await self.collection.find({"user_id": user_id}).sort("start_time", 1).to_list(length=None)
        return [serialize_session(session, now) for session in sessions]

    async def pause(self, user_id: str, session_id: str) -> Tuple[Dict[str, Any], int]:
        oid = _object_id(session_id)
        session = await self.collection.find_one({"_id": oid, "user_id": user_id, "status": RUNNING})
        if not session or session.get("last_interval_start_time") is None:
            raise TimerSessionNotFound(session_id, "No running timer session found")

        now = self.clock.now()
        interval = elapsed_seconds(session["last_interval_start_time"], now)

        # Compare-and-set on the interval start read above: a concurrent pause
        # that already folded this interval in leaves nothing to match.
        updated = await self.collection.find_one_and_update(
            {
                "_id": oid,
                "user_id": user_id,
                "status": RUNNING,
                "last_interval_start_time": session["last_interval_start_time"],
            },
            {
                "$inc": {"total_accumulated_duration": interval},
                "$set": {"status": PAUSED, "last_interval_start_time": None, "updated_at": now},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise TimerSessionNotFound(session_id, "No running timer session found")

        total_elapsed = int(updated["total_accumulated_duration"])
        logger.info("Timer session %s paused at %s seconds", session_id, total_elapsed)
        return serialize_session(updated, now), total_elapsed

    async def resume(self, user_id: str, session_id: str) -> Dict[str, Any]:
        oid = _object_id(session_id)
        now = self.clock.now()
        updated = await self.collection.find_one_and_update(
            {"_id": oid, "user_id": user_id, "status": PAUSED},
            {"$set": {"status": RUNNING, "last_interval_start_time": now, "updated_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise TimerSessionNotFound(session_id, "No paused timer session found")

        logger.info("Timer session %s resumed", session_id)
        return serialize_session(updated, now)

    async def end(self, user_id: str, session_id: str) -> Dict[str, Any]:
        """
        Deletes the session and returns its final duration.
        The caller commits the duration as a time entry in a separate request;
        the session cannot be recovered once this returns.
        """
        oid = _object_id(session_id)
        now = self.clock.now()
        session = await self.collection.find_one_and_delete({"_id": oid, "user_id": user_id})
        if not session:
            raise TimerSessionNotFound(session_id, "No active timer session found")

        final_duration = current_elapsed_total(session, now)
        # Logged so an ended session whose entry is never saved can be recovered by hand.
        logger.info(
            "Timer session %s ended for user %s with final duration %s seconds",
            session_id, user_id, final_duration,
        )
        return {
            "final_duration": final_duration,
            "start_time": as_utc(session["start_time"]),
            "end_time": now,
            "description": session.get("description"),
        }

    async def sync(self, user_id: str, session_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Applies metadata changes and returns the live projection.
        Only keys present in `changes` are written; timing fields are never touched.
        """
        oid = _object_id(session_id)
        now = self.clock.now()
        owner_filter = {"_id": oid, "user_id": user_id}

        if "description" in changes:
            session = await self.collection.find_one_and_update(
                owner_filter,
                {"$set": {"description": changes["description"], "updated_at": now}},
                return_document=ReturnDocument.AFTER,
            )
        else:
            session = await self.collection.find_one(owner_filter)

        if not session:
            raise TimerSessionNotFound(session_id, "No active timer session found")

        return {
            "current_elapsed_total": current_elapsed_total(session, now),
            "status": session["status"],
        }
