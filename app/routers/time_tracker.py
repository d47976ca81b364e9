import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends, Path
from db import get_database
from exceptions import TimerSessionNotFound, get_unknown_entity_exception, get_internal_server_exception
from schemas.timer import (StartTimer, SyncTimer, TimerSessionAction, PausedTimerSession,
                           ActiveTimerSessions, EndedTimerSession, SyncedTimerSession)
from utils.app_utils import get_current_user
from utils.time_utils import get_clock
from utils.timer_utils import TimerSessionManager

logger = logging.getLogger(__name__)

router = APIRouter()


def get_timer_manager(database=Depends(get_database), clock=Depends(get_clock)) -> TimerSessionManager:
    return TimerSessionManager(database.active_timer_sessions, clock)


@router.get("/active", response_model=ActiveTimerSessions)
async def get_active_sessions(user_and_role: tuple = Depends(get_current_user),
                              manager: TimerSessionManager = Depends(get_timer_manager)):
    """
    Lists every active timer session of the logged-in user.
    Each session carries `current_elapsed_total`, projected from the stored
    checkpoints and the server clock. Reading never changes stored state.
    """
    user, _ = user_and_role
    try:
        sessions = await manager.get_active(str(user["_id"]))
    except Exception as e:
        logger.exception("Failed to fetch active timer sessions: %s", e)
        raise get_internal_server_exception()

    return {"has_active_sessions": bool(sessions), "sessions": sessions}


@router.post("/start", response_model=TimerSessionAction)
async def start_session(payload: Optional[StartTimer] = Body(None),
                        user_and_role: tuple = Depends(get_current_user),
                        manager: TimerSessionManager = Depends(get_timer_manager)):
    """
    Starts a new running timer session.
    Other sessions of the user are left alone; several may run or be paused
    at the same time.
    """
    user, _ = user_and_role
    try:
        session = await manager.start(str(user["_id"]), payload.description if payload else None)
    except Exception as e:
        logger.exception("Failed to start timer session: %s", e)
        raise get_internal_server_exception()

    return {"action": "started", "session": session}


@router.post("/pause/{session_id}", response_model=PausedTimerSession)
async def pause_session(session_id: str = Path(..., description="Timer session id"),
                        user_and_role: tuple = Depends(get_current_user),
                        manager: TimerSessionManager = Depends(get_timer_manager)):
    """
    Pauses a running session and folds the current interval into its total.
    Returns 404 when the session is missing, not owned by the caller, or not running.
    """
    user, _ = user_and_role
    try:
        session, total_elapsed = await manager.pause(str(user["_id"]), session_id)
    except TimerSessionNotFound as e:
        raise get_unknown_entity_exception(e.message)
    except Exception as e:
        logger.exception("Failed to pause timer session: %s", e)
        raise get_internal_server_exception()

    return {"action": "paused", "session": session, "total_elapsed": total_elapsed}


@router.post("/resume/{session_id}", response_model=TimerSessionAction)
async def resume_session(session_id: str = Path(..., description="Timer session id"),
                         user_and_role: tuple = Depends(get_current_user),
                         manager: TimerSessionManager = Depends(get_timer_manager)):
    """
    Resumes a paused session by opening a new interval.
    Returns 404 when the session is missing, not owned by the caller, or not paused.
    """
    user, _ = user_and_role
    try:
        session = await manager.resume(str(user["_id"]), session_id)
    except TimerSessionNotFound as e:
        raise get_unknown_entity_exception(e.message)
    except Exception as e:
        logger.exception("Failed to resume timer session: %s", e)
        raise get_internal_server_exception()

    return {"action": "resumed", "session": session}


@router.delete("/{session_id}", response_model=EndedTimerSession)
async def end_session(session_id: str = Path(..., description="Timer session id"),
                      user_and_role: tuple = Depends(get_current_user),
                      manager: TimerSessionManager = Depends(get_timer_manager)):
    """
    Ends a session and returns its final duration.
    The session is deleted. Saving the duration is a separate
    `POST /time-entries/` call; if the client never makes it the time is lost.
    A final duration of 0 is a normal result meaning there is nothing to record.
    """
    user, _ = user_and_role
    try:
        ended = await manager.end(str(user["_id"]), session_id)
    except TimerSessionNotFound as e:
        raise get_unknown_entity_exception(e.message)
    except Exception as e:
        logger.exception("Failed to end timer session: %s", e)
        raise get_internal_server_exception()

    return {"action": "ended", **ended}


@router.post("/sync/{session_id}", response_model=SyncedTimerSession)
async def sync_session(session_id: str = Path(..., description="Timer session id"),
                       payload: Optional[SyncTimer] = Body(None),
                       user_and_role: tuple = Depends(get_current_user),
                       manager: TimerSessionManager = Depends(get_timer_manager)):
    """
    Updates session metadata without touching its timing and returns the live state.
    """
    user, _ = user_and_role
    try:
        synced = await manager.sync(str(user["_id"]), session_id, payload.changes() if payload else {})
    except TimerSessionNotFound as e:
        raise get_unknown_entity_exception(e.message)
    except Exception as e:
        logger.exception("Failed to sync timer session: %s", e)
        raise get_internal_server_exception()

    return {"action": "synced", **synced}
