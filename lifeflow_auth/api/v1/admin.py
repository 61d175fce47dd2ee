"""
Administrative session endpoints. All routes require an admin access token.
"""

from fastapi import APIRouter

from lifeflow_auth.api.deps import AdminToken, Sessions
from lifeflow_auth.logging_config import get_logger
from lifeflow_auth.schemas.auth import SessionResponse
from lifeflow_auth.schemas.common import SuccessResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(admin: AdminToken, sessions: Sessions):
    """List every session record."""
    records = await sessions.get_all()
    return [SessionResponse.model_validate(r) for r in records]


@router.post("/sessions/flush", response_model=SuccessResponse)
async def flush_expired_sessions(admin: AdminToken, sessions: Sessions):
    """Delete every session past its expiry, valid or not."""
    deleted = await sessions.sweep_expired()
    logger.info("Expired sessions flushed by admin", extra={"user_id": admin.id, "count": deleted})
    return SuccessResponse(message="Expired sessions deleted", data={"deleted": deleted})


@router.delete("/sessions/{session_id}", response_model=SessionResponse)
async def delete_session(session_id: int, admin: AdminToken, sessions: Sessions):
    """Delete one session record."""
    record = await sessions.delete_by_id(session_id)
    return SessionResponse.model_validate(record)
