"""
Session store: durable records of issued refresh tokens.

Validity only ever moves from True to False, and every such transition is
a conditional UPDATE (``WHERE is_valid = true``) so concurrent writers on
other instances cannot resurrect or double-apply a change. Each mutating
call commits before returning.
"""

from datetime import datetime
from typing import Callable, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lifeflow_auth.exceptions import PersistenceConflict, SessionNotFound
from lifeflow_auth.kernel.models.base import utcnow
from lifeflow_auth.kernel.models.session import UserSession
from lifeflow_auth.logging_config import get_logger

logger = get_logger(__name__)


class SessionStore:
    """
    Service for session record persistence.

    Usage:
        store = SessionStore(db)
        record = await store.create(UserSession(user_id=7, refresh_token=rt, ...))
        if await store.is_valid(rt):
            ...
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self._clock = clock or utcnow

    async def create(self, record: UserSession) -> UserSession:
        """
        Insert a new session.

        Raises:
            PersistenceConflict: If a session with the same refresh token exists
        """
        if await self.find_by_token(record.refresh_token) is not None:
            raise PersistenceConflict()

        self.session.add(record)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent insert of the same token
            await self.session.rollback()
            raise PersistenceConflict() from exc

        logger.info(
            "Session created",
            extra={"session_id": record.id, "user_id": record.user_id, "device_type": record.device_type},
        )
        return record

    async def find_by_token(self, token: str) -> Optional[UserSession]:
        """Get a session by its refresh token, or None."""
        query = (
            select(UserSession)
            .where(UserSession.refresh_token == token)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_all_by_identity(self, user_id: int) -> Sequence[UserSession]:
        """All sessions of one identity, newest first."""
        query = (
            select(UserSession)
            .where(UserSession.user_id == user_id)
            .order_by(UserSession.created_at.desc(), UserSession.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def get_all(self) -> Sequence[UserSession]:
        """Every session record (admin view)."""
        query = select(UserSession).order_by(UserSession.id).execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def is_valid(self, token: str) -> bool:
        """
        Report the validity flag of a session.

        Expiry is not consulted: a past-expiry session that was never
        invalidated reports valid until sweep_expired removes it.

        Raises:
            SessionNotFound: If no session matches the token
        """
        query = select(UserSession.is_valid).where(UserSession.refresh_token == token)
        result = await self.session.execute(query)
        flag = result.scalar_one_or_none()
        if flag is None:
            raise SessionNotFound()
        return bool(flag)

    async def invalidate(self, token: str) -> UserSession:
        """
        Clear the validity flag of one session.

        Idempotent: invalidating an already invalid session returns it unchanged.

        Raises:
            SessionNotFound: If no session matches the token
        """
        stmt = (
            update(UserSession)
            .where(UserSession.refresh_token == token, UserSession.is_valid.is_(True))
            .values(is_valid=False)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        record = await self.find_by_token(token)
        if record is None:
            raise SessionNotFound()

        if result.rowcount:
            logger.info(
                "Session invalidated",
                extra={"session_id": record.id, "user_id": record.user_id},
            )
        return record

    async def invalidate_all(self, user_id: int) -> int:
        """
        Invalidate every valid session of an identity.

        Returns:
            Number of sessions that flipped from valid to invalid
        """
        stmt = (
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_valid.is_(True))
            .values(is_valid=False)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        logger.info(
            "Invalidated all sessions for user",
            extra={"user_id": user_id, "count": result.rowcount},
        )
        return result.rowcount

    async def sweep_expired(self) -> int:
        """
        Physically delete every session whose expiry is at or before now,
        valid or not.

        Returns:
            Number of deleted records
        """
        stmt = (
            delete(UserSession)
            .where(UserSession.expires_at <= self._clock())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        logger.info("Deleted expired sessions", extra={"count": result.rowcount})
        return result.rowcount

    async def delete_by_id(self, session_id: int) -> UserSession:
        """
        Remove one session record (admin).

        Raises:
            SessionNotFound: If the id does not exist
        """
        record = await self.session.get(UserSession, session_id)
        if record is None:
            raise SessionNotFound(f"Session {session_id} not found")
        await self.session.delete(record)
        await self.session.commit()
        logger.info("Deleted session", extra={"session_id": session_id})
        return record
