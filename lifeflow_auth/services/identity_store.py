"""
SQLAlchemy-backed identity store.
"""

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lifeflow_auth.exceptions import DuplicateIdentity, IdentityNotFound
from lifeflow_auth.kernel.models.user import User
from lifeflow_auth.logging_config import get_logger

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.lower().strip()


class SqlIdentityStore:
    """Identity records in the ``users`` table; writes are committed immediately."""
    
    def __init__(self, session: AsyncSession):
        self.session = session
    
    async def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by email."""
        query = select(User).where(User.email == normalize_email(email))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
    
    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get a user by ID."""
        return await self.session.get(User, user_id)
    
    async def insert(self, user: User) -> User:
        """
        Create a user record.
        
        Raises:
            DuplicateIdentity: If the email already exists
        """
        user.email = normalize_email(user.email)
        if await self.get_by_email(user.email) is not None:
            raise DuplicateIdentity()
        
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateIdentity() from exc
        
        logger.info("User registered", extra={"user_id": user.id})
        return user
    
    async def update(self, user: User) -> User:
        """Persist changes made to a loaded user."""
        merged = await self.session.merge(user)
        await self.session.commit()
        return merged
    
    async def mark_verified(self, user_id: int) -> User:
        """
        Flip the verified flag on.
        
        Raises:
            IdentityNotFound: If the id does not exist
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(is_verified=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()
        if not result.rowcount:
            raise IdentityNotFound()
        
        user = await self.session.get(User, user_id, populate_existing=True)
        logger.info("User verified", extra={"user_id": user_id})
        return user
