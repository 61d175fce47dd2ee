"""
Session record: one row per issued refresh token.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lifeflow_auth.kernel.models.base import Base, utcnow


class DeviceType(str, Enum):
    """Device class derived from the caller's user agent."""
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    UNKNOWN = "unknown"


class UserSession(Base):
    """
    Server-side state of one refresh token.

    ``is_valid`` only ever goes from True to False. Rows are physically
    removed only by the expired-session sweep or an admin delete.
    """
    
    __tablename__ = "user_sessions"
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    refresh_token: Mapped[str] = mapped_column(
        String(1024),
        nullable=False,
        unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    is_valid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(256), nullable=False)
    user_agent: Mapped[str] = mapped_column(String(512), nullable=False)
    device_type: Mapped[str] = mapped_column(
        String(100),
        default=DeviceType.UNKNOWN.value,
        nullable=False,
    )
    
    def __repr__(self) -> str:
        return f"<UserSession {self.id} user={self.user_id} valid={self.is_valid}>"
