"""
User model for identity management.
"""

from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from lifeflow_auth.kernel.models.base import Base


class UserRole(str, Enum):
    """User roles in the system."""
    DONOR = "donor"
    CENTER_STAFF = "center_staff"
    ADMIN = "admin"


class User(Base):
    """
    Identity record.

    ``password`` holds the HMAC-SHA512 digest and ``hash_key`` the per-user
    keying material used to compute it. Neither leaves the kernel.
    """
    
    __tablename__ = "users"
    
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(256),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    address_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    role: Mapped[str] = mapped_column(
        String(50),
        default=UserRole.DONOR.value,
        nullable=False,
    )
    password: Mapped[bytes] = mapped_column(LargeBinary(64), nullable=False)
    hash_key: Mapped[bytes] = mapped_column(LargeBinary(128), nullable=False)
    login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    
    @property
    def role_value(self) -> str:
        # role may come back as enum or plain str depending on the driver
        return self.role.value if isinstance(self.role, UserRole) else str(self.role)
    
    def __repr__(self) -> str:
        return f"<User {self.id} {self.email}>"
