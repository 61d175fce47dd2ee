"""
Kernel Data Models

SQLAlchemy models for identities and their sessions.
"""

from lifeflow_auth.kernel.models.base import Base, utcnow
from lifeflow_auth.kernel.models.user import User, UserRole
from lifeflow_auth.kernel.models.session import DeviceType, UserSession

__all__ = [
    # Base
    "Base",
    "utcnow",
    # User
    "User",
    "UserRole",
    # Sessions
    "UserSession",
    "DeviceType",
]
