"""
Contracts of the collaborators the authentication flows depend on.

Lookups return None for "not found" so callers handle that case
explicitly; writes raise the error kinds from lifeflow_auth.exceptions.
"""

from typing import Optional, Protocol

from lifeflow_auth.kernel.models.user import User


class IdentityStore(Protocol):
    """Persistence of identity records."""

    async def get_by_email(self, email: str) -> Optional[User]: ...

    async def get_by_id(self, user_id: int) -> Optional[User]: ...

    async def insert(self, user: User) -> User:
        """Raises DuplicateIdentity when the email is taken."""
        ...

    async def update(self, user: User) -> User: ...

    async def mark_verified(self, user_id: int) -> User:
        """Raises IdentityNotFound when the id does not exist."""
        ...


class OtpService(Protocol):
    """One-time verification codes keyed by an identity's email."""

    async def generate_and_send(self, email: str) -> None: ...

    async def verify(self, email: str, code: str) -> bool: ...


class EmailSink(Protocol):
    """Outbound mail. Delivery problems are the sink's concern, not the caller's."""

    async def send(self, to_address: str, subject: str, body: str) -> None: ...
