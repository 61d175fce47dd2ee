"""
Email one-time passwords backed by pyotp.

Each pending verification gets its own random base32 secret; the code is
mailed to the address and the secret is dropped once a code verifies or
can no longer verify.
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

import pyotp

from lifeflow_auth.kernel.identity.ports import EmailSink
from lifeflow_auth.logging_config import get_logger

logger = get_logger(__name__)

# Codes from the neighbouring time step are accepted
VALID_WINDOW = 1


@dataclass
class PendingVerification:
    secret: str
    issued_at: float


class TotpOtpService:
    """
    Time-based codes keyed by email.

    Secrets live in process memory, so a code must be verified by the
    instance that issued it. Entries older than the last instant any of
    their codes could verify are evicted on every call.
    """

    def __init__(
        self,
        email_sink: EmailSink,
        *,
        interval_seconds: int = 300,
        digits: int = 6,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.email_sink = email_sink
        self.interval_seconds = interval_seconds
        self.digits = digits
        self._clock = clock or time.time
        self._pending: dict[str, PendingVerification] = {}

    @property
    def max_age_seconds(self) -> int:
        return self.interval_seconds * (VALID_WINDOW + 1)

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.interval_seconds)

    def _evict_stale(self) -> None:
        cutoff = self._clock() - self.max_age_seconds
        stale = [key for key, entry in self._pending.items() if entry.issued_at < cutoff]
        for key in stale:
            del self._pending[key]
        if stale:
            logger.debug("Evicted stale verifications", extra={"count": len(stale)})

    def pending_count(self) -> int:
        self._evict_stale()
        return len(self._pending)

    def current_code(self, email: str) -> Optional[str]:
        """Code currently valid for a pending verification, if any."""
        self._evict_stale()
        entry = self._pending.get(email.lower().strip())
        return self._totp(entry.secret).now() if entry else None

    async def generate_and_send(self, email: str) -> None:
        """Start (or restart) a verification for the address and mail the code."""
        self._evict_stale()
        key = email.lower().strip()
        secret = pyotp.random_base32()
        self._pending[key] = PendingVerification(secret=secret, issued_at=self._clock())
        code = self._totp(secret).now()

        minutes = max(1, self.interval_seconds // 60)
        await self.email_sink.send(
            email,
            "Verify your LifeFlow account",
            f"Your verification code is {code}. It expires in {minutes} minutes.",
        )
        logger.info("Verification code issued")

    async def verify(self, email: str, code: str) -> bool:
        """Check a code; a successful check consumes the pending verification."""
        self._evict_stale()
        key = email.lower().strip()
        entry = self._pending.get(key)
        if entry is None:
            return False
        if not self._totp(entry.secret).verify(code, valid_window=VALID_WINDOW):
            return False
        del self._pending[key]
        return True
