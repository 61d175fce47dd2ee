"""
JWT credential issuing and verification.

Access and refresh tokens are HS256-signed with a key taken from an
immutable SigningConfig. The issuer is stateless: it never looks at the
session store, so a token that decodes cleanly may still belong to a
revoked session.
"""

import calendar
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from lifeflow_auth.config import SigningConfig
from lifeflow_auth.exceptions import InvalidToken

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# Role claim carried by refresh tokens; never a UserRole value
REFRESH_TOKEN_ROLE = "RefreshToken"

# Canonical access-token lifetime, independent of configuration
ACCESS_TOKEN_LIFETIME = timedelta(minutes=15)
SHORT_REFRESH_LIFETIME = timedelta(hours=6)
LONG_REFRESH_MONTHS = 6


class TokenSubject(Protocol):
    """Anything a token can be minted for (the User model qualifies)."""

    id: int
    email: str

    @property
    def role_value(self) -> str: ...


class TokenPayload(BaseModel):
    """Claims recovered from a verified token."""

    id: int
    email: str
    role: str
    type: str
    iat: datetime
    exp: datetime
    jti: str

    @property
    def is_refresh(self) -> bool:
        return self.type == REFRESH_TOKEN_TYPE


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def add_months(moment: datetime, months: int) -> datetime:
    """Calendar-month arithmetic, clamping to the last day of short months."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JWTManager:
    """
    JWT token creation and verification.

    Handles access tokens (short-lived) and refresh tokens (hours or
    months, depending on the "stay signed in" choice).
    """

    def __init__(
        self,
        signing: SigningConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.signing = signing
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()

    def mint_token(
        self,
        user: TokenSubject,
        *,
        role: str,
        token_type: str,
        expires_at: datetime,
    ) -> str:
        """Sign a token for the user with an explicit expiry instant."""
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "role": role,
            "type": token_type,
            "iat": self.now(),
            "exp": expires_at,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.signing.secret_key, algorithm=self.signing.algorithm)

    def mint_access_token(self, user: TokenSubject) -> str:
        """Create an access token carrying the user's real role."""
        return self.mint_token(
            user,
            role=user.role_value,
            token_type=ACCESS_TOKEN_TYPE,
            expires_at=self.now() + ACCESS_TOKEN_LIFETIME,
        )

    def refresh_expiry(self, short_lived: bool) -> datetime:
        now = self.now()
        if short_lived:
            return now + SHORT_REFRESH_LIFETIME
        return add_months(now, LONG_REFRESH_MONTHS)

    def mint_refresh_token(self, user: TokenSubject, short_lived: bool) -> str:
        """
        Create a refresh token.

        Args:
            user: Token subject
            short_lived: Hours-scale expiry when True, months-scale otherwise
        """
        return self.mint_token(
            user,
            role=REFRESH_TOKEN_ROLE,
            token_type=REFRESH_TOKEN_TYPE,
            expires_at=self.refresh_expiry(short_lived),
        )

    def mint_token_pair(self, user: TokenSubject, short_lived: bool) -> TokenPair:
        """Create both tokens; the only path used by login and reset flows."""
        return TokenPair(
            access_token=self.mint_access_token(user),
            refresh_token=self.mint_refresh_token(user, short_lived),
        )

    def decode(self, token: str) -> TokenPayload:
        """
        Verify signature and expiry and return the claims.

        Raises:
            InvalidToken: On bad signature, malformed token, expiry or missing claims
        """
        try:
            claims = jwt.decode(
                token,
                self.signing.secret_key,
                algorithms=[self.signing.algorithm],
            )
            return TokenPayload(
                id=int(claims["sub"]),
                email=claims["email"],
                role=claims["role"],
                type=claims["type"],
                iat=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
                jti=claims["jti"],
            )
        except (JWTError, KeyError, TypeError, ValueError, ValidationError) as exc:
            raise InvalidToken() from exc

    def decode_access(self, token: str) -> TokenPayload:
        """Decode a token and require it to be an access token."""
        payload = self.decode(token)
        if payload.type != ACCESS_TOKEN_TYPE or payload.role == REFRESH_TOKEN_ROLE:
            raise InvalidToken("Access token required")
        return payload
