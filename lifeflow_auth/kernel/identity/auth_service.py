"""
Authentication flows: login, refresh, logout, registration, OTP
verification, forgotten and reset passwords.
"""

from typing import Optional

import pyotp

from lifeflow_auth.exceptions import (
    AuthenticationFailed,
    DuplicateIdentity,
    IdentityNotFound,
    InvalidToken,
    NotVerified,
    RegistrationFailed,
    ResetFailed,
    SessionNotFound,
)
from lifeflow_auth.kernel.identity.context import ClientFingerprint, RequestContext
from lifeflow_auth.kernel.identity.jwt import JWTManager, TokenPair, add_months
from lifeflow_auth.kernel.identity.password import hash_password, verify_password
from lifeflow_auth.kernel.identity.ports import EmailSink, IdentityStore, OtpService
from lifeflow_auth.kernel.models.session import UserSession
from lifeflow_auth.kernel.models.user import User, UserRole
from lifeflow_auth.kernel.sessions.session_store import SessionStore
from lifeflow_auth.logging_config import get_logger
from lifeflow_auth.schemas.auth import UserResponse

logger = get_logger(__name__)

# Server-side horizon of every session record, whatever the token lifetime
SESSION_LIFETIME_MONTHS = 6

INVALID_SESSION_MESSAGE = "Invalid Token, login again please"
DEVICE_ANOMALY_MESSAGE = "We have detected some anomalies with your device, please login again"


class AuthService:
    """
    Orchestrates identity lookups, token minting and session bookkeeping.

    One instance serves one request: ``context`` carries that caller's
    IP address and user agent.
    """

    def __init__(
        self,
        *,
        tokens: JWTManager,
        identities: IdentityStore,
        sessions: SessionStore,
        otp: OtpService,
        email: EmailSink,
        context: RequestContext,
    ):
        self.tokens = tokens
        self.identities = identities
        self.sessions = sessions
        self.otp = otp
        self.email = email
        self.context = context

    # ------------------------------------------------------------------ #
    # Sign-in and tokens
    # ------------------------------------------------------------------ #

    async def login(self, email: str, password: str, stay_signed: bool = False) -> TokenPair:
        """
        Authenticate a verified user and open a session.

        Args:
            email: User's email
            password: Plain text password
            stay_signed: Request a long-lived refresh token

        Returns:
            Access/refresh token pair

        Raises:
            IdentityNotFound: No user with that email
            NotVerified: The account has not completed OTP verification
            AuthenticationFailed: Wrong password
        """
        user = await self._require_user_by_email(email)
        if not user.is_verified:
            logger.warning("Login attempt on unverified account", extra={"user_id": user.id})
            raise NotVerified()

        if not verify_password(password, user.hash_key, user.password):
            logger.warning("Login failed: bad password", extra={"user_id": user.id})
            raise AuthenticationFailed("Invalid username or password")

        tokens = await self._issue_session(
            user, short_lived=not stay_signed, client=self.context.fingerprint()
        )
        logger.info("User logged in", extra={"user_id": user.id})
        return tokens

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new access token.

        The refresh token is not rotated. A user-agent mismatch with the
        one recorded at login invalidates the session before failing.

        Raises:
            AuthenticationFailed: Unknown, invalid, anomalous or undecodable token
        """
        try:
            valid = await self.sessions.is_valid(refresh_token)
        except SessionNotFound:
            raise AuthenticationFailed(INVALID_SESSION_MESSAGE) from None
        if not valid:
            raise AuthenticationFailed(INVALID_SESSION_MESSAGE)

        session = await self.sessions.find_by_token(refresh_token)
        if session is None:
            # swept between the two reads
            raise AuthenticationFailed(INVALID_SESSION_MESSAGE)

        if session.user_agent != self.context.user_agent:
            await self.sessions.invalidate(refresh_token)
            logger.warning(
                "Device anomaly on refresh, session invalidated",
                extra={
                    "session_id": session.id,
                    "user_id": session.user_id,
                    "ip_address": self.context.ip_address,
                },
            )
            raise AuthenticationFailed(DEVICE_ANOMALY_MESSAGE)

        try:
            payload = self.tokens.decode(refresh_token)
        except InvalidToken:
            raise AuthenticationFailed(INVALID_SESSION_MESSAGE) from None
        if not payload.is_refresh:
            raise AuthenticationFailed(INVALID_SESSION_MESSAGE)

        user = await self.identities.get_by_id(payload.id)
        if user is None:
            logger.error("Refresh for missing user", extra={"user_id": payload.id})
            raise IdentityNotFound()

        return TokenPair(
            access_token=self.tokens.mint_access_token(user),
            refresh_token=refresh_token,
        )

    async def logout(self, refresh_token: str) -> None:
        """
        Invalidate the session of a refresh token. Idempotent.

        Raises:
            SessionNotFound: No session matches the token
        """
        await self.sessions.invalidate(refresh_token)

    # ------------------------------------------------------------------ #
    # Account lifecycle
    # ------------------------------------------------------------------ #

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        phone_number: Optional[str] = None,
        address_id: Optional[int] = None,
    ) -> UserResponse:
        """
        Create an unverified account and send its verification code.

        Returns:
            Public projection of the new user

        Raises:
            DuplicateIdentity: Email already registered
            RegistrationFailed: Any other failure (cause is logged only)
        """
        try:
            digest, hash_key = hash_password(password)
            user = User(
                email=email,
                name=name,
                phone_number=phone_number,
                address_id=address_id,
                role=UserRole.DONOR.value,
                password=digest,
                hash_key=hash_key,
                is_verified=False,
                login_attempts=0,
            )
            user = await self.identities.insert(user)
            await self.otp.generate_and_send(user.email)
            return UserResponse.model_validate(user)
        except DuplicateIdentity:
            logger.warning("Registration with existing email")
            raise
        except Exception:
            logger.exception("Registration failed")
            raise RegistrationFailed() from None

    async def verify_otp(self, user_id: int, code: str) -> bool:
        """
        Check a verification code and mark the user verified on success.

        Returns:
            Whether the code was accepted; False is not an error
        """
        user = await self.identities.get_by_id(user_id)
        if user is None:
            raise IdentityNotFound()

        verified = await self.otp.verify(user.email, code)
        if verified:
            await self.identities.mark_verified(user_id)
        else:
            logger.info("Verification code rejected", extra={"user_id": user_id})
        return verified

    async def forgot_password(self, email: str) -> None:
        """
        Replace the password with a mailed temporary one.

        The temporary password is a TOTP code computed from fresh random
        material. Sessions are left untouched.
        """
        user = await self._require_user_by_email(email)

        temporary_password = pyotp.TOTP(pyotp.random_base32()).now()
        user.password, user.hash_key = hash_password(temporary_password)
        await self.identities.update(user)

        await self.email.send(
            user.email,
            "Password Reset",
            f"Your new password is {temporary_password}. Please change it after logging in.",
        )
        logger.info("Temporary password issued", extra={"user_id": user.id})

    async def reset_password(self, email: str, old_password: str, new_password: str) -> TokenPair:
        """
        Change the password, sign out every device and open one new session.

        The new password is committed first. If a later session step
        fails, the password stays changed and ResetFailed is raised.

        Raises:
            IdentityNotFound: No user with that email
            AuthenticationFailed: Old password does not match
            MissingUserAgent: No User-Agent header; nothing is changed
            ResetFailed: Any downstream failure (cause is logged only)
        """
        user = await self._require_user_by_email(email)
        if not verify_password(old_password, user.hash_key, user.password):
            logger.warning("Password reset failed: bad password", extra={"user_id": user.id})
            raise AuthenticationFailed("Invalid Password")

        # read before anything is written so a bad request changes nothing
        client = self.context.fingerprint()
        user_id = user.id
        try:
            user.password, user.hash_key = hash_password(new_password)
            user = await self.identities.update(user)

            # logs out from all other devices
            await self.sessions.invalidate_all(user.id)
            tokens = await self._issue_session(user, short_lived=False, client=client)
        except Exception:
            logger.exception("Password reset failed", extra={"user_id": user_id})
            raise ResetFailed() from None

        logger.info("Password reset", extra={"user_id": user_id})
        return tokens

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _require_user_by_email(self, email: str) -> User:
        user = await self.identities.get_by_email(email)
        if user is None:
            logger.info("Unknown email")
            raise IdentityNotFound()
        return user

    async def _issue_session(
        self, user: User, *, short_lived: bool, client: ClientFingerprint
    ) -> TokenPair:
        """
        Mint a token pair and persist its session record.

        The pair is only returned once the record is committed.
        """
        tokens = self.tokens.mint_token_pair(user, short_lived)
        now = self.tokens.now()
        await self.sessions.create(
            UserSession(
                user_id=user.id,
                refresh_token=tokens.refresh_token,
                created_at=now,
                expires_at=add_months(now, SESSION_LIFETIME_MONTHS),
                is_valid=True,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
                device_type=client.device_type.value,
            )
        )
        return tokens
