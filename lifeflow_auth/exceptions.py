"""
Authentication error taxonomy.

These exceptions are framework-agnostic: the kernel raises them and the
API layer maps each kind to an HTTP response through ``status_code`` and
``code``.
"""


class AuthError(Exception):
    """Base class for every error kind raised by the authentication core."""

    status_code: int = 400
    code: str = "auth_error"
    default_message: str = "Authentication error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class IdentityNotFound(AuthError):
    """Raised when no identity matches the given email or id."""

    status_code = 404
    code = "identity_not_found"
    default_message = "User not found"


class DuplicateIdentity(AuthError):
    """Raised when registering an email that already exists."""

    status_code = 409
    code = "duplicate_identity"
    default_message = "Email already registered"


class NotVerified(AuthError):
    """Raised when an unverified identity tries to sign in."""

    status_code = 403
    code = "not_verified"
    default_message = "User not verified"


class AuthenticationFailed(AuthError):
    """
    Raised for bad passwords and invalid, unknown or anomalous tokens.

    The message never reveals which factor failed.
    """

    status_code = 401
    code = "authentication_failed"
    default_message = "Invalid credentials"


class SessionNotFound(AuthError):
    """Raised when no session record matches a refresh token."""

    status_code = 404
    code = "session_not_found"
    default_message = "User session token not found"


class InvalidToken(AuthError):
    """Raised when a token has a bad signature, is malformed or expired."""

    status_code = 401
    code = "invalid_token"
    default_message = "Invalid or expired token"


class MissingSigningKey(AuthError):
    """Fatal startup condition: no signing secret is configured."""

    status_code = 500
    code = "missing_signing_key"
    default_message = "No token signing secret configured"


class RegistrationFailed(AuthError):
    """Wraps an unexpected failure during registration."""

    status_code = 500
    code = "registration_failed"
    default_message = "Not able to register at this moment"


class ResetFailed(AuthError):
    """Wraps an unexpected failure during password reset."""

    status_code = 500
    code = "reset_failed"
    default_message = "Failed to reset password"


class PersistenceConflict(AuthError):
    """Raised when a session record with the same refresh token exists."""

    status_code = 409
    code = "persistence_conflict"
    default_message = "Session already exists"


class MissingUserAgent(AuthError):
    """Raised when the caller did not send a User-Agent header."""

    status_code = 400
    code = "missing_user_agent"
    default_message = "User agent not found"
