"""
Identity Core - password digests, tokens and the authentication flows.
"""

from lifeflow_auth.kernel.identity.password import (
    PasswordHasher,
    constant_time_equals,
    hash_password,
    verify_password,
)
from lifeflow_auth.kernel.identity.jwt import (
    JWTManager,
    TokenPair,
    TokenPayload,
    ACCESS_TOKEN_LIFETIME,
    REFRESH_TOKEN_ROLE,
)
from lifeflow_auth.kernel.identity.device import classify_user_agent
from lifeflow_auth.kernel.identity.auth_service import AuthService

__all__ = [
    "PasswordHasher",
    "constant_time_equals",
    "hash_password",
    "verify_password",
    "JWTManager",
    "TokenPair",
    "TokenPayload",
    "ACCESS_TOKEN_LIFETIME",
    "REFRESH_TOKEN_ROLE",
    "classify_user_agent",
    "AuthService",
]
