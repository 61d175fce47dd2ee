"""
FastAPI dependencies for database sessions, caller context and the
authentication services.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from lifeflow_auth.database import get_db
from lifeflow_auth.exceptions import InvalidToken
from lifeflow_auth.kernel.identity.auth_service import AuthService
from lifeflow_auth.kernel.identity.context import RequestContext
from lifeflow_auth.kernel.identity.jwt import JWTManager, TokenPayload
from lifeflow_auth.kernel.models.user import UserRole
from lifeflow_auth.kernel.sessions.session_store import SessionStore
from lifeflow_auth.services.identity_store import SqlIdentityStore


# Security scheme
security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_request_context(request: Request) -> RequestContext:
    """Caller IP and raw User-Agent; a missing agent surfaces when it is read."""
    return RequestContext(
        client_ip=get_client_ip(request),
        raw_user_agent=request.headers.get("User-Agent"),
    )


def get_jwt_manager(request: Request) -> JWTManager:
    """Token issuer built once at startup."""
    return request.app.state.jwt_manager


Context = Annotated[RequestContext, Depends(get_request_context)]
Tokens = Annotated[JWTManager, Depends(get_jwt_manager)]


def get_session_store(db: DbSession) -> SessionStore:
    return SessionStore(db)


def get_identity_store(db: DbSession) -> SqlIdentityStore:
    return SqlIdentityStore(db)


Sessions = Annotated[SessionStore, Depends(get_session_store)]
Identities = Annotated[SqlIdentityStore, Depends(get_identity_store)]


def get_auth_service(
    request: Request,
    tokens: Tokens,
    identities: Identities,
    sessions: Sessions,
    context: Context,
) -> AuthService:
    """Per-request orchestrator wired to this caller's context."""
    return AuthService(
        tokens=tokens,
        identities=identities,
        sessions=sessions,
        otp=request.app.state.otp_service,
        email=request.app.state.email_sink,
        context=context,
    )


Auth = Annotated[AuthService, Depends(get_auth_service)]


async def get_current_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    tokens: Tokens,
) -> TokenPayload:
    """Decode the bearer access token or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return tokens.decode_access(credentials.credentials)
    except InvalidToken:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


CurrentToken = Annotated[TokenPayload, Depends(get_current_token)]


async def require_admin(token: CurrentToken) -> TokenPayload:
    """Require the caller's access token to carry the admin role."""
    if token.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return token


AdminToken = Annotated[TokenPayload, Depends(require_admin)]
