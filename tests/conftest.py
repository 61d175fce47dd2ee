"""
Pytest fixtures for the auth service tests.

Each test gets a fresh in-memory SQLite database shared by every store
through a single AsyncSession.
"""

from dataclasses import dataclass, field
from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lifeflow_auth.config import SigningConfig
from lifeflow_auth.kernel.identity.auth_service import AuthService
from lifeflow_auth.kernel.identity.context import RequestContext
from lifeflow_auth.kernel.identity.jwt import JWTManager
from lifeflow_auth.kernel.identity.password import hash_password
from lifeflow_auth.kernel.models import Base, User, UserRole
from lifeflow_auth.kernel.sessions.session_store import SessionStore
from lifeflow_auth.services.identity_store import SqlIdentityStore
from lifeflow_auth.services.otp_service import TotpOtpService

TEST_SECRET = "test-secret-key-for-testing-only"
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DESKTOP_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:126.0) Gecko/20100101 Firefox/126.0"
PHONE_AGENT = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) Mobile/15E148 Safari/604.1"
CLIENT_IP = "203.0.113.7"


@dataclass
class SentEmail:
    to_address: str
    subject: str
    body: str


@dataclass
class RecordingEmailSink:
    """Email sink that keeps messages in memory."""

    sent: list[SentEmail] = field(default_factory=list)

    async def send(self, to_address: str, subject: str, body: str) -> None:
        self.sent.append(SentEmail(to_address, subject, body))

    def last_to(self, address: str) -> SentEmail:
        return [m for m in self.sent if m.to_address == address][-1]


@pytest_asyncio.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_maker() as session:
        yield session


@pytest.fixture
def signing() -> SigningConfig:
    return SigningConfig(secret_key=TEST_SECRET)


@pytest.fixture
def jwt_manager(signing: SigningConfig) -> JWTManager:
    return JWTManager(signing)


@pytest.fixture
def email_sink() -> RecordingEmailSink:
    return RecordingEmailSink()


@pytest.fixture
def otp_service(email_sink: RecordingEmailSink) -> TotpOtpService:
    return TotpOtpService(email_sink)


@pytest.fixture
def identity_store(db_session: AsyncSession) -> SqlIdentityStore:
    return SqlIdentityStore(db_session)


@pytest.fixture
def session_store(db_session: AsyncSession) -> SessionStore:
    return SessionStore(db_session)


@pytest.fixture
def make_auth_service(
    jwt_manager: JWTManager,
    identity_store: SqlIdentityStore,
    session_store: SessionStore,
    otp_service: TotpOtpService,
    email_sink: RecordingEmailSink,
) -> Callable[..., AuthService]:
    """Build an AuthService as seen by a caller with the given agent/IP."""

    def _make(user_agent: Optional[str] = DESKTOP_AGENT, client_ip: Optional[str] = CLIENT_IP, **overrides):
        deps = dict(
            tokens=jwt_manager,
            identities=identity_store,
            sessions=session_store,
            otp=otp_service,
            email=email_sink,
            context=RequestContext(client_ip=client_ip, raw_user_agent=user_agent),
        )
        deps.update(overrides)
        return AuthService(**deps)

    return _make


async def create_user(
    identity_store: SqlIdentityStore,
    *,
    email: str,
    password: str,
    verified: bool = True,
    role: UserRole = UserRole.DONOR,
    user_id: Optional[int] = None,
) -> User:
    """Insert a user with a real digest of the password."""
    digest, hash_key = hash_password(password)
    user = User(
        id=user_id,
        email=email,
        name="Test Donor",
        role=role.value,
        password=digest,
        hash_key=hash_key,
        is_verified=verified,
        login_attempts=0,
    )
    return await identity_store.insert(user)


@pytest_asyncio.fixture
async def verified_user(identity_store: SqlIdentityStore) -> User:
    """Identity 7, a@b.com, password pw1, verified."""
    return await create_user(identity_store, email="a@b.com", password="pw1", user_id=7)


@pytest_asyncio.fixture
async def unverified_user(identity_store: SqlIdentityStore) -> User:
    return await create_user(
        identity_store, email="new@example.com", password="pw1", verified=False
    )
