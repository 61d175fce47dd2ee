"""
Unit tests for the authentication flows.
"""

import re
from datetime import datetime, timedelta, timezone

import pytest

from lifeflow_auth.exceptions import (
    AuthenticationFailed,
    DuplicateIdentity,
    IdentityNotFound,
    MissingUserAgent,
    NotVerified,
    RegistrationFailed,
    ResetFailed,
    SessionNotFound,
)
from lifeflow_auth.kernel.identity.auth_service import (
    DEVICE_ANOMALY_MESSAGE,
    INVALID_SESSION_MESSAGE,
)
from lifeflow_auth.kernel.identity.jwt import REFRESH_TOKEN_ROLE, SHORT_REFRESH_LIFETIME, JWTManager
from lifeflow_auth.kernel.identity.password import verify_password
from lifeflow_auth.kernel.models.user import UserRole
from lifeflow_auth.kernel.sessions.session_store import SessionStore
from lifeflow_auth.schemas.auth import UserResponse

from tests.conftest import CLIENT_IP, DESKTOP_AGENT, PHONE_AGENT, create_user


class TestLogin:

    async def test_login_opens_one_session(self, make_auth_service, verified_user, session_store, jwt_manager):
        auth = make_auth_service()

        tokens = await auth.login("a@b.com", "pw1")

        access = jwt_manager.decode_access(tokens.access_token)
        assert access.id == 7
        assert access.email == "a@b.com"
        assert access.role == "donor"

        refresh = jwt_manager.decode(tokens.refresh_token)
        assert refresh.role == REFRESH_TOKEN_ROLE
        assert refresh.exp - refresh.iat <= SHORT_REFRESH_LIFETIME

        sessions = await session_store.find_all_by_identity(7)
        assert len(sessions) == 1
        record = sessions[0]
        assert record.refresh_token == tokens.refresh_token
        assert record.is_valid is True
        assert record.user_agent == DESKTOP_AGENT
        assert record.ip_address == CLIENT_IP
        assert record.device_type == "desktop"

    async def test_stay_signed_gets_months_long_refresh(self, make_auth_service, verified_user, jwt_manager):
        tokens = await make_auth_service().login("a@b.com", "pw1", stay_signed=True)

        refresh = jwt_manager.decode(tokens.refresh_token)
        assert (refresh.exp - refresh.iat).days >= 180

    async def test_email_lookup_ignores_case(self, make_auth_service, verified_user):
        tokens = await make_auth_service().login("A@B.com", "pw1")
        assert tokens.refresh_token

    async def test_wrong_password_creates_no_session(self, make_auth_service, verified_user, session_store):
        with pytest.raises(AuthenticationFailed):
            await make_auth_service().login("a@b.com", "wrong")

        assert list(await session_store.find_all_by_identity(7)) == []

    async def test_unknown_email(self, make_auth_service):
        with pytest.raises(IdentityNotFound):
            await make_auth_service().login("ghost@example.com", "pw1")

    @pytest.mark.parametrize("password", ["pw1", "wrong"])
    async def test_unverified_user_is_rejected_first(self, make_auth_service, unverified_user, session_store, password):
        with pytest.raises(NotVerified):
            await make_auth_service().login("new@example.com", password)

        assert list(await session_store.find_all_by_identity(unverified_user.id)) == []

    async def test_missing_user_agent(self, make_auth_service, verified_user, session_store):
        with pytest.raises(MissingUserAgent):
            await make_auth_service(user_agent=None).login("a@b.com", "pw1")

        assert list(await session_store.find_all_by_identity(7)) == []

    async def test_phone_login_records_mobile_and_unknown_ip(self, make_auth_service, verified_user, session_store):
        await make_auth_service(user_agent=PHONE_AGENT, client_ip=None).login("a@b.com", "pw1")

        record = (await session_store.find_all_by_identity(7))[0]
        assert record.device_type == "mobile"
        assert record.ip_address == "Unknown IP"

    async def test_each_login_gets_its_own_session(self, make_auth_service, verified_user, session_store):
        auth = make_auth_service()
        first = await auth.login("a@b.com", "pw1")
        second = await auth.login("a@b.com", "pw1")

        assert first.refresh_token != second.refresh_token
        assert len(await session_store.find_all_by_identity(7)) == 2


class TestRefresh:

    async def test_refresh_keeps_refresh_token(self, make_auth_service, verified_user, jwt_manager):
        auth = make_auth_service()
        tokens = await auth.login("a@b.com", "pw1")

        refreshed = await auth.refresh(tokens.refresh_token)

        assert refreshed.refresh_token == tokens.refresh_token
        access = jwt_manager.decode_access(refreshed.access_token)
        assert access.id == 7
        assert access.role == "donor"

    async def test_device_mismatch_locks_session(self, make_auth_service, verified_user, session_store):
        tokens = await make_auth_service(user_agent=DESKTOP_AGENT).login("a@b.com", "pw1")

        with pytest.raises(AuthenticationFailed) as exc_info:
            await make_auth_service(user_agent=PHONE_AGENT).refresh(tokens.refresh_token)
        assert exc_info.value.message == DEVICE_ANOMALY_MESSAGE

        assert await session_store.is_valid(tokens.refresh_token) is False

        # the legitimate device is locked out too
        with pytest.raises(AuthenticationFailed) as exc_info:
            await make_auth_service(user_agent=DESKTOP_AGENT).refresh(tokens.refresh_token)
        assert exc_info.value.message == INVALID_SESSION_MESSAGE

    async def test_unknown_refresh_token(self, make_auth_service):
        with pytest.raises(AuthenticationFailed):
            await make_auth_service().refresh("not-a-session")

    async def test_refresh_after_logout(self, make_auth_service, verified_user):
        auth = make_auth_service()
        tokens = await auth.login("a@b.com", "pw1")
        await auth.logout(tokens.refresh_token)

        with pytest.raises(AuthenticationFailed):
            await auth.refresh(tokens.refresh_token)

    async def test_expired_refresh_token_in_valid_session(
        self, make_auth_service, verified_user, session_store, signing
    ):
        issued = datetime.now(timezone.utc) - SHORT_REFRESH_LIFETIME - timedelta(hours=1)
        stale_issuer = JWTManager(signing, clock=lambda: issued)
        tokens = await make_auth_service(tokens=stale_issuer).login("a@b.com", "pw1")

        with pytest.raises(AuthenticationFailed) as exc_info:
            await make_auth_service().refresh(tokens.refresh_token)
        assert exc_info.value.message == INVALID_SESSION_MESSAGE

        # the record itself is untouched; only the token has lapsed
        assert await session_store.is_valid(tokens.refresh_token) is True

    async def test_refresh_without_user_agent(self, make_auth_service, verified_user):
        tokens = await make_auth_service().login("a@b.com", "pw1")
        with pytest.raises(MissingUserAgent):
            await make_auth_service(user_agent=None).refresh(tokens.refresh_token)


class TestLogout:

    async def test_logout_invalidates(self, make_auth_service, verified_user, session_store):
        auth = make_auth_service()
        tokens = await auth.login("a@b.com", "pw1")

        await auth.logout(tokens.refresh_token)

        assert await session_store.is_valid(tokens.refresh_token) is False

    async def test_logout_twice(self, make_auth_service, verified_user, session_store):
        auth = make_auth_service()
        tokens = await auth.login("a@b.com", "pw1")
        await auth.logout(tokens.refresh_token)
        await auth.logout(tokens.refresh_token)

        assert await session_store.is_valid(tokens.refresh_token) is False

    async def test_logout_unknown_token(self, make_auth_service):
        with pytest.raises(SessionNotFound):
            await make_auth_service().logout("not-a-session")

    async def test_logout_leaves_other_sessions(self, make_auth_service, verified_user, session_store):
        auth = make_auth_service()
        first = await auth.login("a@b.com", "pw1")
        second = await auth.login("a@b.com", "pw1")

        await auth.logout(first.refresh_token)

        assert await session_store.is_valid(second.refresh_token) is True


class TestRegistration:

    async def test_register_creates_unverified_user_and_mails_code(
        self, make_auth_service, identity_store, email_sink, otp_service
    ):
        result = await make_auth_service().register(
            email="Donor@Example.com", password="s3cret", name="Dana Donor", phone_number="555-0100"
        )

        assert isinstance(result, UserResponse)
        assert result.email == "donor@example.com"
        assert result.is_verified is False
        assert result.role == "donor"
        assert "password" not in result.model_dump()
        assert "hash_key" not in result.model_dump()

        stored = await identity_store.get_by_id(result.id)
        assert verify_password("s3cret", stored.hash_key, stored.password)

        code = otp_service.current_code("donor@example.com")
        assert code in email_sink.last_to("donor@example.com").body

    async def test_register_duplicate_email(self, make_auth_service, verified_user):
        with pytest.raises(DuplicateIdentity):
            await make_auth_service().register(email="a@b.com", password="x", name="Again")

    async def test_register_hides_store_failures(self, make_auth_service):
        class BrokenStore:
            async def insert(self, user):
                raise RuntimeError("connection reset")

        with pytest.raises(RegistrationFailed) as exc_info:
            await make_auth_service(identities=BrokenStore()).register(
                email="x@example.com", password="x", name="X"
            )
        assert "connection reset" not in exc_info.value.message

    async def test_verify_otp(self, make_auth_service, identity_store, otp_service):
        auth = make_auth_service()
        user = await auth.register(email="new@example.com", password="pw", name="New")

        assert await auth.verify_otp(user.id, otp_service.current_code("new@example.com")) is True

        stored = await identity_store.get_by_id(user.id)
        assert stored.is_verified is True
        tokens = await auth.login("new@example.com", "pw")
        assert tokens.access_token

    async def test_verify_otp_wrong_code(self, make_auth_service, identity_store, otp_service):
        auth = make_auth_service()
        user = await auth.register(email="new@example.com", password="pw", name="New")
        good = otp_service.current_code("new@example.com")
        bad = "000000" if good != "000000" else "111111"

        assert await auth.verify_otp(user.id, bad) is False
        assert (await identity_store.get_by_id(user.id)).is_verified is False

    async def test_verify_otp_unknown_user(self, make_auth_service):
        with pytest.raises(IdentityNotFound):
            await make_auth_service().verify_otp(999, "123456")


class TestForgotPassword:

    async def test_temporary_password_replaces_old(
        self, make_auth_service, verified_user, email_sink, session_store
    ):
        auth = make_auth_service()
        existing = await auth.login("a@b.com", "pw1")

        await auth.forgot_password("a@b.com")

        mail = email_sink.last_to("a@b.com")
        temporary = re.search(r"Your new password is (\d+)\.", mail.body).group(1)

        with pytest.raises(AuthenticationFailed):
            await auth.login("a@b.com", "pw1")
        assert (await auth.login("a@b.com", temporary)).access_token

        # sessions are not touched
        assert await session_store.is_valid(existing.refresh_token) is True

    async def test_unknown_email(self, make_auth_service, email_sink):
        with pytest.raises(IdentityNotFound):
            await make_auth_service().forgot_password("ghost@example.com")
        assert email_sink.sent == []


class TestResetPassword:

    async def test_reset_signs_out_every_device(self, make_auth_service, verified_user, session_store):
        desktop = make_auth_service(user_agent=DESKTOP_AGENT)
        phone = make_auth_service(user_agent=PHONE_AGENT)
        old_desktop = await desktop.login("a@b.com", "pw1")
        old_phone = await phone.login("a@b.com", "pw1")

        tokens = await desktop.reset_password("a@b.com", "pw1", "pw2")

        assert await session_store.is_valid(old_desktop.refresh_token) is False
        assert await session_store.is_valid(old_phone.refresh_token) is False
        assert await session_store.is_valid(tokens.refresh_token) is True
        valid = [s for s in await session_store.find_all_by_identity(7) if s.is_valid]
        assert len(valid) == 1

        with pytest.raises(AuthenticationFailed):
            await desktop.refresh(old_desktop.refresh_token)
        assert (await desktop.refresh(tokens.refresh_token)).refresh_token == tokens.refresh_token

    async def test_reset_changes_password(self, make_auth_service, verified_user):
        auth = make_auth_service()
        await auth.reset_password("a@b.com", "pw1", "pw2")

        with pytest.raises(AuthenticationFailed):
            await auth.login("a@b.com", "pw1")
        assert (await auth.login("a@b.com", "pw2")).access_token

    async def test_reset_session_is_long_lived(self, make_auth_service, verified_user, jwt_manager):
        tokens = await make_auth_service().reset_password("a@b.com", "pw1", "pw2")
        refresh = jwt_manager.decode(tokens.refresh_token)
        assert (refresh.exp - refresh.iat).days >= 180

    async def test_wrong_old_password_leaves_sessions(self, make_auth_service, verified_user, session_store):
        auth = make_auth_service()
        existing = await auth.login("a@b.com", "pw1")

        with pytest.raises(AuthenticationFailed):
            await auth.reset_password("a@b.com", "nope", "pw2")

        assert await session_store.is_valid(existing.refresh_token) is True

    async def test_unknown_email(self, make_auth_service):
        with pytest.raises(IdentityNotFound):
            await make_auth_service().reset_password("ghost@example.com", "a", "b")

    async def test_downstream_failure_is_reset_failed(self, make_auth_service, verified_user, db_session):
        class FailingSessions(SessionStore):
            async def invalidate_all(self, user_id):
                raise RuntimeError("lock timeout")

        existing = await make_auth_service().login("a@b.com", "pw1")

        auth = make_auth_service(sessions=FailingSessions(db_session))
        with pytest.raises(ResetFailed):
            await auth.reset_password("a@b.com", "pw1", "pw2")

        # the password write is committed before the session steps
        login = make_auth_service()
        with pytest.raises(AuthenticationFailed):
            await login.login("a@b.com", "pw1")
        assert (await login.login("a@b.com", "pw2")).access_token
        assert await login.sessions.is_valid(existing.refresh_token) is True

    async def test_missing_user_agent_changes_nothing(self, make_auth_service, verified_user, session_store):
        existing = await make_auth_service().login("a@b.com", "pw1")

        with pytest.raises(MissingUserAgent):
            await make_auth_service(user_agent=None).reset_password("a@b.com", "pw1", "pw2")

        assert await session_store.is_valid(existing.refresh_token) is True
        assert len(await session_store.find_all_by_identity(7)) == 1
        auth = make_auth_service()
        assert (await auth.login("a@b.com", "pw1")).access_token
        with pytest.raises(AuthenticationFailed):
            await auth.login("a@b.com", "pw2")


class TestAdminRole:

    async def test_admin_access_token_carries_role(self, make_auth_service, identity_store, jwt_manager):
        await create_user(identity_store, email="root@example.com", password="pw", role=UserRole.ADMIN)
        tokens = await make_auth_service().login("root@example.com", "pw")
        assert jwt_manager.decode_access(tokens.access_token).role == "admin"
