"""Tests for the realtime auth bridge."""

from datetime import timedelta
from uuid import uuid4

import jwt
import pytest
from conftest import add_account

from campusconnect.core.modules.account.models import ProfileSnapshot
from campusconnect.core.modules.account.store import AccountStores, MemoryAccountStore
from campusconnect.core.modules.realtime.bridge import AUDIENCE, RealtimeAuthBridge
from campusconnect.core.modules.session.cache import VerificationCache
from campusconnect.core.modules.session.codec import ALGORITHM, TokenCodec
from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.core.modules.session.service import SessionManager
from campusconnect.errors import AuthErrorKind, SessionError

REALTIME_SECRET = "realtime-secret-for-tests"


@pytest.fixture
async def signed_in(sessions, member):
    return await sessions.sign_in(PrincipalKind.MEMBER, member.id)


@pytest.fixture
def profile(member):
    return ProfileSnapshot.from_account(member)


async def assert_redeem_fails(bridge, token, *kinds):
    with pytest.raises(SessionError) as exc_info:
        await bridge.redeem(token)
    assert exc_info.value.kind in kinds


class TestIssueAndRedeem:
    """Tests for RealtimeAuthBridge.issue and redeem."""

    async def test_redeem_returns_session_and_profile(self, bridge, member, signed_in, profile):
        issued = bridge.issue(member.id, signed_in.session_id, profile)
        assert issued.expires_in == 300

        claims = await bridge.redeem(issued.token)
        assert claims.account_id == member.id
        assert claims.session_id == signed_in.session_id
        assert claims.profile == ProfileSnapshot(first_name="Amara", last_name="Okafor", avatar_url=None)

    async def test_sign_out_between_issue_and_redeem(self, bridge, sessions, member, signed_in, profile):
        """Test that the session is re-checked at redeem time."""
        issued = bridge.issue(member.id, signed_in.session_id, profile)
        await sessions.sign_out(PrincipalKind.MEMBER, member.id, signed_in.session_id)
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.SESSION_EXPIRED)

    async def test_superseded_session(self, bridge, sessions, member, signed_in, profile):
        issued = bridge.issue(member.id, signed_in.session_id, profile)
        await sessions.sign_in(PrincipalKind.MEMBER, member.id)
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.SESSION_MISMATCH)

    async def test_single_use(self, bridge, member, signed_in, profile):
        issued = bridge.issue(member.id, signed_in.session_id, profile)
        await bridge.redeem(issued.token)
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.INVALID_TOKEN)

    async def test_expired(self, bridge, clock, member, signed_in, profile):
        issued = bridge.issue(member.id, signed_in.session_id, profile)
        clock.advance(seconds=300)
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.INVALID_TOKEN)

    @pytest.mark.parametrize("token", [None, ""])
    async def test_missing_token(self, bridge, token):
        await assert_redeem_fails(bridge, token, AuthErrorKind.UNAUTHENTICATED)

    async def test_missing_session_id(self, bridge, clock, member):
        payload = {"sub": str(member.id), "aud": AUDIENCE, "jti": "j1", "exp": clock() + timedelta(minutes=1)}
        token = jwt.encode(payload, REALTIME_SECRET, algorithm=ALGORITHM)
        await assert_redeem_fails(bridge, token, AuthErrorKind.SESSION_INVALID)

    async def test_wrong_audience(self, bridge, clock, member, signed_in):
        payload = {
            "sub": str(member.id),
            "sid": signed_in.session_id,
            "aud": "somewhere-else",
            "jti": "j1",
            "exp": clock() + timedelta(minutes=1),
        }
        token = jwt.encode(payload, REALTIME_SECRET, algorithm=ALGORITHM)
        await assert_redeem_fails(bridge, token, AuthErrorKind.INVALID_TOKEN)


class TestTokenSeparation:
    """Bearer tokens and bridge tokens are not interchangeable."""

    async def test_bearer_token_not_redeemable(self, bridge, signed_in):
        await assert_redeem_fails(bridge, signed_in.token, AuthErrorKind.INVALID_TOKEN)

    async def test_bridge_token_not_a_bearer_token(self, bridge, sessions, member, signed_in, profile):
        issued = bridge.issue(member.id, signed_in.session_id, profile)
        with pytest.raises(SessionError) as exc_info:
            await sessions.verify(issued.token)
        assert exc_info.value.kind is AuthErrorKind.INVALID_TOKEN

    async def test_admin_session_cannot_be_bridged(self, bridge, sessions, admin):
        """Test that redeem only accepts member sessions."""
        result = await sessions.sign_in(PrincipalKind.ADMINISTRATOR, admin.id)
        issued = bridge.issue(admin.id, result.session_id, ProfileSnapshot.from_account(admin))
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.SESSION_EXPIRED)

    async def test_unknown_account(self, bridge, profile):
        issued = bridge.issue(uuid4(), "session-1", profile)
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.SESSION_EXPIRED)


class FlakyStore(MemoryAccountStore):
    """Memory store whose session lookups fail while ``down`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.down = False

    async def find_session(self, account_id):
        if self.down:
            raise SessionError(AuthErrorKind.DEPENDENCY_FAILURE)
        return await super().find_session(account_id)


class TestStoreOutage:
    """A store failure during redeem does not use up the bridge token."""

    async def test_token_usable_after_dependency_failure(self, clock):
        members = FlakyStore()
        sessions = SessionManager(
            AccountStores(members=members, administrators=MemoryAccountStore()),
            TokenCodec("member-secret-for-tests", "admin-secret-for-tests"),
            VerificationCache(ttl=timedelta(seconds=5), clock=clock),
            session_ttl=timedelta(days=7),
            store_timeout=5.0,
            clock=clock,
        )
        bridge = RealtimeAuthBridge(sessions, REALTIME_SECRET, clock=clock)
        account = await add_account(members, "yaw@campus.edu")
        signed_in = await sessions.sign_in(PrincipalKind.MEMBER, account.id)
        issued = bridge.issue(account.id, signed_in.session_id, ProfileSnapshot.from_account(account))

        members.down = True
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.DEPENDENCY_FAILURE)

        members.down = False
        claims = await bridge.redeem(issued.token)
        assert claims.account_id == account.id
        await assert_redeem_fails(bridge, issued.token, AuthErrorKind.INVALID_TOKEN)
