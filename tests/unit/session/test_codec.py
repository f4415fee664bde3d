"""Tests for bearer token signing and decoding."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import jwt
import pytest

from campusconnect.core.modules.session.codec import ALGORITHM, TokenCodec
from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.errors import AuthErrorKind, SessionError

MEMBER_SECRET = "member-secret-for-tests"
ADMIN_SECRET = "admin-secret-for-tests"
ISSUED_AT = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.fixture
def codec():
    return TokenCodec(MEMBER_SECRET, ADMIN_SECRET)


class TestTokenCodec:
    """Tests for TokenCodec."""

    def test_decode_reports_kind_of_matching_secret(self, codec):
        """Test that the secret that verifies the token decides its kind."""
        account_id = uuid4()
        for kind in PrincipalKind:
            token = codec.sign(kind, account_id, "session-1", ISSUED_AT)
            decoded = codec.decode(token, ISSUED_AT + timedelta(minutes=1))
            assert decoded.kind is kind
            assert decoded.account_id == account_id
            assert decoded.session_id == "session-1"
            assert decoded.expires_at == ISSUED_AT + timedelta(days=7)

    def test_kind_claim_cannot_override_secret(self, codec):
        """Test that a member-signed token claiming to be an administrator stays a member."""
        payload = {"sub": str(uuid4()), "kind": "administrator", "sid": "s", "exp": ISSUED_AT + timedelta(hours=1)}
        token = jwt.encode(payload, MEMBER_SECRET, algorithm=ALGORITHM)
        assert codec.decode(token, ISSUED_AT).kind is PrincipalKind.MEMBER

    def test_expired_token_rejected(self, codec):
        """Test that expiry is checked against the supplied time."""
        token = codec.sign(PrincipalKind.MEMBER, uuid4(), "session-1", ISSUED_AT)
        with pytest.raises(SessionError) as exc_info:
            codec.decode(token, ISSUED_AT + timedelta(days=7))
        assert exc_info.value.kind is AuthErrorKind.INVALID_TOKEN

    def test_unknown_secret_rejected(self, codec):
        """Test that a token signed with neither secret is invalid."""
        payload = {"sub": str(uuid4()), "sid": "s", "exp": ISSUED_AT + timedelta(hours=1)}
        token = jwt.encode(payload, "some-other-secret", algorithm=ALGORITHM)
        with pytest.raises(SessionError) as exc_info:
            codec.decode(token, ISSUED_AT)
        assert exc_info.value.kind is AuthErrorKind.INVALID_TOKEN

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed_token_rejected(self, codec, token):
        """Test that garbage input is reported as an invalid token."""
        with pytest.raises(SessionError) as exc_info:
            codec.decode(token, ISSUED_AT)
        assert exc_info.value.kind is AuthErrorKind.INVALID_TOKEN

    def test_token_without_session_id_is_session_invalid(self, codec):
        """Test that tokens issued before session ids existed are refused."""
        payload = {"sub": str(uuid4()), "exp": ISSUED_AT + timedelta(hours=1)}
        token = jwt.encode(payload, ADMIN_SECRET, algorithm=ALGORITHM)
        with pytest.raises(SessionError) as exc_info:
            codec.decode(token, ISSUED_AT)
        assert exc_info.value.kind is AuthErrorKind.SESSION_INVALID
        assert exc_info.value.status_code == 403

    def test_non_uuid_subject_rejected(self, codec):
        """Test that a subject that is not an account id is invalid."""
        payload = {"sub": "alice", "sid": "s", "exp": ISSUED_AT + timedelta(hours=1)}
        token = jwt.encode(payload, MEMBER_SECRET, algorithm=ALGORITHM)
        with pytest.raises(SessionError) as exc_info:
            codec.decode(token, ISSUED_AT)
        assert exc_info.value.kind is AuthErrorKind.INVALID_TOKEN

    def test_identical_secrets_refused(self):
        """Test that both kinds cannot share a secret."""
        with pytest.raises(ValueError):
            TokenCodec("same", "same")
