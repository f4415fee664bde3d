"""Carries a verified HTTP session over to the realtime transport.

Bridge tokens are signed with their own secret and audience, so a bearer
token is never accepted here and a bridge token never passes HTTP
verification. Redeeming re-checks the session against the account store:
signing out between issue and redeem makes the bridge token useless.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import jwt
import structlog
from pydantic import ValidationError as PydanticValidationError

from campusconnect.core.core import Service
from campusconnect.core.modules.account.models import ProfileSnapshot
from campusconnect.core.modules.realtime.models import BridgeClaims, BridgeToken
from campusconnect.core.modules.session.codec import ALGORITHM
from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.core.modules.session.service import SessionManager
from campusconnect.errors import AuthErrorKind, SessionError
from campusconnect.utils import now

logger = structlog.get_logger(__name__)

AUDIENCE = "campusconnect:realtime"
BRIDGE_TOKEN_TTL = timedelta(minutes=5)

_DECODE_OPTIONS: dict[str, Any] = {"verify_exp": False, "verify_iat": False, "require": ["sub", "exp", "jti", "aud"]}


class RealtimeAuthBridge(Service):
    def __init__(
        self,
        sessions: SessionManager,
        secret: str,
        ttl: timedelta = BRIDGE_TOKEN_TTL,
        clock: Callable[[], datetime] = now,
    ) -> None:
        super().__init__()
        self._sessions = sessions
        self._secret = secret
        self._ttl = ttl
        self._clock = clock
        # jti -> token expiry; a bridge token opens at most one connection
        self._redeemed: dict[str, datetime] = {}

    def issue(self, account_id: UUID, session_id: str, profile: ProfileSnapshot) -> BridgeToken:
        issued_at = self._clock()
        payload = {
            "sub": str(account_id),
            "sid": session_id,
            "profile": profile.model_dump(),
            "aud": AUDIENCE,
            "jti": uuid4().hex,
            "iat": issued_at,
            "exp": issued_at + self._ttl,
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return BridgeToken(token=token, expires_in=int(self._ttl.total_seconds()))

    async def redeem(self, token: str | None) -> BridgeClaims:
        """Validate a bridge token and the session behind it; single use."""
        if not token:
            raise SessionError(AuthErrorKind.UNAUTHENTICATED)

        at = self._clock()
        try:
            claims = jwt.decode(token, self._secret, algorithms=[ALGORITHM], audience=AUDIENCE, options=_DECODE_OPTIONS)
        except jwt.InvalidTokenError as exc:
            raise SessionError(AuthErrorKind.INVALID_TOKEN) from exc

        expires_at, account_id, session_id, profile = self._parse_claims(claims, at)

        self._forget_expired(at)
        jti = str(claims["jti"])
        if jti in self._redeemed:
            logger.info("bridge_token_replayed", account_id=account_id)
            raise SessionError(AuthErrorKind.INVALID_TOKEN)
        # Reserve before the store round-trip so concurrent handshakes cannot share it
        self._redeemed[jti] = expires_at

        try:
            await self._sessions.check_session(PrincipalKind.MEMBER, account_id, session_id, at)
        except SessionError as exc:
            if exc.kind is AuthErrorKind.DEPENDENCY_FAILURE:
                # The session was never checked; let the client retry with the same token
                self._redeemed.pop(jti, None)
            raise
        return BridgeClaims(account_id=account_id, session_id=session_id, profile=profile)

    @staticmethod
    def _parse_claims(claims: dict[str, Any], at: datetime) -> tuple[datetime, UUID, str, ProfileSnapshot]:
        exp = claims["exp"]
        if not isinstance(exp, int | float) or datetime.fromtimestamp(exp, UTC) <= at:
            raise SessionError(AuthErrorKind.INVALID_TOKEN)

        session_id = claims.get("sid")
        if not session_id or not isinstance(session_id, str):
            raise SessionError(AuthErrorKind.SESSION_INVALID)

        try:
            account_id = UUID(str(claims["sub"]))
            profile = ProfileSnapshot.model_validate(claims.get("profile") or {})
        except (ValueError, PydanticValidationError) as exc:
            raise SessionError(AuthErrorKind.INVALID_TOKEN) from exc

        return datetime.fromtimestamp(exp, UTC), account_id, session_id, profile

    def _forget_expired(self, at: datetime) -> None:
        expired = [jti for jti, expires_at in self._redeemed.items() if expires_at <= at]
        for jti in expired:
            del self._redeemed[jti]
