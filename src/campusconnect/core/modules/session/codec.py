"""Bearer token signing and verification.

Each principal kind signs with its own secret. Decoding tries the member
secret first, then the administrator secret, and reports whichever matched.
"""

from datetime import UTC, datetime, timedelta
from typing import Any, assert_never
from uuid import UUID

import jwt

from campusconnect.core.modules.session.models import BearerToken, DecodedToken, PrincipalKind
from campusconnect.errors import AuthErrorKind, SessionError

ALGORITHM = "HS256"
TOKEN_TTL = timedelta(days=7)

# Expiry is checked against the caller's clock reading, not PyJWT's own
_DECODE_OPTIONS: dict[str, Any] = {"verify_exp": False, "verify_iat": False, "require": ["sub", "exp"]}


class TokenCodec:
    def __init__(self, member_secret: str, admin_secret: str, ttl: timedelta = TOKEN_TTL) -> None:
        if member_secret == admin_secret:
            raise ValueError("member and administrator secrets must differ")
        self._member_secret = member_secret
        self._admin_secret = admin_secret
        self.ttl = ttl

    def _secret_for(self, kind: PrincipalKind) -> str:
        match kind:
            case PrincipalKind.MEMBER:
                return self._member_secret
            case PrincipalKind.ADMINISTRATOR:
                return self._admin_secret
            case _:
                assert_never(kind)

    def sign(self, kind: PrincipalKind, account_id: UUID, session_id: str, issued_at: datetime) -> BearerToken:
        payload = {
            "sub": str(account_id),
            "kind": kind.value,
            "sid": session_id,
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return BearerToken(jwt.encode(payload, self._secret_for(kind), algorithm=ALGORITHM))

    def decode(self, token: str, at: datetime) -> DecodedToken:
        """Verify ``token`` against both secrets and return its claims.

        Raises:
            SessionError: INVALID_TOKEN if no secret verifies it, it has expired
                or its claims are malformed; SESSION_INVALID if it predates
                session ids and carries no ``sid``.
        """
        for kind in (PrincipalKind.MEMBER, PrincipalKind.ADMINISTRATOR):
            try:
                claims = jwt.decode(token, self._secret_for(kind), algorithms=[ALGORITHM], options=_DECODE_OPTIONS)
            except jwt.InvalidSignatureError:
                continue
            except jwt.InvalidTokenError as exc:
                raise SessionError(AuthErrorKind.INVALID_TOKEN) from exc
            return self._to_decoded(kind, claims, at)
        raise SessionError(AuthErrorKind.INVALID_TOKEN)

    @staticmethod
    def _to_decoded(kind: PrincipalKind, claims: dict[str, Any], at: datetime) -> DecodedToken:
        exp = claims["exp"]
        if not isinstance(exp, int | float):
            raise SessionError(AuthErrorKind.INVALID_TOKEN)
        expires_at = datetime.fromtimestamp(exp, UTC)
        if expires_at <= at:
            raise SessionError(AuthErrorKind.INVALID_TOKEN)

        try:
            account_id = UUID(str(claims["sub"]))
        except ValueError as exc:
            raise SessionError(AuthErrorKind.INVALID_TOKEN) from exc

        session_id = claims.get("sid")
        if not session_id or not isinstance(session_id, str):
            raise SessionError(AuthErrorKind.SESSION_INVALID)

        return DecodedToken(kind=kind, account_id=account_id, session_id=session_id, expires_at=expires_at)
