"""Picks the bearer token a request carries.

Browsers may hold both a member and an administrator cookie at once, plus
the older generic ``token`` cookie; API clients send an Authorization
header instead. A role hint decides which cookie wins.
"""

from collections.abc import Mapping

from starlette.requests import HTTPConnection

from campusconnect.core.modules.session.models import PrincipalKind

ROLE_HEADER = "x-portal-role"
GENERIC_COOKIE = "token"
ROLE_COOKIES: Mapping[PrincipalKind, str] = {
    PrincipalKind.MEMBER: "user_token",
    PrincipalKind.ADMINISTRATOR: "admin_token",
}


class RequestTokenResolver:
    def __init__(
        self,
        role_cookies: Mapping[PrincipalKind, str] = ROLE_COOKIES,
        generic_cookie: str = GENERIC_COOKIE,
        role_header: str = ROLE_HEADER,
    ) -> None:
        self.role_cookies = role_cookies
        self.generic_cookie = generic_cookie
        self.role_header = role_header

    def role_hint(self, request: HTTPConnection) -> PrincipalKind | None:
        return PrincipalKind.parse(request.headers.get(self.role_header))

    def candidates(self, request: HTTPConnection, role_hint: PrincipalKind | None = None) -> list[str]:
        """Ordered, de-duplicated token candidates for the request."""
        hint = role_hint or self.role_hint(request)
        cookies = request.cookies

        if hint is not None:
            raw = [cookies.get(self.role_cookies[hint]), cookies.get(self.generic_cookie)]
        else:
            raw = [cookies.get(self.role_cookies[kind]) for kind in PrincipalKind]
            raw += [cookies.get(self.generic_cookie), self.bearer(request)]

        candidates: list[str] = []
        for value in raw:
            token = (value or "").strip()
            if token and token not in candidates:
                candidates.append(token)
        return candidates

    def resolve(self, request: HTTPConnection, role_hint: PrincipalKind | None = None) -> str | None:
        candidates = self.candidates(request, role_hint)
        return candidates[0] if candidates else None

    @staticmethod
    def bearer(request: HTTPConnection) -> str | None:
        """Credentials of an ``Authorization: Bearer`` header, if any."""
        scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
        if scheme.lower() != "bearer":
            return None
        return credentials.strip() or None
