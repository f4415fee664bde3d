"""Session cookie attributes shared by sign-in and sign-out."""

from typing import Literal

from fastapi import Response

from campusconnect.config import Config
from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.web.tokens import GENERIC_COOKIE, ROLE_COOKIES


def use_secure_cookies(config: Config) -> bool:
    """Explicit setting wins; otherwise production or any https frontend origin."""
    if config.cookie_secure is not None:
        return config.cookie_secure
    if config.environment == "production":
        return True
    origins = [config.frontend_url, *config.cors_origins]
    return any(origin.lower().startswith("https://") for origin in origins)


def _same_site(secure: bool) -> Literal["none", "lax"]:
    # Cross-site frontends need SameSite=None, which browsers only honour on secure cookies
    return "none" if secure else "lax"


def set_session_cookie(response: Response, kind: PrincipalKind, token: str, config: Config) -> None:
    secure = use_secure_cookies(config)
    # The generic cookie predates role cookies; drop it so it cannot shadow the new session
    response.delete_cookie(GENERIC_COOKIE, path="/", secure=secure, httponly=True, samesite=_same_site(secure))
    response.set_cookie(
        key=ROLE_COOKIES[kind],
        value=token,
        max_age=int(config.session_ttl.total_seconds()),
        path="/",
        httponly=True,
        secure=secure,
        samesite=_same_site(secure),
    )


def clear_session_cookies(response: Response, config: Config, kind: PrincipalKind | None = None) -> None:
    """Clear one role cookie, or every session cookie when ``kind`` is None."""
    secure = use_secure_cookies(config)
    names = [ROLE_COOKIES[kind]] if kind is not None else list(ROLE_COOKIES.values())
    for name in [*names, GENERIC_COOKIE]:
        response.delete_cookie(name, path="/", secure=secure, httponly=True, samesite=_same_site(secure))
