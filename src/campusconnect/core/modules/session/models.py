"""Session layer value types."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import NewType
from uuid import UUID

BearerToken = NewType("BearerToken", str)


class PrincipalKind(StrEnum):
    """The two roles a credential can belong to. Kinds are never mixed."""

    MEMBER = "member"
    ADMINISTRATOR = "administrator"

    @classmethod
    def parse(cls, value: str | None) -> "PrincipalKind | None":
        """Map a loose role name (``user``, ``admin``, ...) to a kind, or None."""
        if not value:
            return None
        match value.strip().lower():
            case "member" | "user":
                return cls.MEMBER
            case "administrator" | "admin":
                return cls.ADMINISTRATOR
            case _:
                return None


class SignInPolicy(StrEnum):
    """What sign-in does when the account already holds an unexpired session."""

    SUPERSEDE = "supersede"
    REJECT_IF_ACTIVE = "reject_if_active"


@dataclass(frozen=True, slots=True)
class SessionRecord:
    """The single session slot stored on an account."""

    session_id: str
    expires_at: datetime | None

    def is_expired(self, at: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < at


@dataclass(frozen=True, slots=True)
class Identity:
    """Verified caller handed to request handlers."""

    kind: PrincipalKind
    account_id: UUID
    session_id: str


@dataclass(frozen=True, slots=True)
class DecodedToken:
    kind: PrincipalKind
    account_id: UUID
    session_id: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class CacheEntry:
    kind: PrincipalKind
    account_id: UUID
    session_id: str
    session_expires_at: datetime | None
    cache_expires_at: datetime

    def is_stale(self, at: datetime) -> bool:
        if self.cache_expires_at <= at:
            return True
        return self.session_expires_at is not None and self.session_expires_at <= at

    def to_identity(self) -> Identity:
        return Identity(kind=self.kind, account_id=self.account_id, session_id=self.session_id)


@dataclass(frozen=True, slots=True)
class SignInResult:
    token: BearerToken
    session_id: str
    expires_at: datetime
    superseded: bool
