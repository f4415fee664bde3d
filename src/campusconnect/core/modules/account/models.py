from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from campusconnect.core.db import MongoModel
from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.utils import now


class Account(MongoModel):
    """Member or administrator account with credentials and its session slot."""

    email: str
    password_hash: str  # bcrypt hash
    first_name: str
    last_name: str
    avatar_url: str | None = None
    admin_code: str | None = None  # Registration code, administrators only
    student_id: str | None = None  # Allow-listed student ID, members only
    created_at: datetime = Field(default_factory=now)
    active_session_id: str | None = None  # None while signed out
    session_expires_at: datetime | None = None


class ProfileSnapshot(BaseModel):
    """Display profile copied into realtime bridge tokens."""

    first_name: str
    last_name: str
    avatar_url: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "ProfileSnapshot":
        return cls(first_name=account.first_name, last_name=account.last_name, avatar_url=account.avatar_url)


class AccountView(BaseModel):
    """Account information (API representation)."""

    id: UUID = Field(..., description="Account ID")
    kind: PrincipalKind = Field(..., description="Principal kind")
    email: str = Field(..., description="Email address")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    avatar_url: str | None = Field(None, description="Avatar image URL")

    @classmethod
    def from_domain(cls, account: Account, kind: PrincipalKind) -> "AccountView":
        """Create view model from domain model."""
        return cls(
            id=account.id,
            kind=kind,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            avatar_url=account.avatar_url,
        )
