from dataclasses import dataclass
from uuid import UUID

from pydantic import BaseModel, Field

from campusconnect.core.modules.account.models import ProfileSnapshot


class BridgeToken(BaseModel):
    """Short-lived credential for the realtime handshake."""

    token: str = Field(..., description="Signed bridge token")
    expires_in: int = Field(..., description="Seconds until the token expires")


@dataclass(frozen=True)
class BridgeClaims:
    """Identity re-derived from a redeemed bridge token."""

    account_id: UUID
    session_id: str
    profile: ProfileSnapshot
