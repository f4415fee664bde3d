from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from campusconnect.config import Config
from campusconnect.core.core import Core
from campusconnect.core.modules.account.models import AccountView
from campusconnect.core.modules.account.store import AccountStores
from campusconnect.core.modules.realtime.hub import RealtimeConnection
from campusconnect.core.modules.realtime.models import BridgeToken
from campusconnect.core.modules.session.models import Identity, PrincipalKind, SignInPolicy, SignInResult
from campusconnect.errors import AuthErrorKind, SessionError, ValidationError
from campusconnect.utils import now

MAX_MESSAGE_LENGTH = 2000


class App:
    """Facade for all application operations, checks the caller's session before delegating to Core."""

    def __init__(
        self, config: Config, stores: AccountStores | None = None, clock: Callable[[], datetime] = now
    ) -> None:
        self._core = Core(config, stores, clock)
        self._clock = clock

    @property
    def config(self) -> Config:
        return self._core.config

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # === Sessions ===
    async def authenticate(self, token: str | None, expected_kind: PrincipalKind | None = None) -> Identity:
        """Verify a bearer token, optionally requiring a principal kind."""
        return await self._core.services.session.verify(token, expected_kind)

    async def sign_up(
        self,
        kind: PrincipalKind,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        admin_code: str | None = None,
        student_id: str | None = None,
    ) -> AccountView:
        """Register a new member or administrator account."""
        account = await self._core.services.account.create_account(
            kind, email, password, first_name, last_name, admin_code, student_id
        )
        return AccountView.from_domain(account, kind)

    async def sign_in(
        self,
        kind: PrincipalKind,
        email: str,
        password: str,
        policy: SignInPolicy = SignInPolicy.SUPERSEDE,
        student_id: str | None = None,
    ) -> SignInResult:
        """Check credentials and start the account's only session."""
        account = await self._core.services.account.authenticate(kind, email, password, student_id)
        return await self._core.services.session.sign_in(kind, account.id, policy)

    async def sign_out(self, token: str | None, role_hint: PrincipalKind | None = None) -> bool:
        """End the session behind ``token`` if it is still the active one."""
        match await self._core.services.session.try_verify(token, role_hint):
            case Identity(kind=kind, account_id=account_id, session_id=session_id):
                return await self._core.services.session.sign_out(kind, account_id, session_id)
            case SessionError():
                return False

    async def get_current_account(self, identity: Identity) -> AccountView:
        """Get the profile of the authenticated account."""
        account = await self._core.services.account.get_account(identity.kind, identity.account_id)
        return AccountView.from_domain(account, identity.kind)

    # === Realtime ===
    async def issue_realtime_token(self, identity: Identity) -> BridgeToken:
        """Hand a member a bridge token for the realtime handshake."""
        if identity.kind is not PrincipalKind.MEMBER:
            raise SessionError(AuthErrorKind.ACCESS_DENIED)
        profile = await self._core.services.account.get_profile(identity.kind, identity.account_id)
        return self._core.services.realtime.issue(identity.account_id, identity.session_id, profile)

    async def open_realtime_connection(
        self, bridge_token: str | None, send: Callable[[dict[str, Any]], Awaitable[None]]
    ) -> RealtimeConnection:
        """Redeem a bridge token and register the resulting connection."""
        claims = await self._core.services.realtime.redeem(bridge_token)
        return RealtimeConnection(claims, send)

    def subscribe(self, connection: RealtimeConnection, channel: str) -> None:
        self._core.services.hub.join(channel, connection)

    def unsubscribe(self, connection: RealtimeConnection, channel: str) -> None:
        self._core.services.hub.leave(channel, connection)

    def close_realtime_connection(self, connection: RealtimeConnection) -> None:
        self._core.services.hub.disconnect(connection)

    async def publish(self, connection: RealtimeConnection, channel: str, content: str, temp_id: str | None = None) -> int:
        """Broadcast a chat message to a channel the connection has joined."""
        text = content.strip()
        if not text or len(text) > MAX_MESSAGE_LENGTH:
            raise ValidationError("Message content required.")
        if not self._core.services.hub.is_member(channel, connection):
            raise ValidationError("Join the channel to chat.")
        payload = {
            "event": "message",
            "channel": channel,
            "content": text,
            "created_at": self._clock().isoformat(),
            "sender": connection.sender_payload(),
            "temp_id": temp_id,
        }
        return await self._core.services.hub.broadcast(channel, payload)
