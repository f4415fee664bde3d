import re
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import uuid4

import structlog

from campusconnect.core.core import Service
from campusconnect.core.modules.realtime.models import BridgeClaims
from campusconnect.errors import ValidationError

logger = structlog.get_logger(__name__)

CHANNEL_RE = re.compile(r"^[a-z0-9][a-z0-9:_-]{0,63}$")


class RealtimeConnection:
    """A live, authenticated realtime client."""

    def __init__(self, claims: BridgeClaims, send: Callable[[dict[str, Any]], Awaitable[None]]) -> None:
        self.id = uuid4().hex
        self.claims = claims
        self._send = send

    async def send(self, payload: dict[str, Any]) -> None:
        await self._send(payload)

    def sender_payload(self) -> dict[str, Any]:
        return {"id": str(self.claims.account_id), **self.claims.profile.model_dump()}


class ChannelHub(Service):
    """Fan-out of realtime messages to the connections subscribed to a channel."""

    def __init__(self) -> None:
        super().__init__()
        self._channels: dict[str, dict[str, RealtimeConnection]] = {}

    def join(self, channel: str, connection: RealtimeConnection) -> None:
        if not CHANNEL_RE.fullmatch(channel):
            raise ValidationError("Invalid channel.")
        self._channels.setdefault(channel, {})[connection.id] = connection

    def leave(self, channel: str, connection: RealtimeConnection) -> None:
        members = self._channels.get(channel)
        if members is None:
            return
        members.pop(connection.id, None)
        if not members:
            del self._channels[channel]

    def disconnect(self, connection: RealtimeConnection) -> None:
        for channel in [name for name, members in self._channels.items() if connection.id in members]:
            self.leave(channel, connection)

    def is_member(self, channel: str, connection: RealtimeConnection) -> bool:
        return connection.id in self._channels.get(channel, {})

    def channel_size(self, channel: str) -> int:
        return len(self._channels.get(channel, {}))

    async def broadcast(self, channel: str, payload: dict[str, Any]) -> int:
        """Send ``payload`` to every subscriber; returns how many received it."""
        delivered = 0
        for connection in list(self._channels.get(channel, {}).values()):
            try:
                await connection.send(payload)
            except Exception as exc:  # noqa: BLE001
                logger.warning("realtime_send_failed", channel=channel, connection_id=connection.id, error=str(exc))
                self.disconnect(connection)
            else:
                delivered += 1
        return delivered

    async def on_stop(self) -> None:
        """Forget all subscriptions on shutdown."""
        self._channels.clear()
