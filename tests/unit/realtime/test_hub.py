"""Tests for the realtime channel hub."""

from uuid import uuid4

import pytest

from campusconnect.core.modules.account.models import ProfileSnapshot
from campusconnect.core.modules.realtime.hub import ChannelHub, RealtimeConnection
from campusconnect.core.modules.realtime.models import BridgeClaims
from campusconnect.errors import ValidationError


class RecordingSocket:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail

    async def send(self, payload: dict) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(payload)


def make_connection(socket: RecordingSocket, first_name: str = "Amara") -> RealtimeConnection:
    claims = BridgeClaims(
        account_id=uuid4(),
        session_id="session-1",
        profile=ProfileSnapshot(first_name=first_name, last_name="Okafor"),
    )
    return RealtimeConnection(claims, socket.send)


class TestChannelHub:
    """Tests for ChannelHub."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.hub = ChannelHub()

    async def test_broadcast_reaches_subscribers_only(self):
        inside, outside = RecordingSocket(), RecordingSocket()
        self.hub.join("course:cs101", make_connection(inside))
        self.hub.join("course:ma201", make_connection(outside))

        delivered = await self.hub.broadcast("course:cs101", {"event": "message"})
        assert delivered == 1
        assert inside.sent == [{"event": "message"}]
        assert outside.sent == []

    async def test_failed_send_drops_connection(self):
        healthy, broken = RecordingSocket(), RecordingSocket(fail=True)
        broken_connection = make_connection(broken)
        self.hub.join("general", make_connection(healthy))
        self.hub.join("general", broken_connection)

        assert await self.hub.broadcast("general", {"event": "message"}) == 1
        assert not self.hub.is_member("general", broken_connection)
        assert self.hub.channel_size("general") == 1

    @pytest.mark.parametrize("channel", ["", "General", "has space", "x" * 65])
    def test_invalid_channel_name(self, channel):
        with pytest.raises(ValidationError):
            self.hub.join(channel, make_connection(RecordingSocket()))

    def test_leave_removes_empty_channel(self):
        connection = make_connection(RecordingSocket())
        self.hub.join("general", connection)
        self.hub.leave("general", connection)
        assert self.hub.channel_size("general") == 0
        # Leaving again is harmless
        self.hub.leave("general", connection)

    def test_disconnect_leaves_every_channel(self):
        connection = make_connection(RecordingSocket())
        self.hub.join("general", connection)
        self.hub.join("course:cs101", connection)
        self.hub.disconnect(connection)
        assert not self.hub.is_member("general", connection)
        assert not self.hub.is_member("course:cs101", connection)

    def test_sender_payload_carries_profile(self):
        connection = make_connection(RecordingSocket(), first_name="Kwame")
        payload = connection.sender_payload()
        assert payload["id"] == str(connection.claims.account_id)
        assert payload["first_name"] == "Kwame"
        assert payload["avatar_url"] is None
