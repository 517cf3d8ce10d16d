from __future__ import annotations

import asyncio
import json

import pytest

from models.sync_state import ConnectionState, VerificationStatusCache, VerificationUpdate
from services.status_sync import StatusSyncChannel


def _update(message_id: str, status: str) -> str:
    return json.dumps({"type": "verification_update", "messageId": message_id, "status": status})


def test_new_channel_is_disconnected(transport):
    channel = StatusSyncChannel(transport)
    assert channel.state is ConnectionState.DISCONNECTED
    assert channel.address is None
    asyncio.run(channel.close())
    assert channel.state is ConnectionState.DISCONNECTED


def test_subscribe_opens_and_announces_address(transport):
    async def scenario():
        channel = StatusSyncChannel(transport)
        state = await channel.subscribe("a@x.com")
        assert state is ConnectionState.OPEN
        (connection,) = transport.connections
        assert [json.loads(frame) for frame in connection.sent] == [{"type": "subscribe", "email": "a@x.com"}]
        await channel.close()
        assert connection.closed
        assert channel.state is ConnectionState.CLOSED

    asyncio.run(scenario())


def test_resubscribe_replaces_previous_connection(transport):
    async def scenario():
        channel = StatusSyncChannel(transport)
        await channel.subscribe("a@x.com")
        await channel.subscribe("b@x.com")
        first, second = transport.connections
        assert first.closed
        assert transport.open_connections == [second]
        assert channel.address == "b@x.com"
        assert channel.state is ConnectionState.OPEN
        assert json.loads(second.sent[0])["email"] == "b@x.com"
        await channel.close()

    asyncio.run(scenario())


def test_pushed_updates_are_merged_in_arrival_order(transport, settle):
    async def scenario():
        channel = StatusSyncChannel(transport)
        await channel.subscribe("a@x.com")
        connection = transport.connections[0]
        connection.push({"type": "verification_update", "messageId": "m1", "status": "confirmed"})
        connection.push({"type": "verification_update", "messageId": "m1", "status": "failed"})
        connection.push({"type": "verification_update", "messageId": "unknown", "status": "pending"})
        await settle()
        assert channel.statuses.snapshot() == {"m1": "failed", "unknown": "pending"}
        await channel.close()

    asyncio.run(scenario())


def test_synthetic_frames_can_be_drained_without_a_connection(transport):
    channel = StatusSyncChannel(transport, VerificationStatusCache({"m1": "pending"}))
    channel.feed(_update("m1", "confirmed"))
    channel.feed(_update("m1", "failed"))
    assert channel.drain() == 2
    assert channel.statuses.get("m1") == "failed"
    assert channel.drain() == 0


@pytest.mark.parametrize(
    "frame",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"type": "verification_update", "status": "confirmed"}),
        json.dumps({"type": "verification_update", "messageId": "m1"}),
        json.dumps({"type": "verification_update", "messageId": 7, "status": "confirmed"}),
        json.dumps({"type": "something_else", "messageId": "m1", "status": "confirmed"}),
    ],
)
def test_malformed_frames_are_dropped_and_connection_stays_open(transport, settle, frame):
    async def scenario():
        channel = StatusSyncChannel(transport, VerificationStatusCache({"m1": "pending"}))
        await channel.subscribe("a@x.com")
        transport.connections[0].frames.put_nowait(frame)
        await settle()
        assert channel.statuses.snapshot() == {"m1": "pending"}
        assert channel.state is ConnectionState.OPEN
        await channel.close()

    asyncio.run(scenario())


def test_bytes_frames_are_accepted():
    update = VerificationUpdate.from_frame(_update("m9", "clicked").encode("utf-8"))
    assert update == VerificationUpdate(message_id="m9", status="clicked")


def test_transport_drop_closes_without_retry(transport, settle):
    async def scenario():
        channel = StatusSyncChannel(transport)
        await channel.subscribe("a@x.com")
        connection = transport.connections[0]
        connection.frames.put_nowait(ConnectionResetError("reset by peer"))
        await settle()
        assert channel.state is ConnectionState.CLOSED
        assert connection.closed
        assert len(transport.connections) == 1

        await channel.subscribe("a@x.com")
        assert channel.state is ConnectionState.OPEN
        assert len(transport.open_connections) == 1
        await channel.close()

    asyncio.run(scenario())


def test_failed_connect_leaves_channel_closed(transport):
    async def scenario():
        transport.fail = True
        channel = StatusSyncChannel(transport)
        assert await channel.subscribe("a@x.com") is ConnectionState.CLOSED
        assert channel.address == "a@x.com"
        await channel.close()

    asyncio.run(scenario())
