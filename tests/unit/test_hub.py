"""
Unit Tests: WebSocket Hub

Tests for admission, greeting, rejection, inbound frames and delivery
against an in-memory socket.
"""

import asyncio
import json

import pytest

from tests.fakes import MIN_BALANCE_BASE_UNITS, FakeWebSocket
from ws.protocols import ResponseEvent


def frames(ws: FakeWebSocket):
    return [json.loads(text) for text in ws.sent]


class TestConnect:
    """Admission through the hub."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_admitted_connection_is_greeted_and_registered(self, hub, registry):
        ws = FakeWebSocket()

        connection = await hub.connect(ws, "alice-token")

        assert connection is not None
        assert await registry.resolve("did:privy:alice") == {connection.id}
        assert frames(ws) == [
            {"event": "response", "data": "👋 Connected to Nova Dova AI"},
            {"event": "balance", "data": str(MIN_BALANCE_BASE_UNITS + 5)},
        ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejected_connection_told_why_and_closed(self, hub, registry):
        ws = FakeWebSocket()

        connection = await hub.connect(ws, None)

        assert connection is None
        assert frames(ws) == [
            {"event": "error", "data": "Authentication failed: Missing auth token"},
        ]
        assert ws.closed_with == 4401
        assert registry.stats()["connections"] == 0
        assert hub.get_connection_count() == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_leaving_during_admission_leaves_no_trace(
        self, hub, registry, identity_provider
    ):
        identity_provider.verify_gate = asyncio.Event()
        ws = FakeWebSocket()

        task = asyncio.create_task(hub.connect(ws, "alice-token"))
        await asyncio.sleep(0.01)
        ws.feed_disconnect()
        connection = await task

        assert connection is None
        assert identity_provider.cancelled is True
        assert ws.sent == []
        assert registry.stats() == {"identities": 0, "connections": 0}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_frames_during_admission_are_buffered(self, hub, identity_provider):
        identity_provider.verify_gate = asyncio.Event()
        ws = FakeWebSocket()

        task = asyncio.create_task(hub.connect(ws, "alice-token"))
        await asyncio.sleep(0.01)
        ws.feed_text('{"event": "input", "data": "early"}')
        await asyncio.sleep(0.01)
        identity_provider.verify_gate.set()
        connection = await task

        assert connection.drain_pending() == ['{"event": "input", "data": "early"}']
        assert connection.pending == []


class TestInbound:
    """Client frames on an admitted connection."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_input_is_published_and_acked(self, hub, bus):
        ws = FakeWebSocket()
        connection = await hub.connect(ws, "alice-token")
        ws.sent.clear()

        await hub.handle_text(connection, '{"event": "input", "data": "hello"}')

        [ack] = frames(ws)
        assert ack["event"] == "ack"
        assert ack["data"] == 200
        payload = json.loads(bus.queues[f"chat:message:{ack['id']}"][0])
        assert payload["userId"] == "did:privy:alice"
        assert payload["message"] == "hello"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", [
        "garbage",
        '{"event": "input", "data": ""}',
        '{"event": "subscribe", "data": "x"}',
        '["input", "hello"]',
    ])
    async def test_malformed_frames_are_dropped(self, hub, bus, text):
        ws = FakeWebSocket()
        connection = await hub.connect(ws, "alice-token")
        ws.sent.clear()

        await hub.handle_text(connection, text)

        assert ws.sent == []
        assert bus.queues == {}
        assert hub.get_connection_count() == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_echo_mode(self, hub):
        hub.message_handler.echo_inputs = True
        ws = FakeWebSocket()
        connection = await hub.connect(ws, "alice-token")
        ws.sent.clear()

        await hub.handle_text(connection, '{"event": "input", "data": "ping"}')

        ack, echo = frames(ws)
        assert echo == {"event": "response", "data": "Received: ping", "id": ack["id"]}


class TestDelivery:
    """Outbound frames to registered connections."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deliver_skips_unknown_connections(self, hub):
        ws = FakeWebSocket()
        connection = await hub.connect(ws, "alice-token")
        ws.sent.clear()

        delivered = await hub.deliver([connection.id, "gone"], ResponseEvent(data="hi", id="m1"))

        assert delivered == 1
        assert frames(ws) == [{"event": "response", "data": "hi", "id": "m1"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_socket_does_not_block_others(self, hub):
        broken, healthy = FakeWebSocket(), FakeWebSocket()
        first = await hub.connect(broken, "alice-token")
        second = await hub.connect(healthy, "alice-token")
        broken.fail_sends = True
        healthy.sent.clear()

        delivered = await hub.deliver([first.id, second.id], ResponseEvent(data="hi"))

        assert delivered == 1
        assert frames(healthy) == [{"event": "response", "data": "hi"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fanout_timeout_counts_completed_sends(self, hub):
        stalled, healthy = FakeWebSocket(), FakeWebSocket()
        first = await hub.connect(stalled, "alice-token")
        second = await hub.connect(healthy, "alice-token")
        healthy.sent.clear()

        async def never_finishes(text):
            await asyncio.sleep(10)

        stalled.send_text = never_finishes
        hub.fanout_timeout = 0.05

        delivered = await hub.deliver([first.id, second.id], ResponseEvent(data="hi"))

        assert delivered == 1
        assert frames(healthy) == [{"event": "response", "data": "hi"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_disconnect_unregisters_and_is_idempotent(self, hub, registry):
        connection = await hub.connect(FakeWebSocket(), "alice-token")

        await hub.disconnect(connection)
        await hub.disconnect(connection)

        assert await registry.resolve("did:privy:alice") == frozenset()
        assert hub.get_connection_count() == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cleanup_all(self, hub, registry):
        await hub.connect(FakeWebSocket(), "alice-token")
        await hub.connect(FakeWebSocket(), "alice-token")

        await hub.cleanup_all()

        assert hub.get_connection_count() == 0
        assert registry.stats() == {"identities": 0, "connections": 0}
