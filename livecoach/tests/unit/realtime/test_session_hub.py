"""Tests for the SessionHub connection lifecycle."""

import asyncio

import pytest

from livecoach.exceptions import InvalidCredential, MissingCredential
from livecoach.tests.fixtures.fakes import FakeTransport


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_joins_personal_room_and_greets(self, hub, directory):
        transport = FakeTransport()

        connection = await hub.connect("token-alice", transport)

        assert directory.get_connection(connection.connection_id) is connection
        assert await directory.members_of("user:u-alice") == {connection.connection_id}
        greeting = transport.events("connected")[0]["data"]
        assert greeting == {"connectionId": connection.connection_id, "userId": "u-alice", "userName": "Alice"}

    @pytest.mark.asyncio
    async def test_refused_connection_creates_no_state(self, hub, directory):
        with pytest.raises(InvalidCredential):
            await hub.connect("forged", FakeTransport())
        with pytest.raises(MissingCredential):
            await hub.connect(None, FakeTransport())

        assert directory.connection_count() == 0
        assert directory.room_count() == 0

    @pytest.mark.asyncio
    async def test_invalid_then_valid_connection(self, hub, directory):
        with pytest.raises(InvalidCredential):
            await hub.connect("forged", FakeTransport())

        connection = await hub.connect("token-bob", FakeTransport())

        assert directory.connection_count() == 1
        assert connection.user_id == "u-bob"

    @pytest.mark.asyncio
    async def test_greeting_failure_rolls_back_registration(self, hub, directory):
        with pytest.raises(RuntimeError):
            await hub.connect("token-alice", FakeTransport(fail=True))

        assert directory.connection_count() == 0
        assert directory.room_count() == 0

    @pytest.mark.asyncio
    async def test_same_user_may_hold_several_connections(self, hub, directory):
        phone = await hub.connect("token-alice", FakeTransport())
        watch = await hub.connect("token-alice", FakeTransport())

        assert await directory.members_of("user:u-alice") == {phone.connection_id, watch.connection_id}


class TestFrames:
    @pytest.mark.asyncio
    async def test_invalid_frame_gets_error_and_connection_survives(self, hub):
        transport = FakeTransport()
        connection = await hub.connect("token-alice", transport)

        await hub.handle_frame(connection, "{not json")
        await hub.handle_frame(connection, '{"type": "teleport", "data": {}}')
        await hub.handle_frame(connection, '{"type": "ping", "data": {}}')

        errors = transport.events("error")
        assert len(errors) == 2
        assert all(e["data"]["error_type"] == "invalid_message" for e in errors)
        assert transport.event_types()[-1] == "pong"

    @pytest.mark.asyncio
    async def test_chat_scenario_between_two_connections(self, hub):
        a_transport, b_transport = FakeTransport(), FakeTransport()
        a = await hub.connect("token-alice", a_transport)
        b = await hub.connect("token-bob", b_transport)
        join = '{"type": "join-session-room", "data": {"sessionId": "s1"}}'
        await hub.handle_frame(a, join)
        await hub.handle_frame(b, join)

        await hub.handle_frame(
            a, '{"type": "chat-message", "data": {"sessionId": "s1", "body": "Good set!", "kind": "text"}}'
        )

        a_msg = a_transport.events("chat-message")[0]["data"]
        b_msg = b_transport.events("chat-message")[0]["data"]
        assert a_msg["id"] == b_msg["id"]
        assert b_msg["senderName"] == "Alice"

    @pytest.mark.asyncio
    async def test_senders_progress_independently(self, hub, users):
        slow_transport, fast_transport = FakeTransport(), FakeTransport()
        slow = await hub.connect("token-alice", slow_transport)
        fast = await hub.connect("token-bob", fast_transport)

        gate = asyncio.Event()
        original = users.resolve_post_owner

        async def blocked(post_id):
            await gate.wait()
            return await original(post_id)

        users.resolve_post_owner = blocked
        slow_task = asyncio.create_task(hub.handle_frame(slow, '{"type": "like-post", "data": {"postId": "post-1"}}'))
        await asyncio.sleep(0)

        await hub.handle_frame(fast, '{"type": "ping", "data": {}}')
        assert fast_transport.event_types()[-1] == "pong"
        assert not slow_task.done()

        gate.set()
        await slow_task
        assert fast_transport.events("post-liked")[0]["data"]["userId"] == "u-alice"


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_releases_everything(self, hub, directory):
        a = await hub.connect("token-alice", FakeTransport())
        b_transport = FakeTransport()
        b = await hub.connect("token-bob", b_transport)
        join = '{"type": "join-session-room", "data": {"sessionId": "s1"}}'
        await hub.handle_frame(a, join)
        await hub.handle_frame(b, join)

        await hub.disconnect(a)
        await hub.disconnect(a)

        assert directory.get_connection(a.connection_id) is None
        assert await directory.members_of("trainer-session:s1") == {b.connection_id}
        assert await directory.members_of("user:u-alice") == set()
        assert directory.connection_count() == 1

    def test_statistics(self, hub):
        stats = hub.statistics()
        assert stats["connections"] == 0
        assert stats["rooms"] == 0
        assert stats["users"] == 0
        assert stats["uptime_seconds"] >= 0

    @pytest.mark.asyncio
    async def test_statistics_logger_runs_until_cancelled(self, hub):
        task = asyncio.create_task(hub.run_statistics_logger(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
