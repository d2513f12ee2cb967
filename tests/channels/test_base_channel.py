"""Tests for BaseChannel inbound parsing and routing."""

from unittest.mock import AsyncMock

import pytest

from aya.channels.mock import MockChannel
from aya.chat.channel import DMChannel, channel_to_wire
from aya.chat.identity import Identity, decode_identity

AGENT = Identity.agent("aya")
USER = "0x" + "ab" * 20
OTHER = "0x" + "ef" * 20


def make_channel() -> tuple[MockChannel, AsyncMock]:
    handler = AsyncMock(return_value="handled")
    channel = MockChannel(AGENT)
    channel.set_handler(handler)
    return channel, handler


class TestChannelPayload:
    @pytest.mark.asyncio
    async def test_first_message_only(self):
        channel, handler = make_channel()
        payload = channel.make_payload("one", USER) + channel.make_payload("two", USER)
        assert await channel.handle_channel_payload(channel.default_channel, payload) == "handled"
        _, hydrated = handler.call_args.args
        assert hydrated.message.text == "one"

    @pytest.mark.asyncio
    async def test_single_object_accepted(self):
        channel, handler = make_channel()
        payload = channel.make_payload("solo", USER)[0]
        await channel.handle_channel_payload(channel.default_channel, payload)
        handler.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [[], None, "text", 42])
    async def test_empty_or_garbage_dropped(self, payload):
        channel, handler = make_channel()
        assert await channel.handle_channel_payload(channel.default_channel, payload) is None
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_message_dropped(self):
        channel, handler = make_channel()
        payload = channel.make_payload("x", USER)
        payload[0]["message"]["sender"] = "not-an-identity"
        assert await channel.handle_channel_payload(channel.default_channel, payload) is None
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handler_errors_swallowed(self):
        channel, handler = make_channel()
        handler.side_effect = RuntimeError("pipeline blew up")
        assert await channel.inject_message("x", USER) is None

    @pytest.mark.asyncio
    async def test_no_handler(self):
        channel = MockChannel(AGENT)
        assert await channel.inject_message("x", USER) is None


class TestUserTopic:
    def test_topic_name(self):
        channel, _ = make_channel()
        assert channel.user_topic == "user:agent-aya"

    @pytest.mark.asyncio
    async def test_dm_routed(self):
        channel, handler = make_channel()
        await channel.inject_dm("hey", USER)
        routed_channel, hydrated = handler.call_args.args
        assert isinstance(routed_channel, DMChannel)
        assert routed_channel.other(AGENT) == decode_identity(USER)
        assert hydrated.message.text == "hey"

    @pytest.mark.asyncio
    async def test_foreign_dm_dropped(self):
        channel, handler = make_channel()
        foreign = DMChannel(decode_identity(USER), decode_identity(OTHER))
        event = {
            "kind": "message",
            "channel": channel_to_wire(foreign),
            "data": channel.make_payload("not for you", USER, foreign),
        }
        assert await channel.handle_user_event(event) is None
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_coin_channel_on_user_topic_dropped(self):
        channel, handler = make_channel()
        event = {
            "kind": "message",
            "channel": channel_to_wire(channel.default_channel),
            "data": channel.make_payload("x", USER),
        }
        assert await channel.handle_user_event(event) is None
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_event_not_dispatched(self):
        channel, handler = make_channel()
        dm = DMChannel(AGENT, decode_identity(USER))
        event = {"kind": "status", "channel": channel_to_wire(dm), "data": {"status": "typing"}}
        assert await channel.handle_user_event(event) is None
        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_event_dropped(self):
        channel, handler = make_channel()
        assert await channel.handle_user_event({"kind": "message"}) is None
        handler.assert_not_awaited()
