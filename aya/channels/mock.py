"""Mock channel for tests.

Extends BaseChannel to provide programmatic message injection and response
capture. Injected payloads go through the same parsing path as the real
agentcoin transport (``handle_channel_payload`` / ``handle_user_event``), so
the runtime processes mock messages identically to real ones.

Usage:
    mock = MockChannel(identity)
    runtime = AgentRuntime(config, transport=mock, generator=gen)
    runtime.attach(mock)
    await mock.inject_message("gm", sender="0xabc...")
    reply = await mock.wait_for_response(timeout=5.0)
"""

from __future__ import annotations

import asyncio
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from aya.channels.base import BaseChannel
from aya.chat.channel import Channel, CoinChannel, DMChannel, channel_to_wire
from aya.chat.identity import Identity, coerce_identity
from aya.chat.models import ChatStatus, Message

DEFAULT_COIN = CoinChannel(chain_id=8453, address=Identity.address("0x" + "c0" * 20))


class MockChannel(BaseChannel):
    """Programmatic channel and transport for tests.

    Sent messages are echoed back as stored ``Message`` objects with
    increasing ids, like the server would. Status signals are recorded in
    order as ``(channel, status)`` pairs.
    """

    name = "mock"

    def __init__(self, identity: Identity, *, default_channel: Channel = DEFAULT_COIN):
        super().__init__(identity)
        self.default_channel = default_channel
        self.sent: list[Message] = []
        self.statuses: list[tuple[Channel, ChatStatus]] = []
        self.send_error: Exception | None = None  # raised by the next send, then cleared
        self._ids = itertools.count(1000)
        self._response_event = asyncio.Event()

    # ── Lifecycle ─────────────────────────────────────────

    async def start(self) -> None:
        self._running = True
        logger.debug("MockChannel started")

    async def stop(self) -> None:
        self._running = False
        logger.debug("MockChannel stopped")

    # ── Transport ─────────────────────────────────────────

    async def send_message(self, channel: Channel, text: str, sender: Identity) -> Message:
        if self.send_error is not None:
            error, self.send_error = self.send_error, None
            raise error
        message = Message(
            id=next(self._ids),
            client_uuid=str(uuid.uuid4()),
            channel=channel,
            sender=sender,
            text=text,
            created_at=datetime.now(timezone.utc),
        )
        self.sent.append(message)
        self._response_event.set()
        return message

    async def send_status(self, channel: Channel, status: ChatStatus) -> None:
        self.statuses.append((channel, status))

    # ── Message injection ─────────────────────────────────

    def make_payload(
        self,
        text: str,
        sender: Identity | str,
        channel: Channel | None = None,
        *,
        message_id: int | None = None,
        username: str | None = None,
    ) -> list[dict[str, Any]]:
        """Build a raw hydrated-message array as the API would deliver it."""
        sender = coerce_identity(sender)
        channel = channel or self.default_channel
        return [{
            "message": {
                "id": message_id if message_id is not None else next(self._ids),
                "clientUuid": str(uuid.uuid4()),
                "channel": channel_to_wire(channel),
                "sender": sender.value,
                "text": text,
                "createdAt": datetime.now(timezone.utc).isoformat(),
            },
            "user": {
                "identity": sender.value,
                "username": username or sender.value[:10],
            },
        }]

    async def inject_message(
        self,
        text: str,
        sender: Identity | str,
        channel: Channel | None = None,
        **kwargs: Any,
    ) -> Any:
        """Deliver a message on a channel topic (e.g. a coin room)."""
        channel = channel or self.default_channel
        payload = self.make_payload(text, sender, channel, **kwargs)
        return await self.handle_channel_payload(channel, payload)

    async def inject_dm(self, text: str, sender: Identity | str, **kwargs: Any) -> Any:
        """Deliver a DM from ``sender`` on the agent's user topic."""
        channel = DMChannel(coerce_identity(sender), self.identity)
        event = {
            "kind": "message",
            "channel": channel_to_wire(channel),
            "data": self.make_payload(text, sender, channel, **kwargs),
        }
        return await self.handle_user_event(event)

    # ── Response capture ──────────────────────────────────

    async def wait_for_response(self, timeout: float = 30.0) -> Message | None:
        """Wait for the next outbound message, or None on timeout."""
        start_count = len(self.sent)
        self._response_event.clear()
        try:
            await asyncio.wait_for(self._response_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        if len(self.sent) > start_count:
            return self.sent[start_count]
        return None

    def status_values(self) -> list[ChatStatus]:
        return [s for _, s in self.statuses]

    def clear(self) -> None:
        self.sent.clear()
        self.statuses.clear()
        self._response_event.clear()
