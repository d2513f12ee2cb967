"""Base channel: inbound event parsing shared by all chat transports.

A channel does two things:

    - outbound: ``send_message`` / ``send_status`` (the ``Transport`` seam
      the pipeline talks to)
    - inbound: turn raw socket payloads into ``HydratedMessage`` objects and
      hand them to the runtime

Inbound payloads are arrays of hydrated messages; only the first element is
processed. Malformed or empty payloads are logged and dropped here and never
reach the pipeline or propagate back into the transport.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable

import pydantic
from loguru import logger

from aya.chat.channel import Channel, DMChannel, encode_channel
from aya.chat.identity import Identity
from aya.chat.models import ChatStatus, HydratedMessage, Message, MessageEvent

InboundHandler = Callable[[Channel, HydratedMessage], Awaitable[Any]]


@runtime_checkable
class Transport(Protocol):
    async def send_message(self, channel: Channel, text: str, sender: Identity) -> Message:
        """Send ``text`` and return the message as stored by the server."""
        ...

    async def send_status(self, channel: Channel, status: ChatStatus) -> None:
        ...


class BaseChannel(ABC):
    """Abstract chat channel.

    Subclasses implement the transport; the runtime installs itself as the
    inbound handler via ``set_handler``.
    """

    name: str = "base"

    def __init__(self, identity: Identity, handler: InboundHandler | None = None):
        self.identity = identity
        self._handler = handler
        self._running = False

    def set_handler(self, handler: InboundHandler) -> None:
        self._handler = handler

    @property
    def is_running(self) -> bool:
        return self._running

    # ── Lifecycle / outbound ─────────────────────────────────

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def send_message(self, channel: Channel, text: str, sender: Identity) -> Message:
        ...

    @abstractmethod
    async def send_status(self, channel: Channel, status: ChatStatus) -> None:
        ...

    # ── Inbound ──────────────────────────────────────────────

    @property
    def user_topic(self) -> str:
        """Topic carrying DMs and status events for this agent."""
        return f"user:{self.identity.value}"

    def topic_for(self, channel: Channel) -> str:
        return encode_channel(channel)

    async def handle_channel_payload(self, channel: Channel, data: Any) -> Any:
        """Entry point for events on a channel topic (e.g. a coin room)."""
        hydrated = self._parse_first_message(data)
        if hydrated is None:
            return None
        return await self._dispatch(channel, hydrated)

    async def handle_user_event(self, data: Any) -> Any:
        """Entry point for events on the agent's ``user:{identity}`` topic."""
        try:
            event = MessageEvent.model_validate(data)
        except pydantic.ValidationError as e:
            logger.warning(f"{self.name}: dropping malformed user event: {e.error_count()} error(s)")
            return None

        channel = event.channel
        if not isinstance(channel, DMChannel):
            logger.info(f"{self.name}: user event for non-DM channel {channel}, ignoring")
            return None
        if not channel.includes(self.identity):
            logger.info(f"{self.name}: user event for foreign channel {channel}, ignoring")
            return None

        if event.kind == "status":
            status = event.data.get("status") if isinstance(event.data, dict) else event.data
            logger.debug(f"{self.name}: {channel.other(self.identity)} is {status}")
            return None

        hydrated = self._parse_first_message(event.data)
        if hydrated is None:
            return None
        return await self._dispatch(channel, hydrated)

    def _parse_first_message(self, data: Any) -> HydratedMessage | None:
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list) or not data:
            logger.info(f"{self.name}: received empty payload, dropping")
            return None
        try:
            hydrated = HydratedMessage.model_validate(data[0])
        except pydantic.ValidationError as e:
            logger.warning(f"{self.name}: dropping malformed message payload: {e}")
            return None
        if len(data) > 1:
            logger.debug(f"{self.name}: payload carried {len(data)} messages, processing the first")
        return hydrated

    async def _dispatch(self, channel: Channel, hydrated: HydratedMessage) -> Any:
        if self._handler is None:
            logger.warning(f"{self.name}: no inbound handler installed, dropping message")
            return None
        try:
            return await self._handler(channel, hydrated)
        except Exception as e:
            # Transport callbacks must never see pipeline errors
            logger.exception(f"{self.name}: error processing message in {channel}: {e}")
            return None
