"""agentcoin.fun chat channel.

Outbound goes over the HTTP API (httpx, cookie-authenticated):

    POST {url}/api/chat/send    body: CreateMessage   → HydratedMessage
    POST {url}/api/chat/status  body: {channel, status}

Inbound events arrive from the realtime socket keyed by topic. ``handle_event``
routes them:

    user:{identity}        → handle_user_event (DMs + status events)
    coin:{chain}:{address} → handle_channel_payload (coin room)

The socket client itself is out of scope here; anything that delivers
``(topic, data)`` pairs can drive this channel.
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
from loguru import logger

from aya.channels.base import BaseChannel
from aya.chat.channel import Channel, CoinChannel, decode_channel
from aya.chat.identity import Identity, decode_identity
from aya.chat.models import ChatStatus, CreateMessage, HydratedMessage, Message, StatusUpdate
from aya.config.schema import ApiConfig
from aya.errors import InvalidChannelFormat, InvalidMessagePayload


class AgentcoinChannel(BaseChannel):
    """HTTP transport for the agentcoin.fun chat API."""

    name = "agentcoin"

    def __init__(
        self,
        identity: Identity,
        config: ApiConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(identity)
        self.config = config
        self._client = client
        self._owns_client = client is None

    # ── Lifecycle ─────────────────────────────────────────

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.url.rstrip("/"),
                timeout=self.config.timeout,
                headers=self._headers(),
            )
        self._running = True
        topics = [self.user_topic]
        if self.coin_channel is not None:
            topics.append(self.topic_for(self.coin_channel))
        logger.info(f"Agentcoin channel started as {self.identity} (topics: {', '.join(topics)})")

    async def stop(self) -> None:
        self._running = False
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.info("Agentcoin channel stopped")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.cookie:
            headers["Cookie"] = self.config.cookie
        return headers

    @property
    def coin_channel(self) -> CoinChannel | None:
        """The configured coin room, if a token address is set."""
        if not self.config.token_address:
            return None
        return CoinChannel(
            chain_id=self.config.chain_id,
            address=decode_identity(self.config.token_address),
        )

    # ── Outbound ──────────────────────────────────────────

    async def _post(self, path: str, body: dict[str, Any]) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("Agentcoin channel not started")
        response = await self._client.post(path, json=body, headers=self._headers())
        response.raise_for_status()
        return response

    async def send_message(self, channel: Channel, text: str, sender: Identity) -> Message:
        body = CreateMessage(
            client_uuid=str(uuid.uuid4()),
            channel=channel,
            sender=sender,
            text=text,
        ).to_wire()
        response = await self._post("/api/chat/send", body)

        hydrated = HydratedMessage.model_validate(response.json())
        if hydrated.message is None:
            raise InvalidMessagePayload(f"send to {channel} returned no message")
        logger.debug(f"Sent message {hydrated.message.id} to {channel}")
        return hydrated.message

    async def send_status(self, channel: Channel, status: ChatStatus) -> None:
        body = StatusUpdate(channel=channel, status=status).to_wire()
        await self._post("/api/chat/status", body)

    # ── Inbound routing ───────────────────────────────────

    async def handle_event(self, topic: str, data: Any) -> Any:
        """Route one realtime event by topic."""
        if topic == self.user_topic:
            return await self.handle_user_event(data)
        try:
            channel = decode_channel(topic)
        except InvalidChannelFormat:
            logger.debug(f"{self.name}: ignoring event on unknown topic {topic}")
            return None
        return await self.handle_channel_payload(channel, data)
