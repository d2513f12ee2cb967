"""Per-channel FIFO for inbound events.

Transport callbacks do not wait for the pipeline to finish, so two messages
in the same room would otherwise race through "ensure room", state
composition and reply. ``ChannelQueue`` serialises work per canonical
channel key:

    1. submit(): the job is appended to the channel's queue
    2. a processor task per channel drains the queue one job at a time
    3. the processor exits (and its queue is dropped) once the queue is empty

Different channels still run concurrently. Queues are bounded; when a queue
is full the oldest waiting job is dropped so the newest messages win.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from loguru import logger

DEFAULT_QUEUE_LIMIT = 32

Job = Callable[[], Awaitable[Any]]


@dataclass
class _Pending:
    job: Job
    future: asyncio.Future = field(repr=False)


class ChannelQueue:
    """Serialises jobs per channel key."""

    def __init__(self, limit: int = DEFAULT_QUEUE_LIMIT) -> None:
        self._limit = max(1, limit)
        self._queues: dict[str, deque[_Pending]] = {}
        self._processors: dict[str, asyncio.Task] = {}
        self.dropped = 0

    # ── Enqueue ───────────────────────────────────────────────────────

    def submit(self, channel_key: str, job: Job) -> asyncio.Future:
        """Queue ``job`` behind earlier jobs for the same channel.

        Returns a future resolved with the job's result (or exception). A job
        dropped because the queue overflowed gets its future cancelled.
        """
        loop = asyncio.get_running_loop()
        pending = _Pending(job=job, future=loop.create_future())

        queue = self._queues.setdefault(channel_key, deque())
        if len(queue) >= self._limit:
            oldest = queue.popleft()
            oldest.future.cancel()
            self.dropped += 1
            logger.warning(
                f"Queue: {channel_key} full ({self._limit}), dropped oldest waiting event"
            )
        queue.append(pending)
        logger.debug(f"Queue: enqueued job for {channel_key} (depth: {len(queue)})")

        existing = self._processors.get(channel_key)
        if not existing or existing.done():
            self._processors[channel_key] = asyncio.create_task(
                self._process_queue(channel_key)
            )
        return pending.future

    # ── Queue processor ───────────────────────────────────────────────

    async def _process_queue(self, channel_key: str) -> None:
        queue = self._queues.get(channel_key)
        while queue:
            pending = queue.popleft()
            if pending.future.cancelled():
                continue
            try:
                result = await pending.job()
            except asyncio.CancelledError:
                pending.future.cancel()
                raise
            except Exception as e:
                logger.debug(f"Queue: job in {channel_key} raised {type(e).__name__}")
                if not pending.future.done():
                    pending.future.set_exception(e)
            else:
                if not pending.future.done():
                    pending.future.set_result(result)
        # Clean up empty queue
        if not self._queues.get(channel_key):
            self._queues.pop(channel_key, None)
        self._processors.pop(channel_key, None)

    # ── Introspection / shutdown ──────────────────────────────────────

    def depth(self, channel_key: str) -> int:
        return len(self._queues.get(channel_key, ()))

    @property
    def active_channels(self) -> list[str]:
        return [k for k, t in self._processors.items() if not t.done()]

    async def drain(self) -> None:
        """Wait until every queued job has run."""
        while self._processors:
            await asyncio.gather(*list(self._processors.values()), return_exceptions=True)

    async def close(self) -> None:
        """Cancel processors and drop everything still waiting."""
        for task in self._processors.values():
            task.cancel()
        for queue in self._queues.values():
            for pending in queue:
                pending.future.cancel()
        await asyncio.gather(*self._processors.values(), return_exceptions=True)
        self._processors.clear()
        self._queues.clear()
