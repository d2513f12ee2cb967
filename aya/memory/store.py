"""Storage seams for the message pipeline.

The pipeline only talks to the two protocols below. ``MemoryStore`` holds
accounts, rooms and memories; ``KnowledgeSearch`` answers ranked semantic
queries (document knowledge or episodic memories).

``InMemoryStore`` is the in-process implementation used by tests and by the
mock channel. Given a directory it also appends every memory to a per-room
JSONL file and reloads those files on first access, the same layout the
session manager uses for conversation history.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from aya.memory.models import Account, Memory, SearchHit


@runtime_checkable
class MemoryStore(Protocol):
    async def ensure_connection(self, account: Account, room_id: str) -> None:
        """Idempotently upsert the account, the room and the membership."""
        ...

    async def create_memory(self, memory: Memory) -> bool:
        """Write ``memory``. Returns False if a memory with its id exists."""
        ...

    async def get_memory(self, memory_id: str) -> Memory | None:
        ...

    async def get_recent(self, room_id: str, count: int) -> list[Memory]:
        """Most recent ``count`` memories of a room, oldest first."""
        ...


@runtime_checkable
class KnowledgeSearch(Protocol):
    async def search(
        self, query: str, limit: int, match_threshold: float
    ) -> list[SearchHit]:
        """Ranked hits, best first."""
        ...


class InMemoryStore:
    """Dict-backed MemoryStore with optional JSONL persistence per room."""

    def __init__(self, directory: Path | None = None) -> None:
        self._dir = directory
        if self._dir is not None:
            self._dir.mkdir(parents=True, exist_ok=True)
        self._accounts: dict[str, Account] = {}
        self._participants: dict[str, set[str]] = {}
        self._memories: dict[str, Memory] = {}
        self._rooms: dict[str, list[str]] = {}
        self._loaded_rooms: set[str] = set()

    # ── Accounts / rooms ─────────────────────────────────────────────

    async def ensure_connection(self, account: Account, room_id: str) -> None:
        existing = self._accounts.get(account.user_id)
        if existing is None:
            self._accounts[account.user_id] = account
            logger.debug(f"Store: created account {account.identity} ({account.user_id})")
        elif account.username and not existing.username:
            existing.username = account.username
            existing.name = account.name or existing.name
            existing.bio = account.bio if account.bio is not None else existing.bio

        self._load_room(room_id)
        self._rooms.setdefault(room_id, [])
        self._participants.setdefault(room_id, set()).add(account.user_id)

    def get_account(self, user_id: str) -> Account | None:
        return self._accounts.get(user_id)

    def get_participants(self, room_id: str) -> set[str]:
        return set(self._participants.get(room_id, set()))

    # ── Memories ─────────────────────────────────────────────────────

    async def create_memory(self, memory: Memory) -> bool:
        self._load_room(memory.room_id)
        if memory.id in self._memories:
            logger.debug(f"Store: memory {memory.id} already exists, skipping")
            return False

        self._memories[memory.id] = memory
        self._rooms.setdefault(memory.room_id, []).append(memory.id)
        self._append_to_disk(memory)
        return True

    async def get_memory(self, memory_id: str) -> Memory | None:
        return self._memories.get(memory_id)

    async def get_recent(self, room_id: str, count: int) -> list[Memory]:
        self._load_room(room_id)
        if count <= 0:
            return []
        ids = self._rooms.get(room_id, [])[-count:]
        return [self._memories[mid] for mid in ids]

    def count(self, room_id: str | None = None) -> int:
        if room_id is None:
            return len(self._memories)
        return len(self._rooms.get(room_id, []))

    # ── JSONL persistence ────────────────────────────────────────────

    def _room_path(self, room_id: str) -> Path | None:
        if self._dir is None:
            return None
        return self._dir / f"{room_id}.jsonl"

    def _append_to_disk(self, memory: Memory) -> None:
        path = self._room_path(memory.room_id)
        if path is None:
            return
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(memory.to_dict()) + "\n")

    def _load_room(self, room_id: str) -> None:
        if room_id in self._loaded_rooms:
            return
        self._loaded_rooms.add(room_id)

        path = self._room_path(room_id)
        if path is None or not path.exists():
            return

        loaded = 0
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    memory = Memory.from_dict(json.loads(line))
                except (json.JSONDecodeError, KeyError) as e:
                    logger.warning(f"Store: skipping corrupt line in {path.name}: {e}")
                    continue
                if memory.id in self._memories:
                    continue
                self._memories[memory.id] = memory
                self._rooms.setdefault(room_id, []).append(memory.id)
                loaded += 1
        logger.debug(f"Store: loaded {loaded} memories for room {room_id}")
