"""Process-wide registry of live auction rooms."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .models import CommitStatus, RoomState

logger = logging.getLogger(__name__)


@dataclass
class Room:
    auction_id: str
    state: RoomState = field(default_factory=RoomState)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    commit_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    commit: CommitStatus = field(default_factory=CommitStatus)
    failed_commits: list[CommitStatus] = field(default_factory=list)
    pending_commits: int = 0
    last_activity: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_activity = time.monotonic()

    def snapshot(self) -> dict[str, Any]:
        payload = {"auction_id": self.auction_id}
        payload.update(self.state.to_payload())
        payload["commit"] = self.commit.to_payload()
        return payload


class RoomRegistry:
    """Maps auction ids to their single Room.

    Lookups never suspend, so no lock is needed under asyncio; each room
    carries its own lock and rooms never wait on each other.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}

    def get_or_create(self, auction_id: str) -> Room:
        room = self._rooms.get(auction_id)
        if room is None:
            room = Room(auction_id=auction_id)
            self._rooms[auction_id] = room
            logger.info("created room for auction %s", auction_id)
        return room

    def get(self, auction_id: str) -> Room | None:
        return self._rooms.get(auction_id)

    def all(self) -> Iterable[Room]:
        return list(self._rooms.values())

    def __len__(self) -> int:
        return len(self._rooms)

    def evict_idle(
        self,
        max_idle_seconds: float,
        is_watched: Callable[[str], bool],
        *,
        now: float | None = None,
    ) -> list[str]:
        """Drop rooms nobody watches, with no commit in flight and no recent activity."""
        ref = time.monotonic() if now is None else now
        evicted = []
        for auction_id, room in list(self._rooms.items()):
            if room.pending_commits or room.lock.locked():
                continue
            if is_watched(auction_id):
                continue
            if ref - room.last_activity < max_idle_seconds:
                continue
            del self._rooms[auction_id]
            evicted.append(auction_id)
        if evicted:
            logger.info("evicted %d idle rooms: %s", len(evicted), ", ".join(evicted))
        return evicted
