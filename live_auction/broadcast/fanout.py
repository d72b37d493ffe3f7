"""Per-room delivery of live state to connected viewers."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable
from uuid import uuid4

from ..transport.codec import encode_message

logger = logging.getLogger(__name__)

AUCTION_STATE = "auction_state"
DATA_UPDATE = "data_update"
ACTION_REJECTED = "action_rejected"


class Viewer:
    """One connected client and its outbound queue.

    Publishing only enqueues; ``pump`` drains the queue onto the socket so a
    slow client never holds up a room. When the queue is full the oldest
    ``auction_state`` is dropped, since a newer one supersedes it. A
    ``data_update`` is only ever collapsed into an identical one already
    queued, so the client still gets told to refetch.
    """

    def __init__(
        self,
        send: Callable[[str], Awaitable[None]] | None = None,
        *,
        queue_size: int = 256,
        viewer_id: str | None = None,
    ) -> None:
        self.id = viewer_id or uuid4().hex
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self.rooms: set[str] = set()
        self.dropped = 0
        self._send = send

    def deliver(self, envelope: dict[str, Any]) -> None:
        try:
            self.queue.put_nowait(envelope)
        except asyncio.QueueFull:
            self._shed(envelope)

    def _shed(self, envelope: dict[str, Any]) -> None:
        queued = [self.queue.get_nowait() for _ in range(self.queue.qsize())]
        if envelope["type"] == DATA_UPDATE and envelope in queued:
            kept = queued
        else:
            victim = next(
                (index for index, message in enumerate(queued) if message["type"] == AUCTION_STATE),
                0,
            )
            logger.warning(
                "viewer %s queue full, dropped oldest %s", self.id, queued[victim]["type"]
            )
            kept = queued[:victim] + queued[victim + 1:] + [envelope]
        self.dropped += 1
        for message in kept:
            self.queue.put_nowait(message)

    async def pump(self) -> None:
        if self._send is None:
            raise RuntimeError("viewer has no transport to pump into")
        while True:
            envelope = await self.queue.get()
            await self._send(encode_message(envelope))

    def __repr__(self) -> str:
        return f"Viewer({self.id})"


class RoomFanout:
    def __init__(self, *, viewer_queue_size: int = 256) -> None:
        self._members: dict[str, set[Viewer]] = defaultdict(set)
        self._viewer_queue_size = viewer_queue_size

    def new_viewer(self, send: Callable[[str], Awaitable[None]] | None = None) -> Viewer:
        return Viewer(send, queue_size=self._viewer_queue_size)

    def join(self, auction_id: str, viewer: Viewer) -> None:
        self._members[auction_id].add(viewer)
        viewer.rooms.add(auction_id)
        logger.debug("viewer %s joined %s (%d watching)", viewer.id, auction_id, len(self._members[auction_id]))

    def leave(self, auction_id: str, viewer: Viewer) -> None:
        members = self._members.get(auction_id)
        viewer.rooms.discard(auction_id)
        if members is None:
            return
        members.discard(viewer)
        if not members:
            del self._members[auction_id]

    def leave_all(self, viewer: Viewer) -> list[str]:
        rooms = sorted(viewer.rooms)
        for auction_id in rooms:
            self.leave(auction_id, viewer)
        return rooms

    async def publish(self, auction_id: str, kind: str, data: dict[str, Any] | None = None) -> int:
        members = self._members.get(auction_id)
        if not members:
            return 0
        envelope = {"type": kind, "auction_id": auction_id, "data": data}
        for viewer in list(members):
            viewer.deliver(envelope)
        return len(members)

    def send(self, viewer: Viewer, kind: str, auction_id: str, data: dict[str, Any] | None = None) -> None:
        viewer.deliver({"type": kind, "auction_id": auction_id, "data": data})

    def viewer_count(self, auction_id: str | None = None) -> int:
        if auction_id is not None:
            return len(self._members.get(auction_id, ()))
        return len({viewer for members in self._members.values() for viewer in members})

    def is_watched(self, auction_id: str) -> bool:
        return bool(self._members.get(auction_id))
