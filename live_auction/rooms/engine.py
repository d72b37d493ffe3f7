"""Auction room engine: applies live bidding actions to one room at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping

from ..broadcast.fanout import AUCTION_STATE, DATA_UPDATE, RoomFanout, Viewer
from ..storage import PersistenceGateway
from .fsm import RoomEvent, RoomStatus, accepts_bids, transition
from .models import (
    ActionRejected,
    ActionResult,
    BidFrame,
    CommitKind,
    CommitState,
    CommitStatus,
    PendingCommit,
)
from .registry import Room, RoomRegistry

logger = logging.getLogger(__name__)

# payload keys each action takes, in handler argument order
ACTION_ARGUMENTS: dict[str, tuple[str, ...]] = {
    "start_player": ("player_id", "base_price"),
    "place_bid": ("team_id", "amount"),
    "undo_bid": (),
    "toggle_pause": (),
    "sell_player": (),
    "unsell_player": (),
    "reset_round": (),
}


def _as_amount(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ActionRejected(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ActionRejected(f"{name} must be a whole amount")
        value = int(value)
    if not isinstance(value, int):
        raise ActionRejected(f"{name} must be an integer")
    if value < 0:
        raise ActionRejected(f"{name} must not be negative")
    return value


def _as_identifier(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ActionRejected(f"{name} is required")
    return value


class AuctionEngine:
    """Serialises every action of a room behind that room's lock.

    Validation, mutation and the ``auction_state`` publish happen inside the
    lock without suspending on I/O. Sales and unsales additionally schedule
    a background write. Once the write settles the room's ``auction_state``
    is republished with the commit outcome; ``data_update`` follows only on
    success.
    """

    def __init__(
        self,
        registry: RoomRegistry,
        fanout: RoomFanout,
        gateway: PersistenceGateway,
    ) -> None:
        self._registry = registry
        self._fanout = fanout
        self._gateway = gateway
        self._tasks: set[asyncio.Task] = set()
        self._handlers: dict[str, Callable[..., PendingCommit | None]] = {
            "start_player": self._start_player,
            "place_bid": self._place_bid,
            "undo_bid": self._undo_bid,
            "toggle_pause": self._toggle_pause,
            "sell_player": self._sell_player,
            "unsell_player": self._unsell_player,
            "reset_round": self._reset_round,
        }

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    @property
    def fanout(self) -> RoomFanout:
        return self._fanout

    # Viewer membership ------------------------------------------------------

    async def join(self, auction_id: str, viewer: Viewer) -> dict[str, Any]:
        room = self._registry.get_or_create(auction_id)
        async with room.lock:
            self._fanout.join(auction_id, viewer)
            snapshot = room.snapshot()
            self._fanout.send(viewer, AUCTION_STATE, auction_id, snapshot)
        return snapshot

    def leave(self, auction_id: str, viewer: Viewer) -> None:
        self._fanout.leave(auction_id, viewer)

    def leave_all(self, viewer: Viewer) -> list[str]:
        return self._fanout.leave_all(viewer)

    # Actions ----------------------------------------------------------------

    async def start_player(self, auction_id: str, player_id: str, base_price: int) -> ActionResult:
        return await self._apply(auction_id, "start_player", player_id, base_price)

    async def place_bid(self, auction_id: str, team_id: str, amount: int) -> ActionResult:
        return await self._apply(auction_id, "place_bid", team_id, amount)

    async def undo_bid(self, auction_id: str) -> ActionResult:
        return await self._apply(auction_id, "undo_bid")

    async def toggle_pause(self, auction_id: str) -> ActionResult:
        return await self._apply(auction_id, "toggle_pause")

    async def sell_player(self, auction_id: str) -> ActionResult:
        return await self._apply(auction_id, "sell_player")

    async def unsell_player(self, auction_id: str) -> ActionResult:
        return await self._apply(auction_id, "unsell_player")

    async def reset_round(self, auction_id: str) -> ActionResult:
        return await self._apply(auction_id, "reset_round")

    async def dispatch(
        self, auction_id: str, action: str, payload: Mapping[str, Any] | None = None
    ) -> ActionResult:
        arguments = ACTION_ARGUMENTS.get(action)
        if arguments is None:
            return ActionResult.rejected(f"unknown action {action}")
        payload = payload or {}
        missing = [name for name in arguments if name not in payload]
        if missing:
            return ActionResult.rejected(f"missing {', '.join(missing)}")
        return await self._apply(auction_id, action, *(payload[name] for name in arguments))

    async def drain(self) -> None:
        """Wait for every scheduled commit, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending_commits(self) -> int:
        return len(self._tasks)

    async def _apply(self, auction_id: str, action: str, *args: Any) -> ActionResult:
        room = self._registry.get_or_create(auction_id)
        handler = self._handlers[action]
        async with room.lock:
            try:
                commit = handler(room, *args)
            except ActionRejected as exc:
                logger.debug("rejected %s in auction %s: %s", action, auction_id, exc)
                return ActionResult.rejected(str(exc))
            room.touch()
            if commit is not None:
                room.pending_commits += 1
                room.commit = CommitStatus.for_commit(commit, CommitState.PENDING)
            await self._fanout.publish(auction_id, AUCTION_STATE, room.snapshot())
            if commit is not None:
                self._schedule(room, commit)
        return ActionResult.ok()

    # Handlers: run under the room lock, raise ActionRejected before mutating.

    def _start_player(self, room: Room, player_id: Any, base_price: Any) -> None:
        player_id = _as_identifier(player_id, "player_id")
        base_price = _as_amount(base_price, "base_price")
        state = room.state
        state.current_bid = base_price
        state.leading_team_id = None
        state.current_player_id = player_id
        state.status = transition(state.status, RoomEvent.START)
        state.bid_history.clear()
        logger.info("auction %s: player %s up at %d", room.auction_id, player_id, base_price)

    def _place_bid(self, room: Room, team_id: Any, amount: Any) -> None:
        state = room.state
        if not accepts_bids(state.status):
            raise ActionRejected(f"bids are not accepted while {state.status.value}")
        team_id = _as_identifier(team_id, "team_id")
        amount = _as_amount(amount, "amount")
        if state.leading_team_id is None:
            if amount < state.current_bid:
                raise ActionRejected(f"opening bid {amount} is below base price {state.current_bid}")
        elif amount <= state.current_bid:
            raise ActionRejected(f"bid {amount} does not exceed current bid {state.current_bid}")
        state.bid_history.append(BidFrame(bid=state.current_bid, leader=state.leading_team_id))
        state.current_bid = amount
        state.leading_team_id = team_id

    def _undo_bid(self, room: Room) -> None:
        state = room.state
        if not state.bid_history:
            raise ActionRejected("no bid to undo")
        frame = state.bid_history.pop()
        state.current_bid = frame.bid
        state.leading_team_id = frame.leader

    def _toggle_pause(self, room: Room) -> None:
        state = room.state
        if state.status in (RoomStatus.ACTIVE, RoomStatus.PAUSED):
            state.status = transition(state.status, RoomEvent.TOGGLE_PAUSE)

    def _sell_player(self, room: Room) -> PendingCommit:
        state = room.state
        if state.current_player_id is None:
            raise ActionRejected("no player on the block")
        if state.leading_team_id is None:
            raise ActionRejected("no bid has been placed")
        try:
            state.status = transition(state.status, RoomEvent.SELL)
        except ValueError as exc:
            raise ActionRejected(str(exc)) from exc
        state.bid_history.clear()
        logger.info(
            "auction %s: player %s sold to %s for %d",
            room.auction_id,
            state.current_player_id,
            state.leading_team_id,
            state.current_bid,
        )
        return PendingCommit(
            kind=CommitKind.SALE,
            auction_id=room.auction_id,
            player_id=state.current_player_id,
            team_id=state.leading_team_id,
            price=state.current_bid,
        )

    def _unsell_player(self, room: Room) -> PendingCommit:
        state = room.state
        if state.current_player_id is None:
            raise ActionRejected("no player on the block")
        try:
            state.status = transition(state.status, RoomEvent.UNSELL)
        except ValueError as exc:
            raise ActionRejected(str(exc)) from exc
        logger.info("auction %s: player %s unsold", room.auction_id, state.current_player_id)
        return PendingCommit(
            kind=CommitKind.UNSALE,
            auction_id=room.auction_id,
            player_id=state.current_player_id,
        )

    def _reset_round(self, room: Room) -> None:
        room.state.reset()

    # Commit orchestration ---------------------------------------------------

    def _schedule(self, room: Room, commit: PendingCommit) -> None:
        task = asyncio.create_task(self._commit(room, commit))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _commit(self, room: Room, commit: PendingCommit) -> None:
        # commit_lock is FIFO, so data_update keeps per-room order
        async with room.commit_lock:
            try:
                if commit.kind is CommitKind.SALE:
                    await self._gateway.commit_sale(
                        commit.auction_id, commit.player_id, commit.team_id, commit.price
                    )
                else:
                    await self._gateway.mark_player_unsold(commit.auction_id, commit.player_id)
            except Exception as exc:
                logger.error(
                    f"{commit.kind.value} commit failed for auction {commit.auction_id}, "
                    f"player {commit.player_id}; live state kept: {exc}",
                    exc_info=True,
                )
                status = CommitStatus.for_commit(commit, CommitState.FAILED, str(exc))
                room.failed_commits.append(status)
                self._settle(room, status)
                await self._fanout.publish(commit.auction_id, AUCTION_STATE, room.snapshot())
                return
            self._settle(room, CommitStatus.for_commit(commit, CommitState.COMMITTED))
            logger.info(
                "auction %s: %s of player %s committed",
                commit.auction_id,
                commit.kind.value,
                commit.player_id,
            )
            await self._fanout.publish(commit.auction_id, AUCTION_STATE, room.snapshot())
            await self._fanout.publish(commit.auction_id, DATA_UPDATE)

    def _settle(self, room: Room, status: CommitStatus) -> None:
        room.pending_commits -= 1
        # a later commit still in flight keeps the room marked pending
        if room.pending_commits == 0:
            room.commit = status
