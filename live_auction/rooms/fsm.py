"""Room status finite state machine."""

from __future__ import annotations

from enum import Enum


class RoomStatus(str, Enum):
    IDLE = "IDLE"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    SOLD = "SOLD"
    UNSOLD = "UNSOLD"


class RoomEvent(str, Enum):
    START = "start"
    TOGGLE_PAUSE = "toggle_pause"
    SELL = "sell"
    UNSELL = "unsell"
    RESET = "reset"


# START and RESET are accepted from every status and are handled in transition().
# SELL and UNSELL stay open after a sale; the engine only requires a player
# (and, for SELL, a leading team) on the block.
_TRANSITIONS = {
    (RoomStatus.ACTIVE, RoomEvent.TOGGLE_PAUSE): RoomStatus.PAUSED,
    (RoomStatus.PAUSED, RoomEvent.TOGGLE_PAUSE): RoomStatus.ACTIVE,
    (RoomStatus.ACTIVE, RoomEvent.SELL): RoomStatus.SOLD,
    (RoomStatus.PAUSED, RoomEvent.SELL): RoomStatus.SOLD,
    (RoomStatus.SOLD, RoomEvent.SELL): RoomStatus.SOLD,
    (RoomStatus.UNSOLD, RoomEvent.SELL): RoomStatus.SOLD,
    (RoomStatus.ACTIVE, RoomEvent.UNSELL): RoomStatus.UNSOLD,
    (RoomStatus.PAUSED, RoomEvent.UNSELL): RoomStatus.UNSOLD,
    (RoomStatus.SOLD, RoomEvent.UNSELL): RoomStatus.UNSOLD,
    (RoomStatus.UNSOLD, RoomEvent.UNSELL): RoomStatus.UNSOLD,
}


def transition(current: RoomStatus, event: RoomEvent) -> RoomStatus:
    if event is RoomEvent.START:
        return RoomStatus.ACTIVE
    if event is RoomEvent.RESET:
        return RoomStatus.IDLE
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError as exc:
        raise ValueError(f"invalid transition from {current.value} via {event.value}") from exc


def accepts_bids(status: RoomStatus) -> bool:
    return status is RoomStatus.ACTIVE
