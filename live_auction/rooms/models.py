"""Live room data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .fsm import RoomStatus


class ActionRejected(ValueError):
    """Raised by a room action whose preconditions do not hold."""


@dataclass(frozen=True)
class ActionResult:
    accepted: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "ActionResult":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: str) -> "ActionResult":
        return cls(accepted=False, reason=reason)


@dataclass(frozen=True)
class BidFrame:
    """A previously standing bid, restored by undo."""

    bid: int
    leader: str | None


@dataclass
class RoomState:
    current_bid: int = 0
    leading_team_id: str | None = None
    current_player_id: str | None = None
    status: RoomStatus = RoomStatus.IDLE
    bid_history: list[BidFrame] = field(default_factory=list)

    def reset(self) -> None:
        self.current_bid = 0
        self.leading_team_id = None
        self.current_player_id = None
        self.status = RoomStatus.IDLE
        self.bid_history.clear()

    def to_payload(self) -> dict[str, Any]:
        return {
            "current_bid": self.current_bid,
            "leading_team_id": self.leading_team_id,
            "current_player_id": self.current_player_id,
            "status": self.status.value,
            "can_undo": bool(self.bid_history),
        }


class CommitKind(str, Enum):
    SALE = "sale"
    UNSALE = "unsale"


class CommitState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingCommit:
    """Values captured when a sale or unsale is decided.

    The background write uses these rather than the live state, which may
    already belong to the next round by the time the write runs.
    """

    kind: CommitKind
    auction_id: str
    player_id: str
    team_id: str | None = None
    price: int = 0


@dataclass
class CommitStatus:
    state: CommitState = CommitState.IDLE
    kind: CommitKind | None = None
    player_id: str | None = None
    team_id: str | None = None
    price: int = 0
    error: str | None = None

    @classmethod
    def for_commit(cls, commit: PendingCommit, state: CommitState, error: str | None = None) -> "CommitStatus":
        return cls(
            state=state,
            kind=commit.kind,
            player_id=commit.player_id,
            team_id=commit.team_id,
            price=commit.price,
            error=error,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "kind": self.kind.value if self.kind else None,
            "player_id": self.player_id,
            "team_id": self.team_id,
            "price": self.price,
            "error": self.error,
        }
