"""Live room inspection, including commits that failed to persist."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from ..rooms.engine import AuctionEngine
from ..rooms.registry import Room

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_engine(request: Request) -> AuctionEngine:
    return request.app.state.engine


def _describe(room: Room, engine: AuctionEngine) -> dict[str, Any]:
    return {
        "room": room.snapshot(),
        "viewers": engine.fanout.viewer_count(room.auction_id),
        "pending_commits": room.pending_commits,
        "failed_commits": [status.to_payload() for status in room.failed_commits],
    }


@router.get("/rooms")
async def rooms(engine: AuctionEngine = Depends(_get_engine)) -> list[dict[str, Any]]:
    return [_describe(room, engine) for room in engine.registry.all()]


@router.get("/rooms/{auction_id}")
async def room_detail(auction_id: str, engine: AuctionEngine = Depends(_get_engine)) -> dict[str, Any]:
    room = engine.registry.get(auction_id)
    if room is None:
        raise HTTPException(status_code=404, detail="room not found")
    return _describe(room, engine)
