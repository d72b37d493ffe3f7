"""Shared fixtures for the live auction unit tests."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from live_auction.broadcast.fanout import RoomFanout, Viewer
from live_auction.rooms.engine import AuctionEngine
from live_auction.rooms.registry import RoomRegistry
from live_auction.storage.in_memory import InMemoryStorage


def drain_messages(viewer: Viewer) -> list[dict[str, Any]]:
    """Pop every queued envelope of a viewer, oldest first."""
    messages = []
    while not viewer.queue.empty():
        messages.append(viewer.queue.get_nowait())
    return messages


def team_record(team_id: str, auction_id: str = "spl-1", **overrides: Any) -> dict[str, Any]:
    record = {
        "team_id": team_id,
        "auction_id": auction_id,
        "name": team_id.title(),
        "budget": 1000,
        "spent": 0,
        "players": [],
    }
    record.update(overrides)
    return record


def player_record(player_id: str, auction_id: str = "spl-1", order: int = 0, **overrides: Any) -> dict[str, Any]:
    record = {
        "player_id": player_id,
        "auction_id": auction_id,
        "name": player_id.title(),
        "role": "Batsman",
        "category": "A",
        "base_price": 100,
        "order": order,
        "is_sold": False,
        "is_unsold": False,
        "sold_to": None,
        "sold_price": 0,
    }
    record.update(overrides)
    return record


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def fanout():
    return RoomFanout()


@pytest.fixture
def gateway():
    """Mock persistence gateway for engine tests."""
    gateway = AsyncMock()
    gateway.commit_sale = AsyncMock(return_value={})
    gateway.mark_player_unsold = AsyncMock(return_value={})
    return gateway


@pytest.fixture
def engine(registry, fanout, gateway):
    return AuctionEngine(registry, fanout, gateway)


@pytest.fixture
def storage():
    return InMemoryStorage()
