"""Teams and players of an auction: the bulk data viewers refetch on data_update."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from ..broadcast.fanout import DATA_UPDATE, RoomFanout
from ..storage import PersistenceGateway

logger = logging.getLogger(__name__)


def new_team_record(auction_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "team_id": f"team_{uuid.uuid4().hex[:12]}",
        "auction_id": auction_id,
        "name": payload["name"],
        "budget": int(payload.get("budget", 0)),
        "spent": 0,
        "players": [],
    }


def new_player_record(auction_id: str, payload: dict[str, Any], order: int) -> dict[str, Any]:
    return {
        "player_id": f"player_{uuid.uuid4().hex[:12]}",
        "auction_id": auction_id,
        "name": payload["name"],
        "role": payload.get("role"),
        "category": payload.get("category"),
        "base_price": int(payload.get("base_price", 0)),
        "order": order,
        "is_sold": False,
        "is_unsold": False,
        "sold_to": None,
        "sold_price": 0,
    }


@dataclass
class CatalogService:
    storage: PersistenceGateway
    fanout: RoomFanout
    # count then insert must not interleave, or two players share an order
    _order_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def snapshot(self, auction_id: str) -> dict[str, Any]:
        teams = await self.storage.list_teams(auction_id)
        players = await self.storage.list_players(auction_id)
        return {"teams": teams, "players": players}

    async def add_team(self, auction_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        team = await self.storage.create_team(new_team_record(auction_id, payload))
        logger.info(f"Added team {team['team_id']} ({team['name']}) to auction {auction_id}")
        await self._notify(auction_id)
        return team

    async def add_player(self, auction_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        async with self._order_lock:
            order = await self.storage.count_players(auction_id)
            player = await self.storage.create_player(new_player_record(auction_id, payload, order))
        logger.info(f"Added player {player['player_id']} ({player['name']}) to auction {auction_id}")
        await self._notify(auction_id)
        return player

    async def delete_team(self, auction_id: str, team_id: str) -> dict[str, Any]:
        team = await self.storage.delete_team(auction_id, team_id)
        logger.info(f"Deleted team {team_id} from auction {auction_id}, released {len(team['players'])} players")
        await self._notify(auction_id)
        return team

    async def delete_player(self, auction_id: str, player_id: str) -> dict[str, Any]:
        player = await self.storage.delete_player(auction_id, player_id)
        if player["is_sold"]:
            logger.info(
                f"Deleted sold player {player_id}; refunded {player['sold_price']} to {player['sold_to']}"
            )
        await self._notify(auction_id)
        return player

    async def _notify(self, auction_id: str) -> None:
        await self.fanout.publish(auction_id, DATA_UPDATE)
