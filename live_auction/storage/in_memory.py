"""In-memory storage backend for teams and players."""

from __future__ import annotations

import asyncio
from copy import deepcopy
from typing import Any


class InMemoryStorage:
    def __init__(self) -> None:
        self._teams: dict[str, dict[str, Any]] = {}
        self._players: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def _team(self, auction_id: str, team_id: str) -> dict[str, Any]:
        team = self._teams.get(team_id)
        if team is None or team["auction_id"] != auction_id:
            raise KeyError(f"team {team_id} not found in auction {auction_id}")
        return team

    def _player(self, auction_id: str, player_id: str) -> dict[str, Any]:
        player = self._players.get(player_id)
        if player is None or player["auction_id"] != auction_id:
            raise KeyError(f"player {player_id} not found in auction {auction_id}")
        return player

    async def commit_sale(
        self, auction_id: str, player_id: str, team_id: str, price: int
    ) -> dict[str, Any]:
        async with self._lock:
            player = self._player(auction_id, player_id)
            team = self._team(auction_id, team_id)
            player.update(
                {"is_sold": True, "is_unsold": False, "sold_to": team_id, "sold_price": price}
            )
            team["spent"] += price
            team["players"].append(player_id)
            return deepcopy(player)

    async def mark_player_unsold(self, auction_id: str, player_id: str) -> dict[str, Any]:
        async with self._lock:
            player = self._player(auction_id, player_id)
            player.update({"is_sold": False, "is_unsold": True})
            return deepcopy(player)

    async def list_teams(self, auction_id: str) -> list[dict[str, Any]]:
        async with self._lock:
            teams = [
                deepcopy(team) for team in self._teams.values() if team["auction_id"] == auction_id
            ]
        return sorted(teams, key=lambda team: team["name"])

    async def list_players(self, auction_id: str) -> list[dict[str, Any]]:
        async with self._lock:
            players = [
                deepcopy(player)
                for player in self._players.values()
                if player["auction_id"] == auction_id
            ]
        return sorted(players, key=lambda player: player["order"])

    async def count_players(self, auction_id: str) -> int:
        async with self._lock:
            return sum(1 for player in self._players.values() if player["auction_id"] == auction_id)

    async def create_team(self, team: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            self._teams[team["team_id"]] = deepcopy(team)
            return deepcopy(team)

    async def create_player(self, player: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            self._players[player["player_id"]] = deepcopy(player)
            return deepcopy(player)

    async def delete_team(self, auction_id: str, team_id: str) -> dict[str, Any]:
        async with self._lock:
            team = self._team(auction_id, team_id)
            for player in self._players.values():
                if player["sold_to"] == team_id:
                    player.update({"is_sold": False, "sold_to": None, "sold_price": 0})
            del self._teams[team_id]
            return team

    async def delete_player(self, auction_id: str, player_id: str) -> dict[str, Any]:
        async with self._lock:
            player = self._player(auction_id, player_id)
            buyer = self._teams.get(player["sold_to"]) if player["is_sold"] else None
            if buyer is not None:
                buyer["spent"] -= player["sold_price"]
                if player_id in buyer["players"]:
                    buyer["players"].remove(player_id)
            del self._players[player_id]
            return player
