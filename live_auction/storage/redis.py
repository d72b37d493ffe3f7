"""Redis storage backend using redis-py asyncio client."""

from __future__ import annotations

from typing import Any

import orjson
from redis import asyncio as aioredis


class RedisStorage:
    """Players are JSON documents; a team is a hash holding its document and
    its integer ``spent`` plus a list holding its roster, so a sale can
    increment and append inside one MULTI block."""

    def __init__(self, *, url: str, prefix: str = "live-auction") -> None:
        if not url:
            raise ValueError("redis url missing")
        self._redis = aioredis.from_url(url, decode_responses=True)
        self._prefix = prefix.rstrip(":")

    def _team_key(self, team_id: str) -> str:
        return f"{self._prefix}:team:{team_id}"

    def _roster_key(self, team_id: str) -> str:
        return f"{self._prefix}:team:{team_id}:players"

    def _player_key(self, player_id: str) -> str:
        return f"{self._prefix}:player:{player_id}"

    def _teams_index(self, auction_id: str) -> str:
        return f"{self._prefix}:auction:{auction_id}:teams"

    def _players_index(self, auction_id: str) -> str:
        return f"{self._prefix}:auction:{auction_id}:players"

    async def ping(self) -> None:
        await self._redis.ping()

    async def close(self) -> None:
        await self._redis.aclose()

    async def _get_team(self, auction_id: str, team_id: str) -> dict[str, Any]:
        raw = await self._redis.hgetall(self._team_key(team_id))
        if not raw:
            raise KeyError(f"team {team_id} not found in auction {auction_id}")
        team = orjson.loads(raw["doc"])
        if team["auction_id"] != auction_id:
            raise KeyError(f"team {team_id} not found in auction {auction_id}")
        team["spent"] = int(raw.get("spent", 0))
        team["players"] = await self._redis.lrange(self._roster_key(team_id), 0, -1)
        return team

    async def _get_player(self, auction_id: str, player_id: str) -> dict[str, Any]:
        raw = await self._redis.get(self._player_key(player_id))
        if raw is None:
            raise KeyError(f"player {player_id} not found in auction {auction_id}")
        player = orjson.loads(raw)
        if player["auction_id"] != auction_id:
            raise KeyError(f"player {player_id} not found in auction {auction_id}")
        return player

    async def commit_sale(
        self, auction_id: str, player_id: str, team_id: str, price: int
    ) -> dict[str, Any]:
        player = await self._get_player(auction_id, player_id)
        await self._get_team(auction_id, team_id)
        player.update({"is_sold": True, "is_unsold": False, "sold_to": team_id, "sold_price": price})
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(self._player_key(player_id), orjson.dumps(player))
            pipe.hincrby(self._team_key(team_id), "spent", price)
            pipe.rpush(self._roster_key(team_id), player_id)
            await pipe.execute()
        return player

    async def mark_player_unsold(self, auction_id: str, player_id: str) -> dict[str, Any]:
        player = await self._get_player(auction_id, player_id)
        player.update({"is_sold": False, "is_unsold": True})
        await self._redis.set(self._player_key(player_id), orjson.dumps(player))
        return player

    async def list_teams(self, auction_id: str) -> list[dict[str, Any]]:
        team_ids = await self._redis.smembers(self._teams_index(auction_id))
        teams = [await self._get_team(auction_id, team_id) for team_id in team_ids]
        return sorted(teams, key=lambda team: team["name"])

    async def list_players(self, auction_id: str) -> list[dict[str, Any]]:
        player_ids = await self._redis.zrange(self._players_index(auction_id), 0, -1)
        if not player_ids:
            return []
        values = await self._redis.mget([self._player_key(player_id) for player_id in player_ids])
        return [orjson.loads(value) for value in values if value]

    async def count_players(self, auction_id: str) -> int:
        return await self._redis.zcard(self._players_index(auction_id))

    async def create_team(self, team: dict[str, Any]) -> dict[str, Any]:
        doc = {key: value for key, value in team.items() if key not in {"spent", "players"}}
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hset(
                self._team_key(team["team_id"]),
                mapping={"doc": orjson.dumps(doc), "spent": int(team.get("spent", 0))},
            )
            pipe.sadd(self._teams_index(team["auction_id"]), team["team_id"])
            await pipe.execute()
        return team

    async def create_player(self, player: dict[str, Any]) -> dict[str, Any]:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(self._player_key(player["player_id"]), orjson.dumps(player))
            pipe.zadd(self._players_index(player["auction_id"]), {player["player_id"]: player["order"]})
            await pipe.execute()
        return player

    async def delete_team(self, auction_id: str, team_id: str) -> dict[str, Any]:
        team = await self._get_team(auction_id, team_id)
        released = [
            player for player in await self.list_players(auction_id) if player["sold_to"] == team_id
        ]
        async with self._redis.pipeline(transaction=True) as pipe:
            for player in released:
                player.update({"is_sold": False, "sold_to": None, "sold_price": 0})
                pipe.set(self._player_key(player["player_id"]), orjson.dumps(player))
            pipe.delete(self._team_key(team_id), self._roster_key(team_id))
            pipe.srem(self._teams_index(auction_id), team_id)
            await pipe.execute()
        return team

    async def delete_player(self, auction_id: str, player_id: str) -> dict[str, Any]:
        player = await self._get_player(auction_id, player_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            if player["is_sold"] and player["sold_to"]:
                pipe.hincrby(self._team_key(player["sold_to"]), "spent", -player["sold_price"])
                pipe.lrem(self._roster_key(player["sold_to"]), 0, player_id)
            pipe.delete(self._player_key(player_id))
            pipe.zrem(self._players_index(auction_id), player_id)
            await pipe.execute()
        return player
