"""Postgres storage backend leveraging asyncpg."""

from __future__ import annotations

from typing import Any

import asyncpg

_SCHEMA = """
CREATE TABLE IF NOT EXISTS teams (
    team_id TEXT PRIMARY KEY,
    auction_id TEXT NOT NULL,
    name TEXT NOT NULL,
    budget BIGINT NOT NULL DEFAULT 0,
    spent BIGINT NOT NULL DEFAULT 0,
    players TEXT[] NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_teams_auction ON teams (auction_id);
CREATE TABLE IF NOT EXISTS players (
    player_id TEXT PRIMARY KEY,
    auction_id TEXT NOT NULL,
    name TEXT NOT NULL,
    role TEXT,
    category TEXT,
    base_price BIGINT NOT NULL DEFAULT 0,
    sort_order INTEGER NOT NULL DEFAULT 0,
    is_sold BOOLEAN NOT NULL DEFAULT FALSE,
    is_unsold BOOLEAN NOT NULL DEFAULT FALSE,
    sold_to TEXT,
    sold_price BIGINT NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS idx_players_auction ON players (auction_id, sort_order);
"""


def _team(row: asyncpg.Record) -> dict[str, Any]:
    team = dict(row)
    team["players"] = list(team["players"] or [])
    return team


def _player(row: asyncpg.Record) -> dict[str, Any]:
    player = dict(row)
    player["order"] = player.pop("sort_order")
    return player


class PostgresStorage:
    def __init__(self, *, dsn: str | None = None, **connect_kwargs: Any) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._pool: asyncpg.Pool | None = None

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
            async with self._pool.acquire() as conn:
                await conn.execute(_SCHEMA)
        return self._pool

    async def ping(self) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def commit_sale(
        self, auction_id: str, player_id: str, team_id: str, price: int
    ) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """UPDATE players
                       SET is_sold=TRUE, is_unsold=FALSE, sold_to=$3, sold_price=$4
                       WHERE auction_id=$1 AND player_id=$2
                       RETURNING *""",
                    auction_id,
                    player_id,
                    team_id,
                    price,
                )
                if row is None:
                    raise KeyError(f"player {player_id} not found in auction {auction_id}")
                status = await conn.execute(
                    """UPDATE teams
                       SET spent = spent + $3, players = array_append(players, $4)
                       WHERE auction_id=$1 AND team_id=$2""",
                    auction_id,
                    team_id,
                    price,
                    player_id,
                )
                if status == "UPDATE 0":
                    raise KeyError(f"team {team_id} not found in auction {auction_id}")
        return _player(row)

    async def mark_player_unsold(self, auction_id: str, player_id: str) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """UPDATE players SET is_sold=FALSE, is_unsold=TRUE
                   WHERE auction_id=$1 AND player_id=$2
                   RETURNING *""",
                auction_id,
                player_id,
            )
        if row is None:
            raise KeyError(f"player {player_id} not found in auction {auction_id}")
        return _player(row)

    async def list_teams(self, auction_id: str) -> list[dict[str, Any]]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM teams WHERE auction_id=$1 ORDER BY name", auction_id
            )
        return [_team(row) for row in rows]

    async def list_players(self, auction_id: str) -> list[dict[str, Any]]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM players WHERE auction_id=$1 ORDER BY sort_order", auction_id
            )
        return [_player(row) for row in rows]

    async def count_players(self, auction_id: str) -> int:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM players WHERE auction_id=$1", auction_id
            )

    async def create_team(self, team: dict[str, Any]) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """INSERT INTO teams(team_id, auction_id, name, budget, spent, players)
                   VALUES($1, $2, $3, $4, $5, $6)
                   RETURNING *""",
                team["team_id"],
                team["auction_id"],
                team["name"],
                team["budget"],
                team["spent"],
                team["players"],
            )
        return _team(row)

    async def create_player(self, player: dict[str, Any]) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """INSERT INTO players(player_id, auction_id, name, role, category, base_price,
                                       sort_order, is_sold, is_unsold, sold_to, sold_price)
                   VALUES($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                   RETURNING *""",
                player["player_id"],
                player["auction_id"],
                player["name"],
                player["role"],
                player["category"],
                player["base_price"],
                player["order"],
                player["is_sold"],
                player["is_unsold"],
                player["sold_to"],
                player["sold_price"],
            )
        return _player(row)

    async def delete_team(self, auction_id: str, team_id: str) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "DELETE FROM teams WHERE auction_id=$1 AND team_id=$2 RETURNING *",
                    auction_id,
                    team_id,
                )
                if row is None:
                    raise KeyError(f"team {team_id} not found in auction {auction_id}")
                await conn.execute(
                    """UPDATE players SET is_sold=FALSE, sold_to=NULL, sold_price=0
                       WHERE auction_id=$1 AND sold_to=$2""",
                    auction_id,
                    team_id,
                )
        return _team(row)

    async def delete_player(self, auction_id: str, player_id: str) -> dict[str, Any]:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "DELETE FROM players WHERE auction_id=$1 AND player_id=$2 RETURNING *",
                    auction_id,
                    player_id,
                )
                if row is None:
                    raise KeyError(f"player {player_id} not found in auction {auction_id}")
                if row["is_sold"] and row["sold_to"]:
                    await conn.execute(
                        """UPDATE teams
                           SET spent = spent - $3, players = array_remove(players, $4)
                           WHERE auction_id=$1 AND team_id=$2""",
                        auction_id,
                        row["sold_to"],
                        row["sold_price"],
                        player_id,
                    )
        return _player(row)
