"""Persistence gateway protocol and backend factory."""

from __future__ import annotations

from typing import Protocol

from ..config import ServerConfig
from .firestore import FirestoreStorage
from .in_memory import InMemoryStorage
from .postgres import PostgresStorage
from .redis import RedisStorage


class PersistenceGateway(Protocol):
    async def ping(self) -> None: ...

    async def commit_sale(
        self, auction_id: str, player_id: str, team_id: str, price: int
    ) -> dict:
        """Mark the player sold and credit the buying team as one unit."""
        ...

    async def mark_player_unsold(self, auction_id: str, player_id: str) -> dict: ...

    async def list_teams(self, auction_id: str) -> list[dict]: ...

    async def list_players(self, auction_id: str) -> list[dict]: ...

    async def count_players(self, auction_id: str) -> int: ...

    async def create_team(self, team: dict) -> dict: ...

    async def create_player(self, player: dict) -> dict: ...

    async def delete_team(self, auction_id: str, team_id: str) -> dict:
        """Remove a team and release every player it had bought."""
        ...

    async def delete_player(self, auction_id: str, player_id: str) -> dict:
        """Remove a player, refunding its buyer when it was sold."""
        ...

    async def close(self) -> None: ...


def build_storage(config: ServerConfig) -> PersistenceGateway:
    backend = config.storage.backend
    options = dict(config.storage.options)
    if backend == "in_memory":
        return InMemoryStorage()
    if backend == "redis":
        return RedisStorage(**options)
    if backend == "postgres":
        return PostgresStorage(**options)
    if backend == "firestore":
        return FirestoreStorage(**options)
    raise ValueError(f"unknown storage backend {backend}")
