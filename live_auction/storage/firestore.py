"""Firestore storage backend leveraging google-cloud-firestore."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account


class FirestoreStorage:
    def __init__(
        self,
        *,
        project_id: str,
        teams_collection: str = "teams",
        players_collection: str = "players",
        credentials_path: str | None = None,
    ) -> None:
        if not project_id:
            raise ValueError("project_id required for firestore backend")
        client_kwargs: dict[str, Any] = {"project": project_id}
        if credentials_path:
            client_kwargs["credentials"] = service_account.Credentials.from_service_account_file(
                credentials_path
            )
        self._client = firestore.Client(**client_kwargs)
        self._teams_collection_name = teams_collection
        self._players_collection_name = players_collection

    def _teams(self):
        return self._client.collection(self._teams_collection_name)

    def _players(self):
        return self._client.collection(self._players_collection_name)

    async def _run(self, func: Callable, *args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)

    async def _get(self, collection, doc_id: str, auction_id: str, kind: str) -> dict[str, Any]:
        doc = await self._run(collection.document(doc_id).get)
        if not doc.exists:
            raise KeyError(f"{kind} {doc_id} not found in auction {auction_id}")
        data = doc.to_dict()
        if data.get("auction_id") != auction_id:
            raise KeyError(f"{kind} {doc_id} not found in auction {auction_id}")
        return data

    async def _query(self, collection, *filters: FieldFilter) -> list[dict[str, Any]]:
        query = collection
        for field_filter in filters:
            query = query.where(filter=field_filter)
        docs = await self._run(lambda: list(query.stream()))
        return [doc.to_dict() for doc in docs]

    async def ping(self) -> None:
        await self._run(lambda: list(self._teams().limit(1).stream()))

    async def close(self) -> None:
        await self._run(self._client.close)

    async def commit_sale(
        self, auction_id: str, player_id: str, team_id: str, price: int
    ) -> dict[str, Any]:
        player = await self._get(self._players(), player_id, auction_id, "player")
        await self._get(self._teams(), team_id, auction_id, "team")
        updates = {"is_sold": True, "is_unsold": False, "sold_to": team_id, "sold_price": price}
        batch = self._client.batch()
        batch.update(self._players().document(player_id), updates)
        batch.update(
            self._teams().document(team_id),
            {"spent": firestore.Increment(price), "players": firestore.ArrayUnion([player_id])},
        )
        await self._run(batch.commit)
        player.update(updates)
        return player

    async def mark_player_unsold(self, auction_id: str, player_id: str) -> dict[str, Any]:
        player = await self._get(self._players(), player_id, auction_id, "player")
        updates = {"is_sold": False, "is_unsold": True}
        await self._run(self._players().document(player_id).update, updates)
        player.update(updates)
        return player

    async def list_teams(self, auction_id: str) -> list[dict[str, Any]]:
        teams = await self._query(self._teams(), FieldFilter("auction_id", "==", auction_id))
        return sorted(teams, key=lambda team: team["name"])

    async def list_players(self, auction_id: str) -> list[dict[str, Any]]:
        players = await self._query(self._players(), FieldFilter("auction_id", "==", auction_id))
        return sorted(players, key=lambda player: player["order"])

    async def count_players(self, auction_id: str) -> int:
        return len(await self.list_players(auction_id))

    async def create_team(self, team: dict[str, Any]) -> dict[str, Any]:
        await self._run(self._teams().document(team["team_id"]).set, team)
        return team

    async def create_player(self, player: dict[str, Any]) -> dict[str, Any]:
        await self._run(self._players().document(player["player_id"]).set, player)
        return player

    async def delete_team(self, auction_id: str, team_id: str) -> dict[str, Any]:
        team = await self._get(self._teams(), team_id, auction_id, "team")
        released = await self._query(
            self._players(),
            FieldFilter("auction_id", "==", auction_id),
            FieldFilter("sold_to", "==", team_id),
        )
        batch = self._client.batch()
        for player in released:
            batch.update(
                self._players().document(player["player_id"]),
                {"is_sold": False, "sold_to": None, "sold_price": 0},
            )
        batch.delete(self._teams().document(team_id))
        await self._run(batch.commit)
        return team

    async def delete_player(self, auction_id: str, player_id: str) -> dict[str, Any]:
        player = await self._get(self._players(), player_id, auction_id, "player")
        batch = self._client.batch()
        if player.get("is_sold") and player.get("sold_to"):
            batch.update(
                self._teams().document(player["sold_to"]),
                {
                    "spent": firestore.Increment(-player["sold_price"]),
                    "players": firestore.ArrayRemove([player_id]),
                },
            )
        batch.delete(self._players().document(player_id))
        await self._run(batch.commit)
        return player
