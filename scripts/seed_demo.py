"""Seed demo teams and players into the configured storage backend."""

import argparse
import asyncio
from pathlib import Path

import yaml

from live_auction.catalog.service import new_player_record, new_team_record
from live_auction.config import get_server_config
from live_auction.storage import build_storage


async def seed(auction_id: str, seed_file: Path) -> None:
    data = yaml.safe_load(seed_file.read_text()) or {}
    storage = build_storage(get_server_config())
    try:
        await storage.ping()
        order = await storage.count_players(auction_id)
        for team in data.get("teams", []):
            await storage.create_team(new_team_record(auction_id, team))
        for player in data.get("players", []):
            await storage.create_player(new_player_record(auction_id, player, order))
            order += 1
    finally:
        await storage.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("auction_id")
    parser.add_argument(
        "--seed-file",
        type=Path,
        default=Path(__file__).resolve().parent / "demo_seed.yaml",
    )
    args = parser.parse_args()
    asyncio.run(seed(args.auction_id, args.seed_file))


if __name__ == "__main__":
    main()
