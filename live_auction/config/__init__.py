"""Configuration helpers for the auction server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"


@dataclass(frozen=True)
class ListenConfig:
    host: str
    port: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class RoomsConfig:
    acknowledge_rejections: bool
    idle_eviction_seconds: int
    eviction_interval_seconds: int


@dataclass(frozen=True)
class BroadcastConfig:
    viewer_queue_size: int


@dataclass(frozen=True)
class ServerConfig:
    listen: ListenConfig
    logging: LoggingConfig
    storage: StorageConfig
    rooms: RoomsConfig
    broadcast: BroadcastConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def parse_server_config(data: Mapping[str, Any]) -> ServerConfig:
    listen = data.get("listen", {})
    logging_section = data.get("logging", {})
    storage = data.get("storage", {})
    rooms = data.get("rooms", {})
    broadcast = data.get("broadcast", {})
    return ServerConfig(
        listen=ListenConfig(
            host=str(listen.get("host", "0.0.0.0")),
            port=int(listen.get("port", 5000)),
        ),
        logging=LoggingConfig(level=str(logging_section.get("level", "INFO")).upper()),
        storage=StorageConfig(
            backend=str(storage.get("backend", "in_memory")),
            options=dict(storage.get("options") or {}),
        ),
        rooms=RoomsConfig(
            acknowledge_rejections=bool(rooms.get("acknowledge_rejections", False)),
            idle_eviction_seconds=int(rooms.get("idle_eviction_seconds", 0)),
            eviction_interval_seconds=int(rooms.get("eviction_interval_seconds", 60)),
        ),
        broadcast=BroadcastConfig(
            viewer_queue_size=int(broadcast.get("viewer_queue_size", 256)),
        ),
    )


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("LIVE_AUCTION_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return parse_server_config(_load_yaml(path))
