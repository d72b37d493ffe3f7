"""JSON codec for viewer messages."""

from __future__ import annotations

from typing import Any

import orjson


def encode_message(envelope: dict[str, Any]) -> str:
    return orjson.dumps(envelope).decode()


def decode_message(raw: str | bytes) -> dict[str, Any]:
    try:
        message = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise ValueError(f"message is not valid JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise ValueError("message must be a JSON object")
    return message
