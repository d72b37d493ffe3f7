"""JSON Schema checks for viewer actions and catalog records."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas"


class SchemaRegistry:
    """One compiled validator per ``schemas/<name>.json`` file, keyed by name.

    Action payload schemas share the action's name, so ``has(action)`` tells
    the ingress layer whether a payload needs checking at all.
    """

    def __init__(self, schema_dir: Path = SCHEMA_DIR) -> None:
        self._validators: dict[str, Draft202012Validator] = {}
        for schema_path in sorted(schema_dir.glob("*.json")):
            schema = json.loads(schema_path.read_text())
            Draft202012Validator.check_schema(schema)
            self._validators[schema_path.stem] = Draft202012Validator(
                schema,
                format_checker=Draft202012Validator.FORMAT_CHECKER,
            )

    @property
    def names(self) -> list[str]:
        return sorted(self._validators)

    def has(self, schema_name: str) -> bool:
        return schema_name in self._validators

    def validate(self, schema_name: str, payload: Any) -> None:
        """Raise the most relevant ``ValidationError`` when ``payload`` does not conform."""
        validator = self._validators.get(schema_name)
        if validator is None:
            raise ValueError(f"unknown schema {schema_name}")
        error = best_match(validator.iter_errors(payload))
        if error is not None:
            raise error


@lru_cache(maxsize=1)
def get_schema_registry() -> SchemaRegistry:
    return SchemaRegistry()
