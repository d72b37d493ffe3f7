"""Compile the bundled schemas and check the demo seed records against them."""

import sys
from pathlib import Path

import yaml
from jsonschema import ValidationError

from live_auction.validation.validator import SchemaRegistry

SEED_FILE = Path(__file__).resolve().parent / "demo_seed.yaml"


def validate(seed_file: Path = SEED_FILE) -> int:
    registry = SchemaRegistry()
    print(f"compiled schemas: {', '.join(registry.names)}")
    seed = yaml.safe_load(seed_file.read_text()) or {}
    failures = 0
    for section, schema_name in (("teams", "team"), ("players", "player")):
        for index, record in enumerate(seed.get(section, [])):
            try:
                registry.validate(schema_name, record)
            except ValidationError as exc:
                failures += 1
                print(f"{seed_file.name}: {section}[{index}]: {exc.message}")
    return failures


if __name__ == "__main__":
    sys.exit(1 if validate() else 0)
