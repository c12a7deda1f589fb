from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from people_import.parsing.mapping import TARGET_FIELDS, FieldMapping


DEFAULT_BATCH_SIZE = 50
DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024      # 10 MiB


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    """
    Runtime knobs for an import run.

    Read from the environment with `from_env()`; every value has a default.
    """
    batch_size: int = DEFAULT_BATCH_SIZE
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    actor_id: str | None = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_file_bytes < 1:
            raise ConfigError(f"max_file_bytes must be >= 1, got {self.max_file_bytes}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        `PEOPLE_IMPORT_BATCH_SIZE`, `PEOPLE_IMPORT_MAX_FILE_BYTES`, `PEOPLE_IMPORT_ACTOR`.
        The DSN is read separately by `people_import.db.connect`.
        """
        env = os.environ if environ is None else environ
        return cls(
            batch_size=_env_int(env, "PEOPLE_IMPORT_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            max_file_bytes=_env_int(env, "PEOPLE_IMPORT_MAX_FILE_BYTES", DEFAULT_MAX_FILE_BYTES),
            actor_id=env.get("PEOPLE_IMPORT_ACTOR") or None,
        )


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None



## -- mapping files

MAPPING_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["mappings"],
    "additionalProperties": False,
    "properties": {
        "mappings": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["source", "target"],
                "additionalProperties": False,
                "properties": {
                    "source": {"type": "string", "minLength": 1},
                    "target": {"enum": sorted(TARGET_FIELDS)},
                    "required": {"type": "boolean"},
                },
            },
        },
    },
}


def load_mapping_table(path: Path) -> tuple[FieldMapping, ...]:
    """
    Load a mapping table from YAML:

        mappings:
          - {source: "E-mail", target: email, required: true}
          - {source: "Full Name", target: name}

    Raises `ConfigError` on a missing file, bad YAML or a schema violation.
    """
    if not path.exists():
        raise ConfigError(f"mapping file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    try:
        jsonschema.validate(data, MAPPING_SCHEMA)
    except ValidationError as e:
        raise ConfigError(f"mapping validation failed: {e.message}") from e

    return tuple(
        FieldMapping(
            source_column=m["source"].strip(),
            target_field=m["target"],
            required=bool(m.get("required", False)),
        )
        for m in data["mappings"]
    )
