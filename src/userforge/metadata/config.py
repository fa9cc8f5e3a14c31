"""Setup configuration, runtime settings and the persisted schema record.

Setup configuration is a plain mapping validated against
``schemas/setup.schema.json``. The schema record is what setup writes to
``users-config.json`` and every later load reads back: it carries the
assembled schema plus the state the backend needs to reattach.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from userforge.errors import ConfigurationError
from userforge.metadata.assembler import Schema

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"

SCHEMA_VERSION = "1.0"
CONFIG_FILE = "users-config.json"
REFERENCE_FILE = "users-config.yaml"

_TRUE_VALUES = ("1", "true", "yes", "on")


@lru_cache(maxsize=1)
def _setup_validator() -> Draft202012Validator:
    with (_SCHEMAS_DIR / "setup.schema.json").open(encoding="utf-8") as fh:
        schema = json.load(fh)
    return Draft202012Validator(schema)


def _json_path(error: ValidationError) -> str:
    """Convert a jsonschema ValidationError path to a readable string."""
    parts = []
    for p in error.absolute_path:
        if isinstance(p, int):
            parts.append(f"[{p}]")
        else:
            parts.append(str(p))
    return "/".join(parts).replace("/[", "[")


def validate_setup_config(config: Any) -> None:
    """Check a setup mapping against the setup JSON Schema.

    Raises:
        ConfigurationError: Listing every violation found.
    """
    if not isinstance(config, Mapping):
        raise ConfigurationError(
            f"Setup configuration must be a mapping, got {type(config).__name__}"
        )

    issues = []
    for error in sorted(_setup_validator().iter_errors(dict(config)), key=_json_path):
        path = _json_path(error)
        issues.append(f"{path}: {error.message}" if path else error.message)

    if issues:
        raise ConfigurationError("Invalid setup configuration", issues)


@dataclass
class UsersSettings:
    """Runtime settings read from the environment."""

    skip_validation: bool = False

    @classmethod
    def from_env(cls) -> UsersSettings:
        """Create settings from environment variables.

        ``USERS_SKIP_VALIDATION``: any of 1/true/yes/on enables the
        validation bypass (trusted bulk imports only).
        """
        raw = os.environ.get("USERS_SKIP_VALIDATION", "")
        return cls(skip_validation=raw.strip().lower() in _TRUE_VALUES)


@dataclass
class SchemaRecord:
    """The hand-off artifact between setup and every later load."""

    backend: str
    backend_state: dict[str, Any]
    schema: Schema
    generated: str = ""
    version: str = SCHEMA_VERSION
    storage_initialized: bool = True
    options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        schema = self.schema.to_dict()
        return {
            "version": self.version,
            "generated": self.generated,
            "backend": self.backend,
            "backend_state": dict(self.backend_state),
            "storage_initialized": self.storage_initialized,
            "options": dict(self.options),
            "fields": schema["fields"],
            "field_definitions": schema["field_definitions"],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SchemaRecord:
        """Rebuild a record read back from ``users-config.json``.

        Raises:
            ConfigurationError: When a required section is missing.
        """
        missing = [
            key for key in ("backend", "backend_state", "fields", "field_definitions")
            if not data.get(key)
        ]
        if missing:
            raise ConfigurationError("Schema record is incomplete", [
                f"missing '{key}'" for key in missing
            ])

        schema = Schema.from_dict(data)
        undefined = [name for name in schema.fields if name not in schema]
        if undefined:
            raise ConfigurationError("Schema record is inconsistent", [
                f"field '{name}' has no definition" for name in undefined
            ])

        return cls(
            backend=str(data["backend"]),
            backend_state=dict(data["backend_state"]),
            schema=schema,
            generated=str(data.get("generated") or ""),
            version=str(data.get("version") or SCHEMA_VERSION),
            storage_initialized=bool(data.get("storage_initialized", True)),
            options=dict(data.get("options") or {}),
        )

    def save(self, path: Path) -> None:
        with path.open("w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2)
            fh.write("\n")

    @classmethod
    def load(cls, path: Path | str) -> SchemaRecord:
        """Read a schema record file.

        Raises:
            ConfigurationError: Missing, unreadable or malformed file.
        """
        path = Path(path)
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found: {path}")
        try:
            with path.open(encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} does not hold a mapping")

        logger.info("Loaded schema record from %s", path)
        return cls.from_dict(data)
