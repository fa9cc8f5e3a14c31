"""User-level CRUD over a configured store.

Two-phase lifecycle:

1. ``UserRegistry.setup(config)`` (one time) assembles the field schema,
   creates the backend storage and writes ``users-config.json`` plus a
   readable ``users-config.yaml`` into the storage directory.
2. ``UserRegistry.load(config_file)`` (every run) reads the schema record
   back and reattaches to the storage.

Usage:
    UserRegistry.setup({"storage_dir": "data/users", "backend": "yaml"})

    with UserRegistry.load("data/users/users-config.json") as users:
        users.register_user({"user_id": "alice", "moniker": "Alice01"})
        users.list_users("access_level=member|access_level=staff")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from userforge.core.clock import current_timestamp
from userforge.errors import StorageUnavailableError
from userforge.metadata.assembler import Schema, assemble_schema
from userforge.metadata.catalog import FieldDefinition
from userforge.metadata.config import (
    CONFIG_FILE,
    SchemaRecord,
    UsersSettings,
    validate_setup_config,
)
from userforge.metadata.reference import render_reference, write_reference
from userforge.persistence.adapter import RecordStore
from userforge.persistence.config import BackendKind, create_store, get_store_class
from userforge.persistence.records import (
    READONLY_FIELDS,
    already_exists,
    archive_name,
    is_valid_user_id,
    not_found,
)
from userforge.persistence.types import StoreSetup
from userforge.query.filters import parse_filter
from userforge.users.types import ConfigResult, SetupResult, UserListResult, UserResult
from userforge.validation.engine import ValidationEngine
from userforge.validation.types import ValidationResult
from userforge.validation.validators import MONIKER_PATTERN, resolve_validator

logger = logging.getLogger(__name__)

USER_ID_MESSAGE = "user_id is required as 2-30 characters, email OK, no spaces"
MONIKER_MESSAGE = "moniker is required as 2-24 alphanumeric characters, no spaces"

# Managed by the stores; callers can never set them
_SYSTEM_MANAGED = ("created_date", "last_mod_date")


def _clean(data: Mapping[str, Any]) -> dict[str, str]:
    """Stringify values, map None to "" and trim surrounding whitespace."""
    return {
        str(name): ("" if value is None else str(value)).strip()
        for name, value in data.items()
    }


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class UserRegistry:
    """CRUD operations on user records, independent of the backend."""

    def __init__(
        self,
        record: SchemaRecord,
        store: RecordStore,
        config_file: Path | str | None = None,
        skip_validation: bool | None = None,
    ):
        if skip_validation is None:
            skip_validation = UsersSettings.from_env().skip_validation
        self.record = record
        self.store = store
        self.config_file = Path(config_file) if config_file else None
        self.engine = ValidationEngine(record.schema, skip_validation=skip_validation)

    @property
    def schema(self) -> Schema:
        return self.record.schema

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def setup(cls, config: Mapping[str, Any]) -> SetupResult:
        """Configure storage and write the schema record.

        Re-running setup against existing storage archives the old data
        and the old ``users-config.json`` under timestamped names.

        Raises:
            ConfigurationError: Invalid setup configuration.
            StorageUnavailableError: The storage directory cannot be created.
        """
        validate_setup_config(config)
        backend = BackendKind.parse(config["backend"])
        storage_dir = Path(config["storage_dir"])

        try:
            storage_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(
                f"Cannot create storage directory {storage_dir}: {exc}"
            ) from exc

        schema, warnings = assemble_schema(config)

        options: dict[str, Any] = {}
        if backend is BackendKind.FILE:
            options["file_format"] = str(config.get("file_format") or "tsv").lower()

        configured = get_store_class(backend).configure(
            StoreSetup(storage_dir=storage_dir, schema=schema, options=options)
        )
        if not configured.success:
            logger.error("Storage configuration failed: %s", configured.message)
            return SetupResult(success=False, message=configured.message, warnings=warnings)

        record = SchemaRecord(
            backend=backend.value,
            backend_state=configured.state,
            schema=schema,
            generated=current_timestamp(),
            options=options,
        )

        config_file = storage_dir / CONFIG_FILE
        try:
            if config_file.is_file():
                archived = storage_dir / archive_name(
                    config_file.stem, config_file.suffix,
                    lambda name: (storage_dir / name).exists(),
                )
                config_file.rename(archived)
                logger.info("Archived previous configuration to %s", archived)
            record.save(config_file)
            yaml_file = write_reference(record, storage_dir)
        except OSError as exc:
            return SetupResult(
                success=False,
                message=f"Failed to write config file: {config_file}\nError: {exc}",
                warnings=warnings,
            )

        logger.info("User store configured at %s (%s backend)", storage_dir, backend.value)
        return SetupResult(
            success=True,
            message="Users system configured successfully",
            config_file=str(config_file),
            yaml_file=str(yaml_file),
            archived_to=configured.archived_to,
            warnings=warnings,
        )

    @classmethod
    def load(
        cls, config_file: Path | str, skip_validation: bool | None = None
    ) -> UserRegistry:
        """Reattach to a configured user store.

        Raises:
            ConfigurationError: Missing or corrupt configuration file.
            StorageUnavailableError: The configured storage is gone.
        """
        record = SchemaRecord.load(config_file)
        store = create_store(record.backend, record.backend_state)
        return cls(record, store, config_file=config_file, skip_validation=skip_validation)

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> UserRegistry:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _initial_record(self) -> dict[str, str]:
        """Every schema field at its default, else its null value."""
        initial = {}
        for name in self.schema.fields:
            definition = self.schema.get(name)
            if definition is not None and definition.default is not None:
                initial[name] = definition.default
            elif definition is not None:
                initial[name] = definition.null_value or ""
            else:
                initial[name] = ""
        return initial

    def _storable(self, data: Mapping[str, str]) -> dict[str, str]:
        # Bypassed validation passes input through verbatim; only schema
        # fields outside the system-managed ones reach the store.
        return {
            name: value for name, value in data.items()
            if name in self.schema and name not in READONLY_FIELDS
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_user_data(self, data: Mapping[str, Any]) -> ValidationResult:
        """Run the validation engine over ``data`` without storing anything."""
        return self.engine.validate(_clean(data))

    def register_user(self, data: Mapping[str, Any]) -> UserResult:
        """Create a user from ``data``.

        ``user_id`` and ``moniker`` are mandatory. Other fields are
        validated first; the stored record is the full field set with
        defaults applied, overlaid with the accepted values.
        """
        if not isinstance(data, Mapping):
            return UserResult(False, "User data must be a mapping")

        cleaned = _clean(data)
        for name in _SYSTEM_MANAGED:
            cleaned.pop(name, None)

        user_id = cleaned.pop("user_id", "")
        if not is_valid_user_id(user_id):
            return UserResult(False, USER_ID_MESSAGE)

        moniker = cleaned.pop("moniker", "")
        if MONIKER_PATTERN.fullmatch(moniker) is None:
            return UserResult(False, MONIKER_MESSAGE, user_id=user_id)

        if self.store.fetch(user_id).success:
            return UserResult(False, already_exists(user_id), user_id=user_id)

        validation = self.engine.validate(cleaned)
        if not validation.success:
            return UserResult(
                False, validation.message, user_id=user_id, warnings=validation.warnings
            )

        initial = self._initial_record()
        initial.update(self._storable(validation.valid_data))
        initial["user_id"] = user_id
        initial["moniker"] = moniker

        result = self.store.insert(user_id, initial)
        if not result.success:
            return UserResult(False, result.message, user_id=user_id, warnings=validation.warnings)

        logger.info("Registered user %s", user_id)
        return UserResult(
            True, f"User '{user_id}' created", user_id=user_id, warnings=validation.warnings
        )

    def get_user(self, user_id: str, fields: Iterable[str] | None = None) -> UserResult:
        """Fetch one user, optionally projected onto ``fields`` (plus ``user_id``)."""
        if not _has_text(user_id):
            return UserResult(False, "user_id is required")

        fetched = self.store.fetch(user_id)
        if not fetched.success:
            return UserResult(False, fetched.message, user_id=user_id)

        user = fetched.record or {}
        if fields is not None:
            selected = {name: user[name] for name in fields if name in user}
            selected["user_id"] = user.get("user_id", user_id)
            user = selected

        return UserResult(True, user_id=user_id, user=user)

    def update_user(self, user_id: str, updates: Mapping[str, Any]) -> UserResult:
        """Validate ``updates`` and merge the accepted fields into the record.

        ``user_id``, ``created_date`` and ``last_mod_date`` are ignored.
        """
        if not _has_text(user_id):
            return UserResult(False, "user_id is required")
        if not isinstance(updates, Mapping):
            return UserResult(False, "Updates must be a mapping", user_id=user_id)

        if not self.store.fetch(user_id).success:
            return UserResult(False, not_found(user_id), user_id=user_id)

        cleaned = _clean(updates)
        for name in READONLY_FIELDS:
            cleaned.pop(name, None)

        validation = self.engine.validate(cleaned)
        if not validation.success:
            return UserResult(
                False, validation.message, user_id=user_id, warnings=validation.warnings
            )

        result = self.store.update(user_id, self._storable(validation.valid_data))
        if not result.success:
            return UserResult(False, result.message, user_id=user_id, warnings=validation.warnings)

        logger.info("Updated user %s", user_id)
        return UserResult(
            True, f"User '{user_id}' updated", user_id=user_id, warnings=validation.warnings
        )

    def list_users(self, filter_string: str | None = "") -> UserListResult:
        """List users matching ``filter_string`` (all users when empty).

        Filter syntax: ``field=value`` conditions joined by ``;`` (AND),
        groups joined by ``|`` (OR). Operators: ``=`` exact, ``:``
        contains, ``!`` does not contain, ``>``/``<`` string comparison.
        """
        tree = parse_filter(filter_string, self.schema.fields)
        listed = self.store.list(tree)
        applied = filter_string.strip() if _has_text(filter_string) else ""

        if not listed.success:
            return UserListResult(
                success=False,
                message=listed.message,
                filter_applied=applied,
                warnings=list(tree.warnings),
            )

        return UserListResult(
            success=True,
            user_ids=[record.get("user_id", "") for record in listed.records],
            records=listed.records,
            total_count=listed.total_count,
            filter_applied=applied,
            warnings=list(tree.warnings),
        )

    def delete_user(self, user_id: str) -> UserResult:
        if not _has_text(user_id):
            return UserResult(False, "user_id is required")

        if not self.store.fetch(user_id).success:
            return UserResult(False, not_found(user_id), user_id=user_id)

        result = self.store.remove(user_id)
        if result.success:
            logger.info("Deleted user %s", user_id)
        return UserResult(result.success, result.message, user_id=user_id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_user_fields(self) -> list[str]:
        return list(self.schema.fields)

    def get_field_definition(self, field_name: str) -> FieldDefinition | None:
        return self.schema.get(field_name)

    def get_field_hints(self, field_name: str) -> dict[str, Any] | None:
        """Attributes a form needs to render ``field_name``."""
        definition = self.schema.get(field_name)
        if definition is None:
            return None
        return {
            "label": definition.label or field_name,
            "type": definition.type,
            "max_length": definition.max_length,
            "options": list(definition.clean_options or definition.options),
            "description": definition.description,
            "required": definition.required,
        }

    def get_field_validator(self, field_name: str) -> Callable[..., Any] | None:
        definition = self.schema.get(field_name)
        if definition is None:
            return None
        return resolve_validator(definition)

    def show_config(self) -> ConfigResult:
        storage_dir = self.record.backend_state.get("storage_dir") or (
            self.config_file.parent if self.config_file else Path(".")
        )
        return ConfigResult(
            success=True,
            config_file=str(self.config_file) if self.config_file else None,
            yaml_text=render_reference(self.record, storage_dir),
        )
