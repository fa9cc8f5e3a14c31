"""Document backend: one YAML file per user record.

Records live in ``<storage_dir>/users/<user_id>.yaml``. Operations on
different ids touch different files and never interfere; two writers on
the same id race and the last write wins.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from userforge.errors import StorageUnavailableError
from userforge.persistence.records import (
    already_exists,
    archive_name,
    as_text,
    is_valid_user_id,
    not_found,
    prepare_update,
    sort_by_user_id,
    stamp_new,
)
from userforge.persistence.types import ConfigureResult, ListResult, StoreResult, StoreSetup
from userforge.query.evaluator import record_matches
from userforge.query.filters import FilterTree

logger = logging.getLogger(__name__)

RECORDS_DIR = "users"
RECORD_SUFFIX = ".yaml"


def _dump(record: Mapping[str, str], fh: Any) -> None:
    yaml.safe_dump(
        dict(record), fh,
        default_flow_style=False, sort_keys=False, allow_unicode=True,
    )


class DocumentStore:
    """YAML-file-per-record store."""

    backend_name = "yaml"

    def __init__(self, records_dir: Path | str, fields: Iterable[str]):
        self.records_dir = Path(records_dir)
        self.fields = tuple(fields)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @classmethod
    def configure(cls, setup: StoreSetup) -> ConfigureResult:
        """Create the records directory, archiving one that holds records."""
        storage_dir = Path(setup.storage_dir)
        records_dir = storage_dir / RECORDS_DIR
        archived_to = None

        try:
            if records_dir.is_dir() and any(records_dir.glob(f"*{RECORD_SUFFIX}")):
                archive = storage_dir / archive_name(
                    RECORDS_DIR, "", lambda name: (storage_dir / name).exists()
                )
                records_dir.rename(archive)
                archived_to = str(archive)
                logger.info("Archived user records to %s", archive)
            records_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            return ConfigureResult(
                success=False,
                message=f"Failed to initialize storage for YAML backend: {exc}",
            )

        logger.info("YAML backend configured at %s", records_dir)
        return ConfigureResult(
            success=True,
            message="YAML backend configured successfully",
            state={
                "storage_dir": str(storage_dir),
                "records_dir": str(records_dir),
                "fields": list(setup.schema.fields),
            },
            archived_to=archived_to,
        )

    @classmethod
    def open(cls, state: Mapping[str, Any]) -> DocumentStore:
        """Attach to a configured records directory; raises if it is missing.

        The state must carry the schema field list written by ``configure``.
        """
        records_dir = state.get("records_dir")
        if not records_dir and state.get("storage_dir"):
            records_dir = Path(state["storage_dir"]) / RECORDS_DIR
        if not records_dir or not Path(records_dir).is_dir():
            raise StorageUnavailableError(f"Records directory not found: {records_dir}")
        fields = state.get("fields")
        if not fields:
            raise StorageUnavailableError("YAML backend state has no field list")

        logger.info("Opened YAML backend at %s", records_dir)
        return cls(records_dir, fields)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _path(self, user_id: str) -> Path | None:
        """File for ``user_id``; None when the id could not name a record."""
        if not is_valid_user_id(user_id):
            return None
        return self.records_dir / f"{user_id}{RECORD_SUFFIX}"

    def _load(self, path: Path) -> dict[str, str]:
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"{path.name} does not hold a user record")
        return {str(name): as_text(value) for name, value in data.items()}

    def _save(self, path: Path, record: Mapping[str, str]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.records_dir, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                _dump(record, fh)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def insert(self, user_id: str, record: Mapping[str, Any]) -> StoreResult:
        if not user_id:
            return StoreResult(False, "Add record failed: missing user_id")
        if not record:
            return StoreResult(False, "Add record failed: missing initial record")
        path = self._path(user_id)
        if path is None:
            return StoreResult(False, f"Invalid user_id '{user_id}'")

        stamped = stamp_new(record, self.fields)
        stamped["user_id"] = user_id

        try:
            # "x" refuses to replace an existing record
            with open(path, "x", encoding="utf-8") as fh:
                _dump(stamped, fh)
        except FileExistsError:
            return StoreResult(False, already_exists(user_id))
        except (OSError, yaml.YAMLError) as exc:
            return StoreResult(False, f"Failed to create user record: {exc}")

        logger.debug("Wrote user file %s", path.name)
        return StoreResult(True, f"User '{user_id}' created")

    def fetch(self, user_id: str) -> StoreResult:
        path = self._path(user_id)
        if path is None or not path.is_file():
            return StoreResult(False, not_found(user_id))

        try:
            record = self._load(path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            return StoreResult(False, f"Failed to load user data: {exc}")
        return StoreResult(True, record=record)

    def update(self, user_id: str, updates: Mapping[str, Any]) -> StoreResult:
        path = self._path(user_id)
        if path is None or not path.is_file():
            return StoreResult(False, not_found(user_id))

        try:
            record = self._load(path)
            record.update(prepare_update(updates, self.fields))
            self._save(path, record)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            return StoreResult(False, f"Failed to update user '{user_id}': {exc}")

        logger.debug("Updated user file %s", path.name)
        return StoreResult(True, f"User '{user_id}' updated")

    def list(self, tree: FilterTree) -> ListResult:
        try:
            paths = sorted(self.records_dir.glob(f"*{RECORD_SUFFIX}"))
        except OSError as exc:
            return ListResult(success=False, message=f"Cannot read records directory: {exc}")

        records = []
        for path in paths:
            try:
                record = self._load(path)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                logger.warning("Skipping unreadable user file %s: %s", path.name, exc)
                continue
            if record_matches(tree, record):
                records.append(record)

        records = sort_by_user_id(records)
        return ListResult(records=records, total_count=len(records))

    def remove(self, user_id: str) -> StoreResult:
        path = self._path(user_id)
        if path is None or not path.is_file():
            return StoreResult(False, not_found(user_id))

        try:
            path.unlink()
        except OSError as exc:
            return StoreResult(False, f"Failed to delete user file: {exc}")

        logger.debug("Deleted user file %s", path.name)
        return StoreResult(True, f"User '{user_id}' deleted")

    def close(self) -> None:
        """Nothing is held open between calls."""
        pass
