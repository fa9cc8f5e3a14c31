"""Flat-file backend: one delimited file (TSV or CSV) with a header row.

New records are appended. Updates and deletes read the whole file and
write it back, so each write costs O(n) in the number of records; the
rewrite goes through a temp file and ``os.replace`` so a crash never
leaves a half-written file behind. No locking is done: concurrent
writers from several processes can lose updates.
"""

from __future__ import annotations

import csv
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

from userforge.errors import StorageUnavailableError
from userforge.persistence.records import (
    already_exists,
    archive_name,
    not_found,
    prepare_update,
    sort_by_user_id,
    stamp_new,
)
from userforge.persistence.types import ConfigureResult, ListResult, StoreResult, StoreSetup
from userforge.query.evaluator import record_matches
from userforge.query.filters import FilterTree

logger = logging.getLogger(__name__)

FILE_FORMATS: dict[str, str] = {"tsv": "\t", "csv": ","}
DEFAULT_FORMAT = "tsv"


def _file_name(file_format: str) -> str:
    return f"users.{file_format}"


class FlatFileStore:
    """Delimited-file record store."""

    backend_name = "file"

    def __init__(self, storage_dir: Path | str, file_format: str = DEFAULT_FORMAT):
        if file_format not in FILE_FORMATS:
            raise ValueError(
                f"Invalid file_format: '{file_format}' (must be 'csv' or 'tsv')"
            )
        self.storage_dir = Path(storage_dir)
        self.file_format = file_format
        self.delimiter = FILE_FORMATS[file_format]

    @property
    def path(self) -> Path:
        return self.storage_dir / _file_name(self.file_format)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @classmethod
    def configure(cls, setup: StoreSetup) -> ConfigureResult:
        """Write a fresh header-only file, archiving one that holds data."""
        file_format = str(setup.options.get("file_format") or DEFAULT_FORMAT).lower()
        if file_format not in FILE_FORMATS:
            return ConfigureResult(
                success=False,
                message=f"Invalid file_format: '{file_format}' (must be 'csv' or 'tsv')",
            )

        store = cls(setup.storage_dir, file_format)
        archived_to = None

        try:
            if store.path.is_file() and store._has_data_rows():
                storage_dir = store.storage_dir
                archive = storage_dir / archive_name(
                    "users", f".{file_format}", lambda name: (storage_dir / name).exists()
                )
                store.path.rename(archive)
                archived_to = str(archive)
                logger.info("Archived user file to %s", archive)
            store._write_rows(list(setup.schema.fields), [])
        except (OSError, csv.Error) as exc:
            return ConfigureResult(
                success=False,
                message=f"Failed to initialize storage for file backend: {exc}",
            )

        logger.info("File backend configured at %s", store.path)
        return ConfigureResult(
            success=True,
            message="File backend configured successfully",
            state={
                "storage_dir": str(setup.storage_dir),
                "file_format": file_format,
                "file_name": store.path.name,
                "file_full_path": str(store.path),
            },
            archived_to=archived_to,
        )

    @classmethod
    def open(cls, state: Mapping[str, Any]) -> FlatFileStore:
        """Attach to a configured user file; raises if it is missing."""
        file_format = str(state.get("file_format") or DEFAULT_FORMAT)
        storage_dir = state.get("storage_dir")
        if not storage_dir:
            raise StorageUnavailableError("File backend state has no storage_dir")

        try:
            store = cls(storage_dir, file_format)
        except ValueError as exc:
            raise StorageUnavailableError(str(exc)) from exc

        if not store.path.is_file():
            raise StorageUnavailableError(f"User file not found: {store.path}")
        logger.info("Opened file backend at %s", store.path)
        return store

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _has_data_rows(self) -> bool:
        _, rows = self._read_rows()
        return any(any(value.strip() for value in row.values()) for row in rows)

    def _read_rows(self) -> tuple[list[str], list[dict[str, str]]]:
        """Read the header and every data row, padding short rows."""
        with open(self.path, newline="", encoding="utf-8") as fh:
            reader = csv.reader(fh, delimiter=self.delimiter)
            header = next(reader, [])
            rows = []
            for values in reader:
                if not values or not any(v.strip() for v in values):
                    continue
                values = values + [""] * (len(header) - len(values))
                rows.append(dict(zip(header, values)))
        return header, rows

    def _write_rows(self, header: list[str], rows: list[dict[str, str]]) -> None:
        """Replace the file with ``header`` and ``rows``."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.storage_dir, prefix=".users-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as fh:
                writer = csv.writer(fh, delimiter=self.delimiter)
                writer.writerow(header)
                for row in rows:
                    writer.writerow([row.get(name, "") for name in header])
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _find(self, user_id: str) -> dict[str, str] | None:
        _, rows = self._read_rows()
        for row in rows:
            if row.get("user_id") == user_id:
                return row
        return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def insert(self, user_id: str, record: Mapping[str, Any]) -> StoreResult:
        if not user_id:
            return StoreResult(False, "Add record failed: missing user_id")
        if not record:
            return StoreResult(False, "Add record failed: missing initial record")

        try:
            header, rows = self._read_rows()
            stamped = stamp_new(record, header)
            stamped["user_id"] = user_id
            if any(row.get("user_id") == user_id for row in rows):
                return StoreResult(False, already_exists(user_id))
            with open(self.path, "a", newline="", encoding="utf-8") as fh:
                writer = csv.writer(fh, delimiter=self.delimiter)
                writer.writerow([stamped.get(name, "") for name in header])
        except (OSError, csv.Error) as exc:
            return StoreResult(False, f"Failed to create user record: {exc}")

        logger.debug("Appended user %s", user_id)
        return StoreResult(True, f"User '{user_id}' created")

    def fetch(self, user_id: str) -> StoreResult:
        try:
            row = self._find(user_id) if user_id else None
        except (OSError, csv.Error) as exc:
            return StoreResult(False, f"Cannot read user file: {exc}")

        if row is None:
            return StoreResult(False, not_found(user_id))
        return StoreResult(True, record=row)

    def update(self, user_id: str, updates: Mapping[str, Any]) -> StoreResult:
        try:
            header, rows = self._read_rows()
            prepared = prepare_update(updates, header)
            target = next((row for row in rows if row.get("user_id") == user_id), None)
            if target is None or not user_id:
                return StoreResult(False, not_found(user_id))
            target.update(prepared)
            self._write_rows(header, rows)
        except (OSError, csv.Error) as exc:
            return StoreResult(False, f"Failed to update user '{user_id}': {exc}")

        logger.debug("Rewrote user file for update of %s", user_id)
        return StoreResult(True, f"User '{user_id}' updated")

    def list(self, tree: FilterTree) -> ListResult:
        try:
            _, rows = self._read_rows()
        except (OSError, csv.Error) as exc:
            logger.error("Cannot read user file %s: %s", self.path, exc)
            return ListResult(success=False, message=f"Cannot read user file: {exc}")

        # Rows without a user_id (stray or damaged lines) are not records
        records = [
            row for row in rows
            if row.get("user_id") and record_matches(tree, row)
        ]
        records = sort_by_user_id(records)
        return ListResult(records=records, total_count=len(records))

    def remove(self, user_id: str) -> StoreResult:
        try:
            header, rows = self._read_rows()
            remaining = [row for row in rows if row.get("user_id") != user_id]
            if len(remaining) == len(rows) or not user_id:
                return StoreResult(False, not_found(user_id))
            self._write_rows(header, remaining)
        except (OSError, csv.Error) as exc:
            return StoreResult(False, f"Failed to delete user '{user_id}': {exc}")

        logger.debug("Rewrote user file for delete of %s", user_id)
        return StoreResult(True, f"User '{user_id}' deleted")

    def close(self) -> None:
        """Nothing is held open between calls."""
        pass
