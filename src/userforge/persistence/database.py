"""Relational backend: one SQLite table, accessed through SQLAlchemy Core.

Column types come from the field-type registry (TEXT for every built-in
type); required fields are NOT NULL and ``user_id`` is
UNIQUE, so a duplicate insert that slips past the caller's existence
check is still refused and reported as "already exists".
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from userforge.core.types import get_field_type
from userforge.errors import StorageUnavailableError
from userforge.persistence.records import (
    already_exists,
    archive_name,
    as_text,
    not_found,
    prepare_update,
    stamp_new,
)
from userforge.persistence.types import ConfigureResult, ListResult, StoreResult, StoreSetup
from userforge.query.filters import FilterTree
from userforge.query.sql import compile_where, quote_identifier

logger = logging.getLogger(__name__)

DB_FILE = "users.db"
TABLE_NAME = "users"


def _engine_for(db_path: Path) -> Engine:
    return create_engine(f"sqlite:///{db_path}")


def _table_exists(conn: Any, table_name: str) -> bool:
    row = conn.execute(
        text("SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name"),
        {"name": table_name},
    ).fetchone()
    return row is not None


def _table_columns(conn: Any, table_name: str) -> tuple[str, ...]:
    rows = conn.execute(text(f"PRAGMA table_info({quote_identifier(table_name)})")).mappings()
    return tuple(row["name"] for row in rows)


class DatabaseStore:
    """SQLite-backed record store."""

    backend_name = "database"

    def __init__(self, db_path: Path | str, table_name: str = TABLE_NAME):
        self.db_path = Path(db_path)
        self.table_name = table_name
        self._engine: Engine | None = _engine_for(self.db_path)
        self.columns: tuple[str, ...] = ()

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @classmethod
    def configure(cls, setup: StoreSetup) -> ConfigureResult:
        """Create the users table, archiving a populated one first."""
        db_path = Path(setup.storage_dir) / DB_FILE
        table = quote_identifier(TABLE_NAME)
        engine = _engine_for(db_path)
        archived_to = None

        try:
            with engine.connect() as conn:
                if _table_exists(conn, TABLE_NAME):
                    count = conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar()
                    if count:
                        archived_to = archive_name(
                            TABLE_NAME, "", lambda name: _table_exists(conn, name)
                        )
                        conn.execute(text(
                            f"ALTER TABLE {table} RENAME TO {quote_identifier(archived_to)}"
                        ))
                        logger.info("Archived %d user records to table %s", count, archived_to)
                    else:
                        conn.execute(text(f"DROP TABLE {table}"))

                conn.execute(text(cls._create_table_sql(setup)))
                conn.commit()
        except SQLAlchemyError as exc:
            return ConfigureResult(
                success=False,
                message=(
                    "Database backend configuration failed:\n"
                    f"  - Database file: {db_path}\n"
                    f"  - Error: {exc}"
                ),
            )
        finally:
            engine.dispose()

        logger.info("Database backend configured at %s", db_path)
        return ConfigureResult(
            success=True,
            message="Database backend configured successfully",
            state={
                "storage_dir": str(setup.storage_dir),
                "db_file": DB_FILE,
                "db_full_path": str(db_path),
                "table_name": TABLE_NAME,
            },
            archived_to=archived_to,
        )

    @staticmethod
    def _create_table_sql(setup: StoreSetup) -> str:
        columns = []
        for name in setup.schema.fields:
            definition = setup.schema.get(name)
            field_type = get_field_type(definition.type if definition is not None else None)
            storage_type = field_type.storage_type if field_type is not None else "TEXT"
            col_def = f"{quote_identifier(name)} {storage_type}"
            if definition is not None and definition.required:
                col_def += " NOT NULL"
            if name == "user_id":
                col_def += " UNIQUE"
            columns.append(col_def)
        return (
            f"CREATE TABLE {quote_identifier(TABLE_NAME)} (\n    "
            + ",\n    ".join(columns)
            + "\n)"
        )

    @classmethod
    def open(cls, state: Mapping[str, Any]) -> DatabaseStore:
        """Attach to a configured database; raises if it cannot be reached."""
        db_path = Path(state.get("db_full_path") or Path(state.get("storage_dir") or ".") / DB_FILE)
        table_name = state.get("table_name") or TABLE_NAME

        if not db_path.is_file():
            raise StorageUnavailableError(f"Database file not found: {db_path}")

        store = cls(db_path, table_name)
        try:
            with store._connect() as conn:
                present = _table_exists(conn, table_name)
                if present:
                    store.columns = _table_columns(conn, table_name)
        except SQLAlchemyError as exc:
            store.close()
            raise StorageUnavailableError(
                f"Database backend connection failed: {db_path}: {exc}"
            ) from exc
        if not present:
            store.close()
            raise StorageUnavailableError(f"Table '{table_name}' missing from {db_path}")

        logger.info("Opened database backend at %s", db_path)
        return store

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _connect(self):
        if self._engine is None:
            raise RuntimeError("Database store is closed")
        return self._engine.connect()

    @property
    def _table(self) -> str:
        return quote_identifier(self.table_name)

    @staticmethod
    def _row_to_record(row: Mapping[str, Any]) -> dict[str, str]:
        return {name: as_text(value) for name, value in row.items()}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def insert(self, user_id: str, record: Mapping[str, Any]) -> StoreResult:
        if not user_id:
            return StoreResult(False, "Add record failed: missing user_id")
        if not record:
            return StoreResult(False, "Add record failed: missing initial record")

        stamped = stamp_new(record, self.columns)
        stamped["user_id"] = user_id
        names = list(stamped)
        columns = ", ".join(quote_identifier(n) for n in names)
        placeholders = ", ".join(f":v{i}" for i in range(len(names)))
        params = {f"v{i}": stamped[n] for i, n in enumerate(names)}

        try:
            with self._connect() as conn:
                conn.execute(
                    text(f"INSERT INTO {self._table} ({columns}) VALUES ({placeholders})"),
                    params,
                )
                conn.commit()
        except IntegrityError as exc:
            if "UNIQUE" in str(exc.orig).upper():
                return StoreResult(False, already_exists(user_id))
            return StoreResult(False, f"Failed to create user record: {exc.orig}")
        except SQLAlchemyError as exc:
            return StoreResult(False, f"Failed to create user record: {exc}")

        logger.debug("Inserted user %s", user_id)
        return StoreResult(True, f"User '{user_id}' created")

    def fetch(self, user_id: str) -> StoreResult:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    text(f"SELECT * FROM {self._table} WHERE user_id = :user_id"),
                    {"user_id": user_id},
                ).mappings().fetchone()
        except SQLAlchemyError as exc:
            return StoreResult(False, f"Failed to fetch user '{user_id}': {exc}")

        if row is None:
            return StoreResult(False, not_found(user_id))
        return StoreResult(True, record=self._row_to_record(row))

    def update(self, user_id: str, updates: Mapping[str, Any]) -> StoreResult:
        prepared = prepare_update(updates, self.columns)
        names = list(prepared)
        set_clause = ", ".join(f"{quote_identifier(n)} = :v{i}" for i, n in enumerate(names))
        params: dict[str, Any] = {f"v{i}": prepared[n] for i, n in enumerate(names)}
        params["user_id"] = user_id

        try:
            with self._connect() as conn:
                result = conn.execute(
                    text(f"UPDATE {self._table} SET {set_clause} WHERE user_id = :user_id"),
                    params,
                )
                conn.commit()
        except SQLAlchemyError as exc:
            return StoreResult(False, f"Failed to update user '{user_id}': {exc}")

        if result.rowcount == 0:
            return StoreResult(False, not_found(user_id))
        logger.debug("Updated user %s (%s)", user_id, ", ".join(names))
        return StoreResult(True, f"User '{user_id}' updated")

    def list(self, tree: FilterTree) -> ListResult:
        where, params = compile_where(tree)
        sql = f"SELECT * FROM {self._table}"
        if where:
            sql += f" WHERE {where}"
        sql += " ORDER BY user_id"

        try:
            with self._connect() as conn:
                rows = conn.execute(text(sql), params).mappings().fetchall()
        except SQLAlchemyError as exc:
            logger.error("User list query failed: %s", exc)
            return ListResult(success=False, message=f"Failed to list users: {exc}")

        records = [self._row_to_record(row) for row in rows]
        return ListResult(records=records, total_count=len(records))

    def remove(self, user_id: str) -> StoreResult:
        try:
            with self._connect() as conn:
                result = conn.execute(
                    text(f"DELETE FROM {self._table} WHERE user_id = :user_id"),
                    {"user_id": user_id},
                )
                conn.commit()
        except SQLAlchemyError as exc:
            return StoreResult(False, f"Failed to delete user '{user_id}': {exc}")

        if result.rowcount == 0:
            return StoreResult(False, not_found(user_id))
        logger.debug("Deleted user %s", user_id)
        return StoreResult(True, f"User '{user_id}' deleted")

    def close(self) -> None:
        """Release the engine's connections. Safe to call more than once."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
