"""Tests for the RecordStore contract, run against every backend."""

import csv
from pathlib import Path

import pytest
import yaml
from sqlalchemy import create_engine, text

from userforge.core.types import FieldType, get_field_type
from userforge.errors import ConfigurationError, StorageUnavailableError
from userforge.metadata.assembler import SchemaAssembler
from userforge.persistence.adapter import RecordStore
from userforge.persistence.config import BackendKind, create_store, get_store_class
from userforge.persistence.database import DatabaseStore
from userforge.persistence.documents import DocumentStore
from userforge.persistence.flatfile import FlatFileStore
from userforge.persistence.types import StoreSetup
from userforge.query.filters import MATCH_ALL, parse_filter


@pytest.fixture
def schema():
    return SchemaAssembler(include_standard_fields=["email", "phone"]).assemble()


def full_record(schema, user_id, **values):
    record = {name: "" for name in schema.fields}
    record.update(user_id=user_id, moniker=user_id.capitalize(), user_status="OK",
                  access_level="member")
    record.update(values)
    return record


@pytest.fixture
def configure(tmp_path, schema):
    def _configure(backend, **options):
        store_cls = get_store_class(backend)
        return store_cls.configure(StoreSetup(tmp_path, schema, options))
    return _configure


@pytest.fixture
def store(configure, backend):
    result = configure(backend)
    assert result.success, result.message
    opened = create_store(backend, result.state)
    yield opened
    opened.close()


class TestFactory:
    """Backend selection."""

    @pytest.mark.parametrize("name,cls", [
        ("database", DatabaseStore),
        ("FILE", FlatFileStore),
        (" yaml ", DocumentStore),
        (BackendKind.YAML, DocumentStore),
    ])
    def test_get_store_class(self, name, cls):
        assert get_store_class(name) is cls

    def test_invalid_backend(self):
        with pytest.raises(ConfigurationError, match="Invalid backend 'ldap'"):
            get_store_class("ldap")

    def test_open_missing_storage(self, tmp_path, backend):
        state = {"storage_dir": str(tmp_path / "nowhere")}
        with pytest.raises(StorageUnavailableError):
            create_store(backend, state)


class TestContract:
    """Same inputs, same result shapes, every backend."""

    def test_satisfies_protocol(self, store):
        assert isinstance(store, RecordStore)

    def test_empty_store_lists_nothing(self, store):
        for tree in (MATCH_ALL, parse_filter("user_status=OK", ["user_status"])):
            result = store.list(tree)
            assert result.success
            assert result.records == []
            assert result.total_count == 0

    def test_insert_sets_timestamps(self, store, schema):
        result = store.insert("alice", full_record(schema, "alice", email="a@example.com"))
        assert result.success
        assert result.message == "User 'alice' created"

        fetched = store.fetch("alice")
        assert fetched.success
        record = fetched.record
        assert record["email"] == "a@example.com"
        assert record["created_date"] == record["last_mod_date"]
        assert record["created_date"] != "0000-00-00 00:00:00"

    def test_insert_duplicate(self, store, schema):
        store.insert("alice", full_record(schema, "alice"))
        result = store.insert("alice", full_record(schema, "alice", email="b@example.com"))
        assert not result.success
        assert "already exists" in result.message
        assert store.fetch("alice").record["email"] == ""

    def test_insert_requires_id_and_record(self, store, schema):
        assert not store.insert("", full_record(schema, "x1")).success
        assert not store.insert("alice", {}).success

    def test_fetch_missing(self, store):
        result = store.fetch("ghost")
        assert not result.success
        assert result.message == "User 'ghost' not found"
        assert result.record is None

    def test_fetch_is_idempotent(self, store, schema):
        store.insert("alice", full_record(schema, "alice"))
        assert store.fetch("alice").record == store.fetch("alice").record

    def test_update_merges_and_protects_system_fields(self, store, schema):
        store.insert("alice", full_record(schema, "alice", phone="5550100"))
        created = store.fetch("alice").record["created_date"]

        result = store.update("alice", {
            "email": "new@example.com",
            "user_id": "mallory",
            "created_date": "1999-01-01 00:00:00",
        })
        assert result.success

        record = store.fetch("alice").record
        assert record["user_id"] == "alice"
        assert record["email"] == "new@example.com"
        assert record["phone"] == "5550100"
        assert record["created_date"] == created
        assert not store.fetch("mallory").success

    def test_update_missing(self, store):
        result = store.update("ghost", {"email": "x@example.com"})
        assert not result.success
        assert "not found" in result.message

    def test_list_filters_and_orders(self, store, schema):
        for user_id, level in [("carol", "staff"), ("alice", "member"), ("bob", "staff")]:
            store.insert(user_id, full_record(schema, user_id, access_level=level))

        everyone = store.list(MATCH_ALL)
        assert [r["user_id"] for r in everyone.records] == ["alice", "bob", "carol"]
        assert everyone.total_count == 3

        tree = parse_filter("access_level=staff|moniker:ALI", schema.fields)
        selected = store.list(tree)
        assert [r["user_id"] for r in selected.records] == ["alice", "bob", "carol"]

        tree = parse_filter("access_level=staff;moniker!car", schema.fields)
        assert [r["user_id"] for r in store.list(tree).records] == ["bob"]

    def test_remove(self, store, schema):
        store.insert("alice", full_record(schema, "alice"))
        assert store.remove("alice").success
        assert not store.fetch("alice").success
        missing = store.remove("alice")
        assert not missing.success
        assert "not found" in missing.message

    def test_non_schema_keys_are_dropped(self, store, schema):
        """Keys outside the schema never reach storage, on insert or update."""
        result = store.insert("alice", full_record(schema, "alice", shoe="42"))
        assert result.success, result.message
        assert "shoe" not in store.fetch("alice").record

        result = store.update("alice", {"hat": "large", "email": "a@example.com"})
        assert result.success, result.message

        record = store.fetch("alice").record
        assert set(record) == set(schema.fields)
        assert record["email"] == "a@example.com"

    def test_close_twice(self, store):
        store.close()
        store.close()


class TestArchive:
    """Reconfiguring never destroys data."""

    def test_reconfigure_archives_data(self, configure, backend, schema, tmp_path):
        first = configure(backend)
        store = create_store(backend, first.state)
        store.insert("alice", full_record(schema, "alice"))
        store.close()

        second = configure(backend)
        assert second.success
        assert second.archived_to

        fresh = create_store(backend, second.state)
        assert fresh.list(MATCH_ALL).records == []
        fresh.close()

    def test_reconfigure_empty_storage_does_not_archive(self, configure, backend):
        assert configure(backend).success
        second = configure(backend)
        assert second.success
        assert second.archived_to is None


    def test_same_second_archives_are_kept(self, configure, backend, schema, monkeypatch):
        """Two archives with the same timestamp get distinct names."""
        monkeypatch.setattr(
            "userforge.persistence.records.archive_timestamp", lambda: "20260101_000000"
        )
        archives = []
        result = configure(backend)
        for user_id in ("alice", "bob"):
            store = create_store(backend, result.state)
            assert store.insert(user_id, full_record(schema, user_id)).success
            store.close()
            result = configure(backend)
            assert result.success, result.message
            archives.append(result.archived_to)

        first, second = archives
        assert first != second
        assert Path(first).name.startswith("users_20260101_000000")
        assert Path(second).name.startswith("users_20260101_000000_1")


class TestDatabaseBackend:
    def test_unique_constraint_reports_already_exists(self, configure, schema):
        state = configure("database").state
        store = DatabaseStore.open(state)
        store.insert("alice", full_record(schema, "alice"))
        # Bypass any caller-side check: the constraint alone refuses it
        result = store.insert("alice", full_record(schema, "alice"))
        assert result.message == "User 'alice' already exists"
        store.close()

    def test_archived_table_is_kept(self, configure, schema, tmp_path):
        store = DatabaseStore.open(configure("database").state)
        store.insert("alice", full_record(schema, "alice"))
        store.close()
        archived = configure("database").archived_to
        assert archived.startswith("users_")

        engine = create_engine(f"sqlite:///{tmp_path / 'users.db'}")
        with engine.connect() as conn:
            count = conn.execute(text(f'SELECT COUNT(*) FROM "{archived}"')).scalar()
        engine.dispose()
        assert count == 1

    def test_column_types_follow_field_types(self, configure, schema, tmp_path):
        configure("database")
        engine = create_engine(f"sqlite:///{tmp_path / 'users.db'}")
        with engine.connect() as conn:
            columns = conn.execute(text('PRAGMA table_info("users")')).mappings().fetchall()
        engine.dispose()

        declared = {column["name"]: column["type"] for column in columns}
        assert list(declared) == list(schema.fields)
        for name in schema.fields:
            assert declared[name] == get_field_type(schema.get(name).type).storage_type

    def test_storage_type_is_read_from_the_registry(self, schema, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "userforge.persistence.database.get_field_type",
            lambda name: FieldType(name=name, null_value="", storage_type="CLOB"),
        )
        sql = DatabaseStore._create_table_sql(StoreSetup(tmp_path, schema, {}))
        assert '"user_id" CLOB NOT NULL UNIQUE' in sql
        assert " TEXT" not in sql


class TestFlatFileBackend:
    def test_same_second_archives_keep_their_rows(self, configure, schema, tmp_path,
                                                  monkeypatch):
        monkeypatch.setattr(
            "userforge.persistence.records.archive_timestamp", lambda: "20260101_000000"
        )
        for user_id in ("alice", "bob"):
            store = FlatFileStore.open(configure("file").state)
            store.insert(user_id, full_record(schema, user_id))
        configure("file")

        archived = {}
        for name in ("users_20260101_000000.tsv", "users_20260101_000000_1.tsv"):
            with open(tmp_path / name, newline="", encoding="utf-8") as fh:
                rows = list(csv.DictReader(fh, delimiter="\t"))
            archived[name] = [row["user_id"] for row in rows]
        assert archived == {
            "users_20260101_000000.tsv": ["alice"],
            "users_20260101_000000_1.tsv": ["bob"],
        }

    def test_csv_format(self, configure, schema, tmp_path):
        result = configure("file", file_format="csv")
        assert result.state["file_name"] == "users.csv"
        store = FlatFileStore.open(result.state)
        store.insert("alice", full_record(schema, "alice", phone="555, 0100"))

        with open(tmp_path / "users.csv", newline="", encoding="utf-8") as fh:
            rows = list(csv.reader(fh))
        assert rows[0] == list(schema.fields)
        assert rows[1][schema.fields.index("phone")] == "555, 0100"

    def test_invalid_format(self, configure):
        result = configure("file", file_format="xls")
        assert not result.success
        assert "file_format" in result.message

    def test_blank_id_rows_are_not_records(self, configure, schema, tmp_path):
        store = FlatFileStore.open(configure("file").state)
        store.insert("alice", full_record(schema, "alice"))
        with open(tmp_path / "users.tsv", "a", encoding="utf-8") as fh:
            fh.write("\n\t\tOK\n")

        assert [r["user_id"] for r in store.list(MATCH_ALL).records] == ["alice"]
        assert not store.fetch("").success


class TestDocumentBackend:
    def test_one_file_per_record(self, configure, schema, tmp_path):
        store = DocumentStore.open(configure("yaml").state)
        store.insert("alice@example.com", full_record(schema, "alice@example.com"))

        path = tmp_path / "users" / "alice@example.com.yaml"
        with open(path, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        assert data["user_id"] == "alice@example.com"

    def test_path_like_ids_are_not_found(self, configure):
        store = DocumentStore.open(configure("yaml").state)
        assert not store.fetch("../users-config").success

    def test_unreadable_file_is_skipped(self, configure, schema, tmp_path):
        store = DocumentStore.open(configure("yaml").state)
        store.insert("alice", full_record(schema, "alice"))
        (tmp_path / "users" / "broken.yaml").write_text("- just\n- a list\n", encoding="utf-8")

        result = store.list(MATCH_ALL)
        assert result.success
        assert [r["user_id"] for r in result.records] == ["alice"]
