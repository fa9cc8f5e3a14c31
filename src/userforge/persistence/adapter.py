"""RecordStore Protocol: shared interface for all storage backends."""

from typing import Any, Mapping, Protocol, runtime_checkable

from userforge.persistence.types import ConfigureResult, ListResult, StoreResult, StoreSetup
from userforge.query.filters import FilterTree


@runtime_checkable
class RecordStore(Protocol):
    """Interface every backend implements identically.

    Callers get the same inputs, result shapes and failure messages from
    the database, flat-file and document backends. Only ``configure`` and
    ``open`` may raise (storage unreachable); CRUD failures come back as
    results with ``success=False``.
    """

    backend_name: str

    @classmethod
    def configure(cls, setup: StoreSetup) -> ConfigureResult: ...

    @classmethod
    def open(cls, state: Mapping[str, Any]) -> "RecordStore": ...

    def insert(self, user_id: str, record: Mapping[str, Any]) -> StoreResult: ...

    def fetch(self, user_id: str) -> StoreResult: ...

    def update(self, user_id: str, updates: Mapping[str, Any]) -> StoreResult: ...

    def list(self, tree: FilterTree) -> ListResult: ...

    def remove(self, user_id: str) -> StoreResult: ...

    def close(self) -> None: ...
