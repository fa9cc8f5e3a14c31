"""Record storage backends.

- database: SQLite table through SQLAlchemy Core
- flatfile: one TSV or CSV file
- documents: one YAML file per record
"""

from userforge.persistence.adapter import RecordStore
from userforge.persistence.config import BackendKind, create_store, get_store_class
from userforge.persistence.types import ConfigureResult, ListResult, StoreResult, StoreSetup

__all__ = [
    "BackendKind",
    "ConfigureResult",
    "ListResult",
    "RecordStore",
    "StoreResult",
    "StoreSetup",
    "create_store",
    "get_store_class",
]
