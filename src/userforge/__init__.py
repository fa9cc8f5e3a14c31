"""userforge: user-record management over a configurable field schema.

Records live in one of three interchangeable backends (SQLite table,
delimited flat file, one YAML file per record) behind the same CRUD API.
"""

from userforge.errors import ConfigurationError, StorageUnavailableError
from userforge.users import (
    ConfigResult,
    SetupResult,
    UserListResult,
    UserRegistry,
    UserResult,
)

__version__ = "0.1.0"

__all__ = [
    "ConfigResult",
    "ConfigurationError",
    "SetupResult",
    "StorageUnavailableError",
    "UserListResult",
    "UserRegistry",
    "UserResult",
    "__version__",
]
