"""User-level API: setup, load and CRUD over a configured store."""

from userforge.users.registry import UserRegistry
from userforge.users.types import ConfigResult, SetupResult, UserListResult, UserResult

__all__ = [
    "ConfigResult",
    "SetupResult",
    "UserListResult",
    "UserRegistry",
    "UserResult",
]
