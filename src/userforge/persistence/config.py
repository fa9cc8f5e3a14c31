"""Backend selection and store factory."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from userforge.errors import ConfigurationError

if TYPE_CHECKING:
    from userforge.persistence.adapter import RecordStore


class BackendKind(str, Enum):
    """Storage backends a user store can be configured with."""

    DATABASE = "database"
    FILE = "file"
    YAML = "yaml"

    @classmethod
    def parse(cls, value: Any) -> BackendKind:
        """Resolve a backend name, case-insensitively.

        Raises:
            ConfigurationError: For a missing or unsupported name.
        """
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().lower()
        try:
            return cls(name)
        except ValueError:
            valid = ", ".join(kind.value for kind in cls)
            raise ConfigurationError(
                f"Invalid backend '{value}' (must be one of: {valid})"
            ) from None


def get_store_class(backend: BackendKind | str) -> type[RecordStore]:
    """Return the store class implementing ``backend``."""
    kind = BackendKind.parse(backend)

    if kind is BackendKind.DATABASE:
        from userforge.persistence.database import DatabaseStore

        return DatabaseStore

    if kind is BackendKind.FILE:
        from userforge.persistence.flatfile import FlatFileStore

        return FlatFileStore

    from userforge.persistence.documents import DocumentStore

    return DocumentStore


def create_store(backend: BackendKind | str, state: Mapping[str, Any]) -> RecordStore:
    """Open a configured store from its persisted backend state.

    Args:
        backend: Backend name recorded at setup time.
        state: The ``state`` its ``configure`` call returned.

    Raises:
        ConfigurationError: For an unsupported backend name.
        StorageUnavailableError: When the storage cannot be reached.
    """
    return get_store_class(backend).open(state)
