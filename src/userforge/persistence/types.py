"""Result and setup types shared by every record store."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from userforge.metadata.assembler import Schema


@dataclass
class StoreSetup:
    """Everything a backend needs to create its storage.

    Attributes:
        storage_dir: Directory that holds the storage (created beforehand)
        schema: The assembled schema the storage must hold
        options: Backend-specific options, e.g. ``file_format``
    """

    storage_dir: Path
    schema: Schema
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class ConfigureResult:
    """Outcome of one-time storage configuration.

    ``state`` is what the backend needs to reattach later through
    ``open()``; it is persisted in the schema record.
    """

    success: bool
    message: str = ""
    state: dict[str, Any] = field(default_factory=dict)
    archived_to: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "state": dict(self.state),
        }
        if self.archived_to:
            result["archived_to"] = self.archived_to
        return result


@dataclass
class StoreResult:
    """Outcome of a single-record operation."""

    success: bool
    message: str = ""
    record: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.record is not None:
            result["record"] = dict(self.record)
        return result


@dataclass
class ListResult:
    """Records selected by a ``list`` call, ordered by ``user_id``."""

    records: list[dict[str, str]] = field(default_factory=list)
    total_count: int = 0
    success: bool = True
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "records": [dict(r) for r in self.records],
            "total_count": self.total_count,
        }
        if self.message:
            result["message"] = self.message
        return result
