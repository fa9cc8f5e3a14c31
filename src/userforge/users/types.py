"""Result types returned by :class:`~userforge.users.registry.UserRegistry`."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SetupResult:
    """Outcome of one-time setup.

    Attributes:
        success: False when the storage could not be configured
        message: Human-readable outcome
        config_file: Path of the written ``users-config.json``
        yaml_file: Path of the generated reference ``users-config.yaml``
        archived_to: Where pre-existing data was moved, if any
        warnings: Schema-assembly anomalies that were skipped
    """

    success: bool
    message: str = ""
    config_file: str | None = None
    yaml_file: str | None = None
    archived_to: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.config_file:
            result["config_file"] = self.config_file
        if self.yaml_file:
            result["yaml_file"] = self.yaml_file
        if self.archived_to:
            result["archived_to"] = self.archived_to
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result


@dataclass
class UserResult:
    """Outcome of a single-user operation."""

    success: bool
    message: str = ""
    user_id: str | None = None
    user: dict[str, str] | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.message:
            result["message"] = self.message
        if self.user_id:
            result["user_id"] = self.user_id
        if self.user is not None:
            result["user"] = dict(self.user)
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result


@dataclass
class UserListResult:
    """Users selected by a filter, ordered by ``user_id``."""

    success: bool = True
    user_ids: list[str] = field(default_factory=list)
    records: list[dict[str, str]] = field(default_factory=list)
    total_count: int = 0
    filter_applied: str = ""
    message: str = ""
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "user_ids": list(self.user_ids),
            "total_count": self.total_count,
            "filter_applied": self.filter_applied,
        }
        if self.message:
            result["message"] = self.message
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result


@dataclass
class ConfigResult:
    """The active configuration, rendered as the reference YAML text."""

    success: bool
    config_file: str | None = None
    yaml_text: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "yaml": self.yaml_text}
        if self.config_file:
            result["config_file"] = self.config_file
        if self.message:
            result["message"] = self.message
        return result
