"""Result types for field validation."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class FieldCheck:
    """Outcome of running one validator against one field value."""

    success: bool
    message: str = ""

    @classmethod
    def ok(cls) -> "FieldCheck":
        return cls(success=True)

    @classmethod
    def fail(cls, message: str) -> "FieldCheck":
        return cls(success=False, message=message)


@dataclass
class ValidationResult:
    """Result of validating an input record.

    Attributes:
        success: False when the whole record is rejected
        valid_data: Fields that passed validation, ready to store
        warnings: Non-fatal findings (unknown fields, dropped values)
        message: Rejection reason when ``success`` is False
        field: The field that caused a rejection, if any
    """

    success: bool
    valid_data: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    message: str = ""
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "valid_data": dict(self.valid_data),
            "warnings": list(self.warnings),
        }
        if self.message:
            result["message"] = self.message
        if self.field:
            result["field"] = self.field
        return result
