"""Record-level validation.

Applies the per-field validators across an input record and enforces each
field's ``required`` / ``must_validate`` policy:

- unknown field: warning, field dropped
- missing or null value: reject when required, otherwise skipped quietly
- no validator for the field: warning, field dropped
- validator failure: reject when ``must_validate``, otherwise warning and
  the field is dropped so the stored default/null value stays in place
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from userforge.validation.types import ValidationResult
from userforge.validation.validators import resolve_validator

if TYPE_CHECKING:
    from userforge.metadata.assembler import Schema

logger = logging.getLogger(__name__)


class ValidationEngine:
    """Validates input records against an assembled schema."""

    def __init__(self, schema: Schema, skip_validation: bool = False):
        self.schema = schema
        self.skip_validation = skip_validation

    def validate(self, record: Mapping[str, Any]) -> ValidationResult:
        """Validate ``record`` and return the accepted fields plus warnings."""
        if self.skip_validation:
            return ValidationResult(
                success=True,
                valid_data=dict(record),
                message="Validation skipped (bypass enabled)",
            )

        warnings: list[str] = []
        valid_data: dict[str, str] = {}

        for field_name, value in record.items():
            if value is not None and not isinstance(value, str):
                value = str(value)

            definition = self.schema.get(field_name)
            if definition is None:
                warnings.append(
                    f"Field '{field_name}' not recognized in schema; input data skipped"
                )
                continue

            if value is None or value == definition.null_value:
                if definition.required:
                    return ValidationResult(
                        success=False,
                        message=f"{definition.label or field_name} is required",
                        field=field_name,
                        warnings=warnings,
                    )
                continue

            validator = resolve_validator(definition)
            if validator is None:
                warnings.append(f"Validator not found for '{field_name}'; input skipped")
                continue

            check = validator(record, field_name, definition)
            if check.success:
                valid_data[field_name] = value
            elif definition.must_validate:
                return ValidationResult(
                    success=False,
                    message=check.message,
                    field=field_name,
                    warnings=warnings,
                )
            else:
                warnings.append(f"{field_name}: {check.message}")

        for warning in warnings:
            logger.debug("Validation warning: %s", warning)

        return ValidationResult(success=True, valid_data=valid_data, warnings=warnings)
