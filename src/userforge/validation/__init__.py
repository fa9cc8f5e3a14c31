"""Field validation for user records.

- validators: one pure function per semantic type
- engine: applies them across a record with required/must_validate policy
"""

from userforge.validation.engine import ValidationEngine
from userforge.validation.types import FieldCheck, ValidationResult
from userforge.validation.validators import (
    VALIDATORS,
    ValidatorKind,
    resolve_validator,
    resolve_validator_kind,
)

__all__ = [
    "VALIDATORS",
    "FieldCheck",
    "ValidationEngine",
    "ValidationResult",
    "ValidatorKind",
    "resolve_validator",
    "resolve_validator_kind",
]
