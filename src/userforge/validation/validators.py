"""Per-type field validators.

Each validator receives ``(record, field_name, definition)`` and returns a
:class:`FieldCheck`. Validators never mutate the definition or the record
and can be called on their own, e.g. to drive UI hints.
"""

import re
from enum import Enum
from typing import Any, Callable, Mapping

from userforge.metadata.catalog import FieldDefinition
from userforge.validation.types import FieldCheck


class ValidatorKind(str, Enum):
    """The closed set of validators a field can be checked with."""

    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    DATE = "date"
    TIMESTAMP = "timestamp"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    ENUM = "enum"
    MONIKER = "moniker"
    NAME = "name"

    @classmethod
    def from_name(cls, name: Any) -> "ValidatorKind | None":
        """Look up a kind by name; ``None`` when the name is not a validator."""
        if not isinstance(name, str):
            return None
        try:
            return cls(name)
        except ValueError:
            return None


FieldValidator = Callable[[Mapping[str, Any], str, FieldDefinition], FieldCheck]


# =============================================================================
# Format Patterns
# =============================================================================

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

PHONE_PATTERN = re.compile(r"^\+?[0-9 ()\-]+$")

DATE_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

TIMESTAMP_PATTERN = re.compile(
    r"^[0-9]{4}-[0-9]{2}-[0-9]{2}[T ][0-9]{2}:[0-9]{2}:[0-9]{2}$"
)

INTEGER_PATTERN = re.compile(r"^-?[0-9]+$")

MONIKER_PATTERN = re.compile(r"^[a-zA-Z0-9]{2,24}$")

# Login identifier; email addresses are allowed
USER_ID_PATTERN = re.compile(r"^[a-zA-Z0-9._@-]{2,30}$")

# Letters (Latin-1 and Latin Extended accented included), apostrophes,
# hyphens and periods; words separated by single spaces.
_NAME_CHARS = "a-zA-ZÀ-ɏ'’.\\-"
NAME_PATTERN = re.compile(rf"^[{_NAME_CHARS}]+(?: [{_NAME_CHARS}]+)*$")

PHONE_MIN_LENGTH = 7


def _matches(pattern: re.Pattern, value: str) -> bool:
    # fullmatch so a trailing newline never slips past "$"
    return pattern.fullmatch(value) is not None


def _value(record: Mapping[str, Any], field_name: str) -> str:
    value = record.get(field_name)
    return "" if value is None else str(value)


def _label(field_name: str, definition: FieldDefinition) -> str:
    return definition.label or field_name


# =============================================================================
# Validators
# =============================================================================


def validate_text(record, field_name, definition) -> FieldCheck:
    value = _value(record, field_name)
    if definition.max_length and len(value) > definition.max_length:
        return FieldCheck.fail(
            f"{_label(field_name, definition)} must not exceed maximum length "
            f"of {definition.max_length} characters"
        )
    return FieldCheck.ok()


def validate_email(record, field_name, definition) -> FieldCheck:
    if _matches(EMAIL_PATTERN, _value(record, field_name)):
        return FieldCheck.ok()
    return FieldCheck.fail(f"{_label(field_name, definition)} must be a valid email address")


def validate_phone(record, field_name, definition) -> FieldCheck:
    value = _value(record, field_name)
    if _matches(PHONE_PATTERN, value) and len(value) >= PHONE_MIN_LENGTH:
        return FieldCheck.ok()
    return FieldCheck.fail(
        f"{_label(field_name, definition)} must be a valid phone number "
        f"of at least {PHONE_MIN_LENGTH} characters"
    )


def validate_date(record, field_name, definition) -> FieldCheck:
    if _matches(DATE_PATTERN, _value(record, field_name)):
        return FieldCheck.ok()
    return FieldCheck.fail(
        f"Invalid date format for {_label(field_name, definition)} (expected YYYY-MM-DD)"
    )


def validate_timestamp(record, field_name, definition) -> FieldCheck:
    if _matches(TIMESTAMP_PATTERN, _value(record, field_name)):
        return FieldCheck.ok()
    return FieldCheck.fail(
        f"Invalid timestamp format for {_label(field_name, definition)} "
        "(expected YYYY-MM-DD HH:MM:SS)"
    )


def validate_boolean(record, field_name, definition) -> FieldCheck:
    value = _value(record, field_name)
    if value in ("0", "1"):
        return FieldCheck.ok()
    return FieldCheck.fail(
        f"Invalid value '{value}' for boolean {_label(field_name, definition)} (use 1 or 0)"
    )


def validate_integer(record, field_name, definition) -> FieldCheck:
    if _matches(INTEGER_PATTERN, _value(record, field_name)):
        return FieldCheck.ok()
    return FieldCheck.fail(f"{_label(field_name, definition)} must be a whole number")


def validate_enum(record, field_name, definition) -> FieldCheck:
    value = _value(record, field_name)
    if value in definition.clean_options:
        return FieldCheck.ok()
    return FieldCheck.fail(
        f"{_label(field_name, definition)} must be one of: "
        + ", ".join(definition.clean_options)
    )


def validate_moniker(record, field_name, definition) -> FieldCheck:
    if _matches(MONIKER_PATTERN, _value(record, field_name)):
        return FieldCheck.ok()
    return FieldCheck.fail(
        f"{_label(field_name, definition)} is required as 2-24 alphanumeric "
        "characters, no spaces"
    )


def validate_name(record, field_name, definition) -> FieldCheck:
    if _matches(NAME_PATTERN, _value(record, field_name)):
        return FieldCheck.ok()
    return FieldCheck.fail(f"{_label(field_name, definition)} contains invalid characters")


VALIDATORS: Mapping[ValidatorKind, FieldValidator] = {
    ValidatorKind.TEXT: validate_text,
    ValidatorKind.EMAIL: validate_email,
    ValidatorKind.PHONE: validate_phone,
    ValidatorKind.DATE: validate_date,
    ValidatorKind.TIMESTAMP: validate_timestamp,
    ValidatorKind.BOOLEAN: validate_boolean,
    ValidatorKind.INTEGER: validate_integer,
    ValidatorKind.ENUM: validate_enum,
    ValidatorKind.MONIKER: validate_moniker,
    ValidatorKind.NAME: validate_name,
}


def is_known_validator(name: Any) -> bool:
    return ValidatorKind.from_name(name) is not None


def resolve_validator_kind(definition: FieldDefinition) -> ValidatorKind | None:
    """Pick the validator for a field: ``validate_as`` first, then ``type``."""
    return (
        ValidatorKind.from_name(definition.validate_as)
        or ValidatorKind.from_name(definition.type)
    )


def resolve_validator(definition: FieldDefinition) -> FieldValidator | None:
    """Get the validator function for a field, or None if it has none."""
    kind = resolve_validator_kind(definition)
    if kind is None:
        return None
    return VALIDATORS[kind]
