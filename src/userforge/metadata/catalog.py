"""Built-in field definitions for user records.

The catalog is built once at import time and never mutated. The schema
assembler derives per-setup definitions from it with ``dataclasses.replace``.
"""

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping

from userforge.core.types import get_null_value

DEFAULT_MARKER = "*"


@dataclass(frozen=True)
class FieldDefinition:
    """One attribute of a user record.

    ``default`` of ``None`` means "unset"; ``clean_options`` mirrors
    ``options`` with the default marker stripped and is what enum
    validation checks against. Attributes the library does not know
    about (supplied through overrides or app field definitions) are kept
    in ``extras`` so the definition still round-trips.
    """

    field_name: str
    category: str
    type: str = "text"
    validate_as: str | None = None
    label: str = ""
    description: str = ""
    required: bool = False
    must_validate: bool = False
    options: tuple[str, ...] = ()
    clean_options: tuple[str, ...] = ()
    default: str | None = None
    null_value: str = ""
    max_length: int | None = None
    extras: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "field_name": self.field_name,
            "category": self.category,
            "type": self.type,
            "validate_as": self.validate_as,
            "label": self.label,
            "description": self.description,
            "required": self.required,
            "must_validate": self.must_validate,
            "options": list(self.options),
            "clean_options": list(self.clean_options),
            "default": self.default,
            "null_value": self.null_value,
            "max_length": self.max_length,
        }
        for key, value in self.extras.items():
            data.setdefault(key, value)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldDefinition":
        """Create a FieldDefinition from a persisted or caller-supplied dict."""
        known = {k: v for k, v in data.items() if k in ATTRIBUTE_NAMES}
        extras = {k: v for k, v in data.items() if k not in ATTRIBUTE_NAMES}
        known.pop("extras", None)
        attrs = {name: coerce_attribute(name, value) for name, value in known.items()}
        attrs.setdefault("category", "app")
        return cls(**attrs, extras=extras)


ATTRIBUTE_NAMES = frozenset(f.name for f in fields(FieldDefinition))


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def coerce_attribute(name: str, value: Any) -> Any:
    """Normalize an attribute value to the type FieldDefinition stores."""
    if name in ("required", "must_validate"):
        return _as_bool(value)
    if name in ("options", "clean_options"):
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return tuple("" if opt is None else str(opt) for opt in value)
    if name == "max_length":
        if value in (None, ""):
            return None
        return int(value)
    if name == "default":
        return None if value is None else str(value)
    if name == "null_value":
        return "" if value is None else str(value)
    if name in ("label", "description"):
        return "" if value is None else str(value)
    return value


def labelize(field_name: str) -> str:
    """Convert snake_case to Title Case, e.g. ``term_ends`` -> ``Term Ends``."""
    return " ".join(part.capitalize() for part in field_name.split("_") if part)


def strip_marker(option: str) -> str:
    """Remove the default marker (and any spaces after it) from an option."""
    if option.startswith(DEFAULT_MARKER):
        return option[len(DEFAULT_MARKER):].lstrip()
    return option


CORE_FIELDS: tuple[str, ...] = ("user_id", "moniker", "user_status", "access_level")

STANDARD_FIELDS: tuple[str, ...] = (
    "first_name",
    "middle_name",
    "last_name",
    "prefix",
    "suffix",
    "organization",
    "title",
    "email",
    "phone",
    "text_ok",
    "last_login_date",
    "term_ends",
)

SYSTEM_FIELDS: tuple[str, ...] = ("last_mod_date", "created_date")

# Never targeted by overrides and never writable through the public API
PROTECTED_FIELDS = frozenset({"user_id", "created_date", "last_mod_date"})


def _define(field_name: str, category: str, **attrs: Any) -> FieldDefinition:
    attrs = {name: coerce_attribute(name, value) for name, value in attrs.items()}
    attrs.setdefault("label", labelize(field_name))
    attrs.setdefault("null_value", get_null_value(attrs.get("type")))
    return FieldDefinition(field_name=field_name, category=category, **attrs)


def _name_field(field_name: str, description: str) -> FieldDefinition:
    return _define(
        field_name, "standard",
        description=description, type="text", validate_as="name",
        default="", max_length=50, must_validate=True,
    )


FIELD_CATALOG: MappingProxyType[str, FieldDefinition] = MappingProxyType({
    # Core
    "user_id": _define(
        "user_id", "core",
        label="User ID",
        description="User login ID - Primary authentication identifier",
        type="system", required=True, default="", max_length=30,
    ),
    "moniker": _define(
        "moniker", "core",
        description="User's preferred display name, nickname, or initials",
        type="text", validate_as="moniker", required=True, must_validate=True,
        default="", max_length=24,
    ),
    "user_status": _define(
        "user_status", "core",
        description="Account status for access control",
        type="enum", validate_as="enum", required=True, must_validate=True,
        options=["*Eligible", "OK", "Inactive"], default="", max_length=20,
    ),
    "access_level": _define(
        "access_level", "core",
        description="Permission level for feature access",
        type="enum", validate_as="enum", required=True, must_validate=True,
        options=["*anon", "visitor", "member", "staff", "admin"],
        default="", max_length=20,
    ),
    # Standard
    "first_name": _name_field("first_name", "User's first name"),
    "middle_name": _name_field("middle_name", "User's middle name"),
    "last_name": _name_field("last_name", "User's last name"),
    "prefix": _define(
        "prefix", "standard",
        description="Name prefix or title",
        type="enum", validate_as="enum", default="", max_length=10,
        options=["*", "Dr", "Mr", "Ms", "Mrs", "Mx", "Prof", "Hon", "Sir", "Madam"],
    ),
    "suffix": _define(
        "suffix", "standard",
        description="Name suffix or professional designation",
        type="enum", validate_as="enum", default="", max_length=10,
        options=["*", "Jr", "Sr", "II", "III", "IV", "V", "PhD", "MD", "DDS", "Esq"],
    ),
    "organization": _define(
        "organization", "standard",
        description="User's organization or affiliation",
        type="text", validate_as="text", default="", max_length=100,
    ),
    "title": _define(
        "title", "standard",
        description="User's position or job title",
        type="text", validate_as="text", default="", max_length=100,
    ),
    "email": _define(
        "email", "standard",
        description="Email address for notifications",
        type="email", validate_as="email", default="", max_length=255,
    ),
    "phone": _define(
        "phone", "standard",
        description="Phone number with country code",
        type="phone", validate_as="phone", default="", max_length=20,
    ),
    "text_ok": _define(
        "text_ok", "standard",
        label="Text OK",
        description="Consent for text messages (1=yes, 0=no)",
        type="boolean", validate_as="boolean", default="", max_length=1,
    ),
    "last_login_date": _define(
        "last_login_date", "standard",
        description="Timestamp of last successful login",
        type="timestamp", validate_as="timestamp",
        default="0000-00-00 00:00:00", max_length=19,
    ),
    "term_ends": _define(
        "term_ends", "standard",
        description="Account expiration date (YYYY-MM-DD)",
        type="date", validate_as="date", default="", max_length=10,
    ),
    # System
    "last_mod_date": _define(
        "last_mod_date", "system",
        label="Last Modification Date",
        description="Timestamp of last profile modification",
        type="system", default="0000-00-00 00:00:00",
        null_value="0000-00-00 00:00:00", max_length=19,
    ),
    "created_date": _define(
        "created_date", "system",
        description="Timestamp when user account was created",
        type="system", required=True, default="0000-00-00 00:00:00",
        null_value="0000-00-00 00:00:00", max_length=19,
    ),
})

RESERVED_FIELDS = frozenset(CORE_FIELDS + STANDARD_FIELDS + SYSTEM_FIELDS)


def core_fields() -> list[str]:
    return list(CORE_FIELDS)


def standard_fields() -> list[str]:
    return list(STANDARD_FIELDS)


def system_fields() -> list[str]:
    return list(SYSTEM_FIELDS)
