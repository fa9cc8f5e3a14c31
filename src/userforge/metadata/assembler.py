"""Assemble the field schema for a user store.

Merges the built-in catalog with the caller's standard-field selection,
field overrides and application fields into one ordered field list and
one field-definition map. Nothing here is fatal: every anomaly degrades
to a skip plus a warning, collected on the assembler and logged.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from userforge.core.types import get_null_value
from userforge.metadata.catalog import (
    ATTRIBUTE_NAMES,
    CORE_FIELDS,
    DEFAULT_MARKER,
    FIELD_CATALOG,
    PROTECTED_FIELDS,
    RESERVED_FIELDS,
    STANDARD_FIELDS,
    SYSTEM_FIELDS,
    FieldDefinition,
    coerce_attribute,
    labelize,
    strip_marker,
)
from userforge.validation.validators import ValidatorKind, is_known_validator

logger = logging.getLogger(__name__)

_LIST_SEPARATOR = re.compile(r"\s*[,;]\s*")

# Attributes an override can never change
PROTECTED_ATTRIBUTES = ("field_name", "category")


@dataclass(frozen=True)
class Schema:
    """Ordered field list plus field definitions, read-only once built."""

    fields: tuple[str, ...]
    field_definitions: Mapping[str, FieldDefinition] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not isinstance(self.field_definitions, MappingProxyType):
            object.__setattr__(
                self, "field_definitions", MappingProxyType(dict(self.field_definitions))
            )

    def get(self, field_name: str) -> FieldDefinition | None:
        """Get a field definition; no fallback to the catalog."""
        return self.field_definitions.get(field_name)

    def __contains__(self, field_name: object) -> bool:
        return field_name in self.field_definitions

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": list(self.fields),
            "field_definitions": {
                name: self.field_definitions[name].to_dict() for name in self.fields
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Schema":
        definitions = {
            name: FieldDefinition.from_dict(definition)
            for name, definition in (data.get("field_definitions") or {}).items()
        }
        return cls(fields=tuple(data.get("fields") or ()), field_definitions=definitions)


def _split_names(value: str) -> list[str]:
    return [name for name in _LIST_SEPARATOR.split(value.strip()) if name]


class SchemaAssembler:
    """Builds a :class:`Schema` from setup configuration.

    Example:
        assembler = SchemaAssembler(
            include_standard_fields=["email", "phone"],
            app_fields=["favorite_color"],
            field_overrides=[{"field_name": "email", "must_validate": True}],
        )
        schema = assembler.assemble()
        assembler.warnings  # anything skipped along the way
    """

    def __init__(
        self,
        include_standard_fields: str | Iterable[str] | None = "all",
        app_fields: str | Iterable[str | Mapping[str, Any]] | None = None,
        field_overrides: Iterable[Mapping[str, Any]] | None = None,
        protected_fields: Iterable[str] | None = None,
    ):
        self.include_standard_fields = include_standard_fields
        self.app_fields = app_fields
        self.field_overrides = field_overrides
        self.protected_fields = PROTECTED_FIELDS | frozenset(protected_fields or ())
        self.warnings: list[str] = []

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SchemaAssembler":
        """Create an assembler from a setup configuration mapping."""
        return cls(
            include_standard_fields=config.get("include_standard_fields", "all"),
            app_fields=config.get("app_fields"),
            field_overrides=config.get("field_overrides"),
            protected_fields=config.get("protected_fields"),
        )

    def assemble(self) -> Schema:
        """Run every assembly step and return the finished schema."""
        self.warnings = []

        fields: list[str] = list(CORE_FIELDS)
        definitions: dict[str, FieldDefinition] = {
            name: FIELD_CATALOG[name] for name in CORE_FIELDS + SYSTEM_FIELDS
        }

        standard = self._resolve_standard_fields()
        fields.extend(standard)
        for name in standard:
            definitions[name] = FIELD_CATALOG[name]

        for override in self.field_overrides or ():
            self._apply_override(override, definitions)

        for name, definition in self._resolve_app_fields(fields):
            definitions[name] = definition
            fields.append(name)

        fields.extend(SYSTEM_FIELDS)

        for name, definition in definitions.items():
            definitions[name] = self._finalize_options(definition)

        return Schema(fields=tuple(fields), field_definitions=definitions)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _resolve_standard_fields(self) -> list[str]:
        """Resolve the standard-field selection, in catalog order."""
        selector = self.include_standard_fields
        if selector is None or (isinstance(selector, str) and selector.strip().lower() in ("", "all")):
            return list(STANDARD_FIELDS)

        if isinstance(selector, str):
            requested = [name.lower() for name in _split_names(selector)]
        else:
            requested = [str(name).strip().lower() for name in selector]

        for name in requested:
            if name not in STANDARD_FIELDS:
                self._warn(
                    f"Non-standard field requested: {name}; "
                    "configure it with 'app_fields' instead"
                )

        return [name for name in STANDARD_FIELDS if name in requested]

    def _apply_override(
        self,
        override: Any,
        definitions: dict[str, FieldDefinition],
    ) -> None:
        """Apply one override record to a working definition."""
        if not isinstance(override, Mapping):
            self._warn(f"Field override must be a mapping, got {type(override).__name__}; skipping")
            return

        field_name = override.get("field_name")
        if not field_name:
            self._warn("Field override missing field_name; skipping")
            return

        if field_name in self.protected_fields:
            self._warn(f"Cannot override protected field '{field_name}'; skipping")
            return

        current = definitions.get(field_name)
        if current is None:
            self._warn(
                f"Cannot override unknown field '{field_name}'; field must be included "
                "via include_standard_fields or app_fields"
            )
            return

        problems: dict[str, str] = {}
        changes: dict[str, Any] = {}
        extras = dict(current.extras)

        for attr, value in override.items():
            if attr == "field_name":
                continue
            if attr in PROTECTED_ATTRIBUTES:
                problems[attr] = f"protected attribute '{attr}' cannot be changed"
                continue
            if attr == "validate_as" and not is_known_validator(value):
                problems[attr] = f"unknown validator type '{value}' - falling back to 'text'"
                changes[attr] = ValidatorKind.TEXT.value
                continue
            if attr not in ATTRIBUTE_NAMES or attr == "extras":
                extras[attr] = value
                continue
            try:
                changes[attr] = coerce_attribute(attr, value)
            except (TypeError, ValueError):
                problems[attr] = f"invalid value {value!r}"

        if "type" in changes and "validate_as" not in override:
            if is_known_validator(changes["type"]):
                changes["validate_as"] = changes["type"]

        if changes.get("required") is True and "must_validate" not in override:
            changes["must_validate"] = True

        definitions[field_name] = replace(current, **changes, extras=extras)

        if problems:
            detail = ", ".join(f"{attr}: {problems[attr]}" for attr in sorted(problems))
            self._warn(f"Field '{field_name}' override: {detail}")

    def _resolve_app_fields(self, taken: list[str]) -> list[tuple[str, FieldDefinition]]:
        """Build definitions for the application fields, in input order."""
        entries = self.app_fields or ()
        if isinstance(entries, str):
            entries = [name.lower() for name in _split_names(entries)]

        accepted: list[tuple[str, FieldDefinition]] = []
        seen = set(taken)

        for entry in entries:
            if isinstance(entry, Mapping):
                field_name = str(entry.get("field_name") or "").strip()
            elif isinstance(entry, str):
                field_name = entry.strip()
            else:
                self._warn(f"Unsupported app field entry {entry!r}; skipping")
                continue

            if not field_name:
                self._warn("App field definition missing field_name; skipping")
                continue
            if field_name in RESERVED_FIELDS:
                self._warn(f"Supplemental field name {field_name} already in use; skipping")
                continue
            if field_name in seen:
                self._warn(f"Duplicate app field {field_name}; skipping")
                continue

            if isinstance(entry, Mapping):
                definition = self._app_definition(field_name, entry)
                if definition is None:
                    continue
            else:
                definition = FieldDefinition(
                    field_name=field_name,
                    category="app",
                    type="text",
                    validate_as=ValidatorKind.TEXT.value,
                    label=labelize(field_name),
                    required=False,
                    null_value="",
                )

            seen.add(field_name)
            accepted.append((field_name, definition))

        return accepted

    def _app_definition(
        self, field_name: str, entry: Mapping[str, Any]
    ) -> FieldDefinition | None:
        attrs = {
            key: value for key, value in entry.items()
            if key not in ("field_name", "label", "category")
        }
        attrs["field_name"] = field_name
        attrs["category"] = "app"
        attrs["label"] = entry.get("label") or labelize(field_name)
        attrs.setdefault("type", "text")
        attrs.setdefault("required", False)
        if attrs.get("null_value") is None:
            attrs["null_value"] = get_null_value(attrs["type"])

        try:
            return FieldDefinition.from_dict(attrs)
        except (TypeError, ValueError) as exc:
            self._warn(f"Invalid definition for app field {field_name}: {exc}; skipping")
            return None

    def _finalize_options(self, definition: FieldDefinition) -> FieldDefinition:
        """Derive clean options and the marker default for enum fields."""
        is_enum = ValidatorKind.ENUM.value in (definition.type, definition.validate_as)
        if not is_enum or not definition.options:
            return definition

        clean_options = tuple(strip_marker(opt) for opt in definition.options)
        default = definition.default
        if not default:
            default = next(
                (strip_marker(opt) for opt in definition.options if opt.startswith(DEFAULT_MARKER)),
                "",
            )
        return replace(definition, clean_options=clean_options, default=default)


def assemble_schema(config: Mapping[str, Any]) -> tuple[Schema, list[str]]:
    """Assemble a schema from setup configuration.

    Returns:
        The schema and the list of assembly warnings.
    """
    assembler = SchemaAssembler.from_config(config)
    schema = assembler.assemble()
    return schema, list(assembler.warnings)
