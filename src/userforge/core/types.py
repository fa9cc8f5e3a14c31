"""Field type registry with null values and storage defaults."""

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class FieldType:
    name: str
    null_value: str
    storage_type: str = "TEXT"


# Built-in field types. Every value is stored as a string, so null
# values for numeric-looking types are strings too.
FIELD_TYPES: MappingProxyType[str, FieldType] = MappingProxyType({
    "text": FieldType(name="text", null_value=""),
    "enum": FieldType(name="enum", null_value=""),
    "boolean": FieldType(name="boolean", null_value="0"),
    "date": FieldType(name="date", null_value="0000-00-00"),
    "timestamp": FieldType(name="timestamp", null_value="0000-00-00 00:00:00"),
    "email": FieldType(name="email", null_value=""),
    "phone": FieldType(name="phone", null_value=""),
    "integer": FieldType(name="integer", null_value="0"),
    "moniker": FieldType(name="moniker", null_value=""),
    "name": FieldType(name="name", null_value=""),
    "system": FieldType(name="system", null_value=""),
})


def get_field_type(type_name: str | None) -> FieldType | None:
    """Get a field type by name."""
    if not type_name:
        return None
    return FIELD_TYPES.get(type_name)


def get_null_value(type_name: str | None) -> str:
    """Get the "no data" sentinel for a type, falling back to text's."""
    field_type = get_field_type(type_name or "text")
    if field_type is None:
        return FIELD_TYPES["text"].null_value
    return field_type.null_value
