"""Human-readable reference copy of the schema record (``users-config.yaml``).

The YAML file is written for people to read; it is never loaded back.
``users-config.json`` remains the only source of truth.
"""

from pathlib import Path
from typing import Any

import yaml

from userforge.metadata.config import CONFIG_FILE, REFERENCE_FILE, SchemaRecord

_CATEGORY_SECTIONS = (
    ("core", "Core Fields"),
    ("standard", "Standard Fields"),
    ("system", "System Fields"),
    ("app", "Application Fields"),
)

_RULE = "#" * 79


def _header(storage_dir: Path) -> str:
    lines = [
        _RULE,
        "#  WARNING: This is a GENERATED file for reference ONLY",
        "#",
        "#  Editing this file will NOT affect your user store configuration.",
        "#",
        "#  This file is automatically generated from:",
        f"#    {CONFIG_FILE}",
        "#",
        "#  This file:",
        f"#    {storage_dir / REFERENCE_FILE}",
        _RULE,
        "",
    ]
    return "\n".join(lines) + "\n"


def _field_entry(definition) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "field_name": definition.field_name,
        "type": definition.type,
        "required": definition.required,
    }
    if definition.validate_as and definition.validate_as != definition.type:
        entry["validate_as"] = definition.validate_as
    entry["default"] = definition.default if definition.default is not None else ""
    if definition.options:
        entry["options"] = list(definition.options)
    if definition.description:
        entry["description"] = definition.description
    if definition.max_length:
        entry["max_length"] = definition.max_length
    if definition.must_validate:
        entry["must_validate"] = True
    entry["null_value"] = definition.null_value
    return entry


def render_reference(record: SchemaRecord, storage_dir: Path | str) -> str:
    """Render the reference YAML text, fields grouped by category."""
    storage_dir = Path(storage_dir)
    schema = record.schema

    sections: dict[str, dict[str, Any]] = {}
    for category, title in _CATEGORY_SECTIONS:
        entries = {
            name: _field_entry(schema.field_definitions[name])
            for name in schema.fields
            if schema.field_definitions[name].category == category
        }
        if entries:
            sections[title] = entries

    document = {
        "Configuration": {
            "Version": record.version,
            "Backend": record.backend,
            "Storage Directory": str(storage_dir),
            "Generated": record.generated,
        },
        "Field Definitions": sections,
    }
    body = yaml.safe_dump(
        document, default_flow_style=False, sort_keys=False, allow_unicode=True,
    )
    # Options keep their marker; note it once so readers know what "*" means
    body = body.replace(
        "    options:\n", "    options:  # '*' designates the default option\n"
    )
    return _header(storage_dir) + body


def write_reference(record: SchemaRecord, storage_dir: Path | str) -> Path:
    """Write ``users-config.yaml`` into ``storage_dir`` and return its path."""
    storage_dir = Path(storage_dir)
    path = storage_dir / REFERENCE_FILE
    path.write_text(render_reference(record, storage_dir), encoding="utf-8")
    return path
