"""Tests for schema assembly.

Covers standard-field selection, overrides (including protected fields
and attributes), application fields and enum default derivation.
"""

import pytest

from userforge.metadata.assembler import Schema, SchemaAssembler, assemble_schema
from userforge.metadata.catalog import (
    CORE_FIELDS,
    FIELD_CATALOG,
    STANDARD_FIELDS,
    SYSTEM_FIELDS,
)
from userforge.validation.engine import ValidationEngine


def assemble(**config):
    schema, warnings = assemble_schema(config)
    return schema, warnings


class TestStandardFieldSelection:
    """include_standard_fields handling."""

    def test_explicit_list_keeps_only_named_fields(self):
        schema, warnings = assemble(include_standard_fields=["email", "phone"])
        assert list(schema.fields) == [
            "user_id", "moniker", "user_status", "access_level",
            "email", "phone",
            "last_mod_date", "created_date",
        ]
        assert warnings == []

    def test_default_includes_all_standard_fields(self):
        schema, _ = assemble()
        assert list(schema.fields) == list(CORE_FIELDS + STANDARD_FIELDS + SYSTEM_FIELDS)

    @pytest.mark.parametrize("selector", ["all", "ALL", None, ""])
    def test_all_selectors(self, selector):
        schema, _ = assemble(include_standard_fields=selector)
        assert [f for f in schema.fields if f in STANDARD_FIELDS] == list(STANDARD_FIELDS)

    def test_empty_list_includes_none(self):
        schema, _ = assemble(include_standard_fields=[])
        assert list(schema.fields) == list(CORE_FIELDS + SYSTEM_FIELDS)

    def test_catalog_order_not_request_order(self):
        schema, _ = assemble(include_standard_fields=["phone", "EMAIL", "first_name"])
        assert list(schema.fields[4:7]) == ["first_name", "email", "phone"]

    def test_string_selector_is_split(self):
        schema, _ = assemble(include_standard_fields="phone; email")
        assert list(schema.fields[4:6]) == ["email", "phone"]

    def test_unknown_standard_field_warns(self):
        schema, warnings = assemble(include_standard_fields=["email", "shoe_size"])
        assert "shoe_size" not in schema.fields
        assert len(warnings) == 1
        assert "shoe_size" in warnings[0]


class TestOverrides:
    """field_overrides handling."""

    @pytest.mark.parametrize("protected", ["user_id", "created_date", "last_mod_date"])
    def test_protected_fields_are_untouched(self, protected):
        baseline, _ = assemble()
        schema, warnings = assemble(field_overrides=[
            {"field_name": protected, "label": "Changed", "required": False, "max_length": 3},
        ])
        assert schema.get(protected) == baseline.get(protected)
        assert any(protected in w for w in warnings)

    def test_extra_protected_names(self):
        baseline, _ = assemble()
        schema, warnings = assemble(
            protected_fields=["email"],
            field_overrides=[{"field_name": "email", "must_validate": True}],
        )
        assert schema.get("email") == baseline.get("email")
        assert warnings

    def test_unknown_target_warns_and_skips(self):
        schema, warnings = assemble(
            include_standard_fields=["email"],
            field_overrides=[{"field_name": "phone", "required": True}],
        )
        assert "phone" not in schema
        assert "Cannot override unknown field 'phone'" in warnings[0]

    def test_category_and_field_name_are_immutable(self):
        schema, warnings = assemble(field_overrides=[
            {"field_name": "email", "category": "core", "label": "E-mail"},
        ])
        email = schema.get("email")
        assert email.category == "standard"
        assert email.label == "E-mail"
        assert len(warnings) == 1
        assert "category" in warnings[0]

    def test_problems_in_one_override_merge_into_one_warning(self):
        _, warnings = assemble(field_overrides=[
            {"field_name": "email", "category": "core", "validate_as": "colour"},
        ])
        assert len(warnings) == 1
        assert "category" in warnings[0]
        assert "validate_as" in warnings[0]

    def test_invalid_validator_falls_back_to_text(self):
        schema, warnings = assemble(field_overrides=[
            {"field_name": "title", "validate_as": "colour"},
        ])
        assert schema.get("title").validate_as == "text"
        assert "colour" in warnings[0]

    def test_type_change_sets_validate_as(self):
        schema, _ = assemble(field_overrides=[{"field_name": "title", "type": "integer"}])
        title = schema.get("title")
        assert title.type == "integer"
        assert title.validate_as == "integer"

    def test_explicit_validate_as_wins_over_type(self):
        schema, _ = assemble(field_overrides=[
            {"field_name": "title", "type": "integer", "validate_as": "text"},
        ])
        assert schema.get("title").validate_as == "text"

    def test_required_implies_must_validate(self):
        schema, _ = assemble(field_overrides=[{"field_name": "email", "required": True}])
        email = schema.get("email")
        assert email.required and email.must_validate

    def test_required_keeps_explicit_must_validate(self):
        schema, _ = assemble(field_overrides=[
            {"field_name": "email", "required": True, "must_validate": False},
        ])
        assert schema.get("email").must_validate is False

    def test_unknown_attributes_are_kept_as_extras(self):
        schema, warnings = assemble(field_overrides=[
            {"field_name": "phone", "placeholder": "+1 555 0100"},
        ])
        assert schema.get("phone").extras["placeholder"] == "+1 555 0100"
        assert warnings == []

    def test_non_mapping_override_warns(self):
        schema, warnings = assemble(field_overrides=["email"])
        assert schema.get("email") == FIELD_CATALOG["email"]
        assert len(warnings) == 1


class TestEnumDefaults:
    """Marker-derived enum defaults."""

    def test_catalog_marker_becomes_default(self):
        schema, _ = assemble()
        user_status = schema.get("user_status")
        assert user_status.default == "Eligible"
        assert user_status.clean_options == ("Eligible", "OK", "Inactive")
        assert schema.get("access_level").default == "anon"

    def test_bare_marker_means_empty_default(self):
        schema, _ = assemble()
        prefix = schema.get("prefix")
        assert prefix.default == ""
        assert prefix.clean_options[0] == ""
        assert "Dr" in prefix.clean_options

    def test_overridden_options_change_default_and_validation(self):
        schema, _ = assemble(field_overrides=[
            {"field_name": "user_status", "options": ["*Applicant", "Novice", "Expert"]},
        ])
        assert schema.get("user_status").default == "Applicant"

        engine = ValidationEngine(schema)
        assert engine.validate({"user_status": "Novice"}).success
        rejected = engine.validate({"user_status": "Eligible"})
        assert not rejected.success
        assert rejected.field == "user_status"

    def test_explicit_default_is_kept(self):
        schema, _ = assemble(field_overrides=[
            {"field_name": "access_level", "default": "member"},
        ])
        assert schema.get("access_level").default == "member"


class TestAppFields:
    """Application field definitions."""

    def test_bare_names_in_input_order(self):
        schema, _ = assemble(
            include_standard_fields=[],
            app_fields=["shoe_size", "favorite_color"],
        )
        assert list(schema.fields[4:6]) == ["shoe_size", "favorite_color"]
        shoe = schema.get("shoe_size")
        assert shoe.category == "app"
        assert shoe.type == "text"
        assert shoe.validate_as == "text"
        assert shoe.label == "Shoe Size"
        assert shoe.required is False

    def test_string_app_fields_are_split(self):
        schema, _ = assemble(include_standard_fields=[], app_fields="Role, theme")
        assert list(schema.fields[4:6]) == ["role", "theme"]

    def test_full_definition(self):
        schema, _ = assemble(app_fields=[{
            "field_name": "member_since",
            "type": "date",
            "category": "core",
            "required": True,
        }])
        defn = schema.get("member_since")
        assert defn.category == "app"
        assert defn.label == "Member Since"
        assert defn.null_value == "0000-00-00"
        assert defn.required is True

    def test_full_definition_enum_gets_default(self):
        schema, _ = assemble(app_fields=[{
            "field_name": "theme", "type": "enum", "options": ["light", "*dark"],
        }])
        theme = schema.get("theme")
        assert theme.default == "dark"
        assert theme.clean_options == ("light", "dark")

    @pytest.mark.parametrize("name", ["email", "user_id", "created_date", "moniker"])
    def test_colliding_names_are_skipped(self, name):
        baseline, _ = assemble()
        schema, warnings = assemble(app_fields=[name, {"field_name": name, "type": "integer"}])
        assert schema.fields.count(name) == 1
        assert schema.get(name) == baseline.get(name)
        assert len(warnings) == 2

    def test_collision_with_unselected_standard_field(self):
        schema, warnings = assemble(include_standard_fields=[], app_fields=["email"])
        assert "email" not in schema
        assert warnings

    def test_duplicate_app_field(self):
        schema, warnings = assemble(app_fields=["theme", "theme"])
        assert schema.fields.count("theme") == 1
        assert len(warnings) == 1

    def test_app_fields_precede_system_fields(self):
        schema, _ = assemble(app_fields=["theme"])
        assert list(schema.fields[-3:]) == ["theme", "last_mod_date", "created_date"]


class TestSchemaInvariants:
    """Properties every assembled schema holds."""

    @pytest.mark.parametrize("config", [
        {},
        {"include_standard_fields": []},
        {"include_standard_fields": ["email"], "app_fields": ["email", "x", "x"]},
        {"app_fields": ["user_id"], "field_overrides": [{"field_name": "user_id"}]},
    ])
    def test_no_duplicates_and_core_system_present(self, config):
        schema, _ = assemble_schema(config)
        assert len(schema.fields) == len(set(schema.fields))
        assert set(CORE_FIELDS + SYSTEM_FIELDS) <= set(schema.fields)
        assert all(name in schema for name in schema.fields)

    def test_schema_is_read_only(self):
        schema, _ = assemble()
        with pytest.raises(TypeError):
            schema.field_definitions["email"] = None

    def test_schema_dict_round_trip(self):
        schema, _ = assemble(
            app_fields=[{"field_name": "theme", "type": "enum", "options": ["*light"]}],
            field_overrides=[{"field_name": "phone", "placeholder": "+1"}],
        )
        assert Schema.from_dict(schema.to_dict()) == schema

    def test_assembler_collects_warnings(self):
        assembler = SchemaAssembler(include_standard_fields=["nope"])
        assembler.assemble()
        assert len(assembler.warnings) == 1
