"""
Tests for the resource registry, schema building and view formatting.
"""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from errors import ConfigurationError, ValidationFailure
from registry import FieldListView, RenameMapView, ResourceRegistry, TransformView
from validation import declares_field, validate, validate_payload
from views import ViewFormatter

RECORD = {"uuid": "aaaaaaaa-aaaa-aaaa-aaaa-00000001", "timestamp": 1234, "name": "Cheeseburger"}


# =============================================================================
# Registry
# =============================================================================


class TestRegistry:
    def test_lookup_before_any_registration_fails(self) -> None:
        registry = ResourceRegistry()
        with pytest.raises(ConfigurationError):
            registry.get_schema("article")
        with pytest.raises(ConfigurationError):
            registry.get_options("article")

    def test_unknown_name_is_none(self, registry: ResourceRegistry) -> None:
        assert registry.get_schema("something") is None
        assert registry.get_options("something") is None
        assert registry.get_definition("something") is None

    def test_options(self, registry: ResourceRegistry) -> None:
        assert registry.get_options("user").single is False
        assert registry.get_options("user").views is None
        assert registry.get_options("options").single is True

    def test_register_overwrites(self, registry: ResourceRegistry) -> None:
        registry.register("article", {"title": str}, {"single": True})

        assert declares_field(registry.get_schema("article"), "title")
        assert not declares_field(registry.get_schema("article"), "name")
        assert registry.get_options("article").single is True

    def test_model_schema_passes_through(self) -> None:
        class Article(BaseModel):
            name: str

        registry = ResourceRegistry()
        registry.register("article", Article)

        assert registry.get_schema("article") is Article

    def test_names_and_contains(self, registry: ResourceRegistry) -> None:
        assert "article" in registry
        assert "nothing" not in registry
        assert registry.names() == ["article", "ledger", "options", "sandwich", "user"]

    def test_views_become_tagged_variants(self, registry: ResourceRegistry) -> None:
        views = registry.get_options("sandwich").views

        assert isinstance(views["default"], TransformView)
        assert views["brief"] == FieldListView(field_names=["uuid", "name"])
        assert views["special"] == RenameMapView(mapping={"uuid": "id", "name": "title"})

    @pytest.mark.parametrize("spec", [42, "uuid", ["uuid", 1], {"uuid": 1}])
    def test_bad_view_is_rejected_at_registration(self, spec) -> None:
        registry = ResourceRegistry()
        with pytest.raises(ConfigurationError):
            registry.register("broken", {"name": str}, {"views": {"default": spec}})

    def test_unknown_option_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            ResourceRegistry().register("broken", {"name": str}, {"singel": True})

    def test_bad_schema_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            ResourceRegistry().register("broken", ["name"])


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    def test_mapping_schema_is_strict(self, registry: ResourceRegistry) -> None:
        with pytest.raises(ValidationFailure) as info:
            validate_payload(registry.get_schema("ledger"), {"amount": True})

        assert info.value.errors[0]["field"] == "amount"

    def test_unknown_fields_rejected(self, registry: ResourceRegistry) -> None:
        with pytest.raises(ValidationFailure) as info:
            validate_payload(registry.get_schema("article"), {"name": "X", "colour": "red"})

        assert info.value.errors[0]["field"] == "colour"

    def test_missing_required_field(self, registry: ResourceRegistry) -> None:
        with pytest.raises(ValidationFailure):
            validate_payload(registry.get_schema("article"), {})

    def test_defaults_are_filled(self, registry: ResourceRegistry) -> None:
        assert validate_payload(registry.get_schema("ledger"), {"amount": 3}) == {"amount": 3, "note": ""}

    def test_non_mapping_input(self, registry: ResourceRegistry) -> None:
        with pytest.raises(ValidationFailure):
            validate(registry.get_schema("article"), ["name"])


# =============================================================================
# Views
# =============================================================================


class TestViewFormatter:
    def test_no_views_returns_record(self, registry: ResourceRegistry) -> None:
        formatter = ViewFormatter(registry)
        assert formatter.format("article", RECORD, "brief") == RECORD

    def test_unknown_view_falls_back(self, registry: ResourceRegistry) -> None:
        formatter = ViewFormatter(registry)
        assert formatter.format("sandwich", RECORD, "does-not-exist") == RECORD

    def test_transform(self, registry: ResourceRegistry) -> None:
        output = ViewFormatter(registry).format("sandwich", RECORD)

        assert list(output) == ["uuid", "timestamp", "name", "extra"]
        assert output["extra"] == 12345
        assert "extra" not in RECORD

    def test_field_list(self, registry: ResourceRegistry) -> None:
        output = ViewFormatter(registry).format("sandwich", RECORD, "brief")

        assert list(output) == ["uuid", "name"]
        assert output["name"] == "Cheeseburger"

    def test_field_list_skips_missing_fields(self, registry: ResourceRegistry) -> None:
        output = ViewFormatter(registry).format("sandwich", {"uuid": "x"}, "brief")
        assert output == {"uuid": "x"}

    def test_rename_map(self, registry: ResourceRegistry) -> None:
        output = ViewFormatter(registry).format("sandwich", RECORD, "special")

        assert list(output) == ["id", "title"]
        assert output == {"id": "aaaaaaaa-aaaa-aaaa-aaaa-00000001", "title": "Cheeseburger"}
