import pytest

from ansible_arm_pipeline.catalog import CatalogParser, get_resource_type, load_catalog
from ansible_arm_pipeline.exceptions import CatalogError
from ansible_arm_pipeline.helpers import ValidationErrorCollector


def parse(resource_types):
    collector = ValidationErrorCollector()
    configs = CatalogParser({"resource_types": resource_types}, collector).parse()
    return configs, collector


BASE = {
    "provider_namespace": "Microsoft.Test",
    "type": "things",
    "api_version": "2024-01-01",
}


class TestBundledCatalog:
    def test_all_entries_are_valid(self, catalog):
        assert set(catalog) == {
            "user_assigned_identity",
            "application_gateway_backend_address_pool",
            "application_gateway_backend_http_settings",
            "virtual_machine_extension",
            "iot_hub_certificate",
            "event_grid_topic",
        }

    def test_full_type_includes_parents(self, pool_config):
        assert pool_config.full_type == (
            "Microsoft.Network/applicationGateways/backendAddressPools"
        )
        assert pool_config.parent_params == ["application_gateway_name"]

    def test_wire_path_defaults_to_properties(self, http_settings_config):
        field = http_settings_config.get_field("cookie_based_affinity")

        assert field.wire_path == "properties.cookieBasedAffinity"

    def test_get_resource_type(self):
        assert get_resource_type("event_grid_topic").type == "topics"

    def test_unknown_resource_type(self):
        with pytest.raises(CatalogError, match="Unknown resource type 'nope'"):
            get_resource_type("nope")


class TestCatalogParser:
    def test_description_is_derived(self):
        configs, collector = parse({"some_thing": dict(BASE)})

        assert not collector.has_errors
        assert configs["some_thing"].description == "Manage some thing resources."

    def test_schema_errors_are_collected(self):
        configs, collector = parse(
            {"broken": {"type": "things"}, "other": dict(BASE, unknown_key=1)}
        )

        assert configs == {}
        assert len(collector.errors) == 2

    def test_cross_field_errors(self):
        _, collector = parse(
            {
                "things": dict(
                    BASE,
                    fields=[
                        {"name": "a"},
                        {"name": "a"},
                        {"name": "mode", "type": "enum"},
                        {"name": "level", "type": "enum", "choices": ["Low"], "default": "High"},
                        {"name": "refs", "transform": "nope"},
                        {"name": "blob", "bag": {"required_keys": ["x"]}},
                    ],
                    exclusive=[["a", "missing"], ["a"]],
                )
            }
        )

        errors = "\n".join(collector.errors)
        assert "duplicate fields a" in errors
        assert "unknown fields missing" in errors
        assert "needs at least two fields" in errors
        assert "enum fields require 'choices'" in errors
        assert "default 'High' is not one of the choices" in errors
        assert "unknown transform 'nope'" in errors
        assert "settings bags are only valid" in errors

    def test_load_reports_unreadable_file(self, tmp_path):
        with pytest.raises(CatalogError, match="Error reading or parsing"):
            load_catalog(str(tmp_path / "missing.yaml"))

    def test_load_reports_invalid_entries(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("resource_types:\n  bad:\n    type: things\n")

        with pytest.raises(CatalogError) as exc_info:
            load_catalog(str(path))

        assert exc_info.value.errors[0].startswith("Resource type 'bad'")
