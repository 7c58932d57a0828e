import ast
import os

import pytest
import yaml

from ansible_arm_pipeline import cli
from ansible_arm_pipeline.generator import Generator, ModuleContextBuilder


class TestModuleContextBuilder:
    def test_resource_module_argument_spec(self, pool_config):
        context = ModuleContextBuilder(pool_config).build()

        spec = context.argument_spec
        assert spec["access_token"] == {"type": "str", "no_log": True, "required": True}
        assert spec["state"] == {
            "type": "str",
            "choices": ["present", "absent"],
            "default": "present",
        }
        assert spec["application_gateway_name"] == {"type": "str"}
        assert spec["backend_fqdns"] == {"type": "list", "elements": "str"}
        assert context.mutually_exclusive == [["backend_ip_addresses", "backend_fqdns"]]
        assert context.runner_class == "CrudRunner"

    def test_field_choices_and_defaults_are_left_to_the_pipeline(self, http_settings_config):
        context = ModuleContextBuilder(http_settings_config).build()

        assert context.argument_spec["protocol"] == {"type": "str"}
        assert context.argument_spec["request_timeout"] == {"type": "int"}
        options = context.documentation["options"]
        assert options["protocol"]["choices"] == ["Http", "Https"]
        assert options["request_timeout"]["default"] == 30

    def test_write_only_fields_are_not_logged(self, extension_config):
        context = ModuleContextBuilder(extension_config).build()

        assert context.argument_spec["protected_settings"]["no_log"] is True
        assert "no_log" not in context.argument_spec["settings"]

    def test_facts_module(self, certificate_config):
        context = ModuleContextBuilder(certificate_config).build(facts=True)

        assert context.module_name == "iot_hub_certificate_facts"
        assert context.runner_class == "FactsRunner"
        assert "state" not in context.argument_spec
        assert "certificate" not in context.argument_spec
        assert set(context.return_block) == {"resource", "resources"}

    def test_runner_context_round_trips(self, identity_config):
        context = ModuleContextBuilder(identity_config).build()

        assert type(identity_config).model_validate(context.runner_context) == identity_config


class TestGenerator:
    def test_generate_writes_valid_modules(self, tmp_path):
        generator = Generator.from_files()

        written = generator.generate(str(tmp_path))

        assert len(written) == 12
        path = tmp_path / "user_assigned_identity.py"
        source = path.read_text()
        tree = ast.parse(source)
        docs = {
            node.targets[0].id: node.value.value
            for node in tree.body
            if isinstance(node, ast.Assign) and isinstance(node.value, ast.Constant)
        }
        documentation = yaml.safe_load(docs["DOCUMENTATION"])
        assert documentation["module"] == "user_assigned_identity"
        assert "location" in documentation["options"]
        assert "from ansible_arm_pipeline.plugins.crud.runner import CrudRunner" in source

    def test_facts_module_uses_facts_runner(self, tmp_path):
        Generator.from_files().generate(str(tmp_path))

        source = (tmp_path / "event_grid_topic_facts.py").read_text()

        assert "FactsRunner(module, RUNNER_CONTEXT)" in source


class TestCli:
    def test_main_generates_into_output_dir(self, tmp_path, capsys):
        output_dir = tmp_path / "out"

        exit_code = cli.main(["--output-dir", str(output_dir)])

        assert exit_code == 0
        assert os.path.exists(output_dir / "virtual_machine_extension.py")
        assert "Generation complete." in capsys.readouterr().out

    def test_main_reports_catalog_errors(self, tmp_path, capsys):
        catalog = tmp_path / "catalog.yaml"
        catalog.write_text("resource_types:\n  bad:\n    type: things\n")

        exit_code = cli.main(
            ["--catalog", str(catalog), "--output-dir", str(tmp_path / "out")]
        )

        assert exit_code == 1
        assert "Resource type 'bad'" in capsys.readouterr().err

    def test_help(self, capsys):
        with pytest.raises(SystemExit):
            cli.main(["--help"])

        assert "--catalog" in capsys.readouterr().out
