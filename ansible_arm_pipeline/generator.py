"""
This is the main orchestrator for the Ansible module generation process.

It loads the resource-type catalog, builds a template context for every
resource type, and renders one resource module (`<resource_type>.py`) and one
facts module (`<resource_type>_facts.py`) per entry. Generated modules contain
no resource-specific logic: they embed their catalog entry and hand it to a
generic runner.
"""

import os
import pprint
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import yaml
from jinja2 import Environment, FileSystemLoader

from ansible_arm_pipeline.catalog import DEFAULT_CATALOG_PATH, load_catalog
from ansible_arm_pipeline.helpers import (
    AUTH_FIXTURE,
    AUTH_OPTIONS,
    FIELD_TYPE_TO_ANSIBLE_TYPE_MAP,
    LOOKUP_OPTIONS,
    WAITER_OPTIONS,
)
from ansible_arm_pipeline.interfaces.config import FieldConfig, ResourceTypeConfig
from ansible_arm_pipeline.projector import KNOWN_FIELDS

CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_TEMPLATE_DIR = os.path.join(CURRENT_DIR, "templates")

# A type alias for clarity, representing a dictionary of Ansible parameter options.
AnsibleModuleParams = Dict[str, Dict[str, Any]]

# Keys that are valid for an option in Ansible's DOCUMENTATION block.
VALID_DOC_KEYS = {
    "description",
    "required",
    "type",
    "default",
    "choices",
    "no_log",
    "elements",
}


@dataclass
class GenerationContext:
    """
    Data object passed from the ModuleContextBuilder to the template.
    It contains simple, direct keys for the template to consume, minimizing
    logic in the template itself.
    """

    module_name: str
    runner_module: str
    runner_class: str
    argument_spec: dict
    mutually_exclusive: List[List[str]]
    documentation: dict
    examples: List[dict]
    return_block: dict
    runner_context: dict

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ModuleContextBuilder:
    """Builds the resource and facts module contexts for one resource type."""

    def __init__(self, config: ResourceTypeConfig, collection: str = "azure.arm"):
        self.config = config
        self.collection = collection

    def build(self, facts: bool = False) -> GenerationContext:
        module_name = self.config.resource_type + ("_facts" if facts else "")
        parameters = self._build_parameters(facts)
        return GenerationContext(
            module_name=module_name,
            runner_module="facts" if facts else "crud",
            runner_class="FactsRunner" if facts else "CrudRunner",
            argument_spec=self._build_argument_spec(parameters),
            mutually_exclusive=[] if facts else [list(g) for g in self.config.exclusive],
            documentation=self._build_documentation(module_name, parameters, facts),
            examples=self._build_examples(module_name, facts),
            return_block=self._build_return_block(facts),
            runner_context=self.config.model_dump(mode="json"),
        )

    def _identity_parameters(self, facts: bool) -> AnsibleModuleParams:
        noun = self.config.resource_type.replace("_", " ")
        parameters = {
            "resource_group": {
                "description": f"The resource group that contains the {noun}.",
                "type": "str",
            },
        }
        for parent in self.config.parents:
            parameters[parent.param] = {
                "description": parent.description
                or f"The name of the parent {parent.type} resource.",
                "type": "str",
            }
        parameters["name"] = {
            "description": f"The name of the {noun}."
            + (" If omitted, all matching resources are listed." if facts else ""),
            "type": "str",
        }
        return parameters

    def _field_parameter(self, field_config: FieldConfig) -> Dict[str, Any]:
        option = {
            "description": field_config.description
            or field_config.name.replace("_", " ").capitalize() + ".",
            "type": FIELD_TYPE_TO_ANSIBLE_TYPE_MAP[field_config.type],
        }
        if field_config.choices:
            option["choices"] = list(field_config.choices)
        if field_config.default is not None:
            option["default"] = field_config.default
        if field_config.write_only:
            option["no_log"] = True
        if field_config.type == "list":
            option["elements"] = "str"
        return option

    def _build_parameters(self, facts: bool) -> AnsibleModuleParams:
        parameters: AnsibleModuleParams = {}
        parameters.update(AUTH_OPTIONS)
        if not facts:
            parameters.update(WAITER_OPTIONS)
        parameters.update(LOOKUP_OPTIONS)
        parameters.update(self._identity_parameters(facts))
        if not facts:
            for field_config in self.config.fields:
                parameters[field_config.name] = self._field_parameter(field_config)
        return parameters

    def _build_argument_spec(self, parameters: AnsibleModuleParams) -> dict:
        """
        Strips the rich parameter info down to the minimal structure required
        by `AnsibleModule`.

        Field choices and defaults stay in the documentation only. The pipeline
        matches enum values case-insensitively and applies defaults itself, so
        an omitted field must arrive as `None`.
        """
        field_names = set(self.config.field_names)
        spec = {}
        for name, opts in parameters.items():
            param_spec = {"type": opts["type"]}
            if name not in field_names:
                if opts.get("choices"):
                    param_spec["choices"] = opts["choices"]
                if "default" in opts:
                    param_spec["default"] = opts["default"]
            if opts.get("elements"):
                param_spec["elements"] = opts["elements"]
            if opts.get("no_log", False):
                param_spec["no_log"] = True
            if opts.get("required", False):
                param_spec["required"] = True
            spec[name] = param_spec
        return spec

    def _build_documentation(
        self, module_name: str, parameters: AnsibleModuleParams, facts: bool
    ) -> Dict[str, Any]:
        if facts:
            short_description = (
                f"Get facts about {self.config.resource_type.replace('_', ' ')} resources."
            )
            description = (
                "Fetches a single resource by name, resource_id or input_object, "
                "or lists the resources of a resource group"
                + (" or subscription." if self.config.list_by_subscription else ".")
            )
        else:
            short_description = self.config.description
            updatable = sorted(f.name for f in self.config.fields)
            description = (
                "When the resource already exists, the following fields can be "
                f"updated: {', '.join(updatable)}."
                if updatable
                else ""
            )

        options = {}
        for name, opts in parameters.items():
            options[name] = {
                key: value
                for key, value in opts.items()
                if key in VALID_DOC_KEYS and not (key == "choices" and not value)
            }
        return {
            "module": module_name,
            "short_description": short_description,
            "description": description,
            "options": options,
            "requirements": ["python >= 3.11"],
        }

    def _sample_value(self, field_config: FieldConfig) -> Any:
        if field_config.default is not None:
            return field_config.default
        if field_config.choices:
            return field_config.choices[0]
        if field_config.name == "location":
            return "westeurope"
        return {
            "int": 1,
            "float": 1.0,
            "bool": True,
            "list": [f"example-{field_config.name.replace('_', '-')}"],
            "dict": {},
        }.get(field_config.type, f"example-{field_config.name.replace('_', '-')}")

    def _build_examples(self, module_name: str, facts: bool) -> List[dict]:
        fqcn = f"{self.collection}.{module_name}"
        noun = self.config.resource_type.replace("_", " ")
        identity = {"resource_group": "example-rg"}
        for parent in self.config.parents:
            identity[parent.param] = f"example-{parent.param.replace('_', '-')}"

        def play(name: str, tasks: List[dict]) -> dict:
            return {
                "name": name,
                "hosts": "localhost",
                "tasks": tasks,
            }

        if facts:
            return [
                play(
                    f"List {noun} resources",
                    [
                        {
                            "name": f"List {noun} resources in a resource group",
                            fqcn: {**AUTH_FIXTURE, **identity},
                        }
                    ],
                ),
                play(
                    f"Get a {noun}",
                    [
                        {
                            "name": f"Get a {noun} by name",
                            fqcn: {**AUTH_FIXTURE, **identity, "name": "example"},
                        }
                    ],
                ),
            ]

        settings = {
            f.name: self._sample_value(f)
            for f in self.config.fields
            if f.required or f.name in ("location", "tags")
        }
        return [
            play(
                f"Create a {noun}",
                [
                    {
                        "name": f"Create a {noun}",
                        fqcn: {
                            **AUTH_FIXTURE,
                            "state": "present",
                            **identity,
                            "name": "example",
                            **settings,
                        },
                    }
                ],
            ),
            play(
                f"Remove a {noun}",
                [
                    {
                        "name": f"Remove a {noun} by resource id",
                        fqcn: {
                            **AUTH_FIXTURE,
                            "state": "absent",
                            "resource_id": "/subscriptions/"
                            + AUTH_FIXTURE["subscription_id"]
                            + "/resourceGroups/example-rg/providers/"
                            + self._example_path(),
                        },
                    }
                ],
            ),
        ]

    def _example_path(self) -> str:
        segments = [self.config.provider_namespace]
        for parent in self.config.parents:
            segments.extend([parent.type, f"example-{parent.param.replace('_', '-')}"])
        segments.extend([self.config.type, "example"])
        return "/".join(segments)

    def _build_return_block(self, facts: bool) -> Dict[str, Any]:
        contains = {
            "id": {"description": "The fully qualified resource id.", "type": "str"},
            "name": {"description": "The resource name.", "type": "str"},
            "type": {"description": "The resource type.", "type": "str"},
            "resource_group_name": {
                "description": "The resource group, derived from the resource id.",
                "type": "str",
            },
        }
        for known in KNOWN_FIELDS:
            if known not in contains:
                contains[known] = {
                    "description": f"The resource {known}, as returned by the provider.",
                    "type": "dict" if known in ("tags", "properties") else "str",
                }
        for name in self.config.projections:
            contains[name] = {
                "description": f"The {name.replace('_', ' ')} of the resource.",
                "type": "raw",
            }
        for legacy, current in self.config.legacy_fields.items():
            contains[legacy] = {
                "description": f"Alias of '{current}', kept for compatibility.",
                "type": "raw",
            }

        resource = {
            "description": "The resource in its presentation form.",
            "type": "dict",
            "contains": contains,
        }
        if not facts:
            return {"resource": {**resource, "returned": "when state is present"}}
        return {
            "resource": {
                **resource,
                "returned": "when exactly one resource is fetched or unwrapped",
            },
            "resources": {
                "description": "The listed resources, in the order the provider returned them.",
                "type": "list",
                "elements": "dict",
                "returned": "when listing",
            },
        }


class Generator:
    """Orchestrates the Ansible module generation process."""

    def __init__(self, configs: Dict[str, ResourceTypeConfig], template_dir: str):
        """
        Initializes the generator.

        Args:
            configs: Validated resource types, keyed by catalog key.
            template_dir: Path to the directory with Jinja2 templates.
        """
        self.configs = configs
        self.jinja_env = Environment(
            loader=FileSystemLoader(template_dir), trim_blocks=True, lstrip_blocks=True
        )
        self.jinja_env.filters["to_yaml"] = _to_yaml
        self.jinja_env.filters["to_python"] = pprint.pformat

    @classmethod
    def from_files(
        cls, catalog_path: Optional[str] = None, template_dir: Optional[str] = None
    ):
        """Creates a Generator instance by loading the catalog from a file."""
        return cls(
            load_catalog(catalog_path or DEFAULT_CATALOG_PATH),
            template_dir or DEFAULT_TEMPLATE_DIR,
        )

    def render(self, context: GenerationContext) -> str:
        return self.jinja_env.get_template("module.py.j2").render(context.to_dict())

    def generate(self, output_dir: str) -> List[str]:
        """Renders every module into `output_dir` and returns the written paths."""
        written = []
        for key in sorted(self.configs):
            builder = ModuleContextBuilder(self.configs[key])
            for facts in (False, True):
                context = builder.build(facts=facts)
                output_path = os.path.join(output_dir, f"{context.module_name}.py")
                with open(output_path, "w") as f:
                    f.write(self.render(context))
                print(f"Successfully generated module: {output_path}")
                written.append(output_path)
        return written


def _to_yaml(value: Any) -> str:
    return yaml.safe_dump(value, sort_keys=False, default_flow_style=False)
