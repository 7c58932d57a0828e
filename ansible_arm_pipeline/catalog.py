"""
Loads the resource-type catalog (YAML) and validates it into
`ResourceTypeConfig` objects. All problems are collected before reporting so
that a broken catalog is diagnosed in one pass.
"""

import logging
import os
from copy import deepcopy
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from ansible_arm_pipeline.exceptions import CatalogError
from ansible_arm_pipeline.helpers import ValidationErrorCollector
from ansible_arm_pipeline.interfaces.config import ResourceTypeConfig
from ansible_arm_pipeline.request_builder import TRANSFORMATION_MAP

logger = logging.getLogger(__name__)

CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CATALOG_PATH = os.path.join(CURRENT_DIR, "data", "resource_types.yaml")


class CatalogParser:
    """Parses the raw catalog mapping and validates each resource type."""

    def __init__(self, catalog_data: Dict[str, Any], collector: ValidationErrorCollector):
        self.catalog = catalog_data or {}
        self.collector = collector

    def parse(self) -> Dict[str, ResourceTypeConfig]:
        configs = {}
        for key, raw_config in (self.catalog.get("resource_types") or {}).items():
            # Use a deep copy so that normalization does not leak between entries.
            config = deepcopy(raw_config) or {}
            config.setdefault("resource_type", key)

            try:
                config_obj = ResourceTypeConfig.model_validate(config)
            except ValidationError as e:
                self.collector.add_error(f"Resource type '{key}': {e}")
                continue

            self._validate(config_obj)
            configs[key] = config_obj
        return configs

    def _validate(self, config: ResourceTypeConfig):
        """Performs validations that span several fields of one resource type."""
        key = config.resource_type
        names = config.field_names

        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            self.collector.add_error(
                f"Resource type '{key}': duplicate fields {', '.join(duplicates)}."
            )

        for group in config.exclusive:
            unknown = [name for name in group if name not in names]
            if unknown:
                self.collector.add_error(
                    f"Resource type '{key}': exclusive group references unknown fields {', '.join(unknown)}."
                )
            if len(group) < 2:
                self.collector.add_error(
                    f"Resource type '{key}': exclusive group {group} needs at least two fields."
                )

        for field_config in config.fields:
            where = f"Resource type '{key}', field '{field_config.name}'"
            if field_config.type == "enum":
                if not field_config.choices:
                    self.collector.add_error(f"{where}: enum fields require 'choices'.")
                elif (
                    field_config.default is not None
                    and field_config.default not in field_config.choices
                ):
                    self.collector.add_error(
                        f"{where}: default '{field_config.default}' is not one of the choices."
                    )
            if field_config.transform and field_config.transform not in TRANSFORMATION_MAP:
                self.collector.add_error(
                    f"{where}: unknown transform '{field_config.transform}'."
                )
            if field_config.bag and not (
                field_config.type == "dict" or field_config.transform == "json_object"
            ):
                self.collector.add_error(
                    f"{where}: settings bags are only valid for dict or JSON object fields."
                )


def load_catalog(path: Optional[str] = None) -> Dict[str, ResourceTypeConfig]:
    """
    Reads and validates a catalog file (the bundled catalog by default).

    Raises:
        CatalogError: If the file cannot be read or any entry is invalid.
    """
    path = path or DEFAULT_CATALOG_PATH
    try:
        with open(path, "r") as f:
            catalog_data = yaml.safe_load(f)
    except (IOError, yaml.YAMLError) as e:
        raise CatalogError([f"Error reading or parsing catalog file '{path}': {e}"]) from e

    collector = ValidationErrorCollector()
    configs = CatalogParser(catalog_data, collector).parse()
    if collector.has_errors:
        raise CatalogError(collector.errors)

    logger.debug("Loaded %d resource types from %s", len(configs), path)
    return configs


def get_resource_type(key: str, path: Optional[str] = None) -> ResourceTypeConfig:
    configs = load_catalog(path)
    if key not in configs:
        raise CatalogError([f"Unknown resource type '{key}'."])
    return configs[key]
