"""
Maps a `CanonicalRequest` into the body expected by the provider operation.
No network or disk I/O happens here; anything that cannot be mapped fails
before the invoker is reached.
"""

import copy
import json
import logging
from typing import Any, Callable, Dict

from ansible_arm_pipeline.exceptions import InvalidArgument
from ansible_arm_pipeline.helpers import set_by_path
from ansible_arm_pipeline.interfaces.config import (
    FieldConfig,
    ResourceTypeConfig,
    SettingsBagConfig,
)
from ansible_arm_pipeline.models import CanonicalRequest

logger = logging.getLogger(__name__)

TRUE_STRINGS = ("true", "yes", "on", "1")
FALSE_STRINGS = ("false", "no", "off", "0")


def parse_bool_flag(value: Any) -> bool:
    """Parses booleans and boolean-like strings ("True", "false", ...) case-insensitively."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise InvalidArgument(f"Value '{value}' is not a valid boolean flag.")


def _json_object(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"Value is not a valid JSON object: {e}") from e
    if not isinstance(parsed, dict):
        raise InvalidArgument("Value must be a JSON object.")
    return parsed


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else [value]


# A map of transformation names (referenced from the catalog) to functions.
# This makes the system easily extendable with new transformations.
TRANSFORMATION_MAP: Dict[str, Callable[[Any], Any]] = {
    "ip_address_list": lambda x: [{"ipAddress": ip} for ip in _as_list(x)],
    "fqdn_list": lambda x: [{"fqdn": fqdn} for fqdn in _as_list(x)],
    "resource_id_ref": lambda x: {"id": x},
    "resource_id_list": lambda x: [{"id": rid} for rid in _as_list(x)],
    "json_object": _json_object,
    "negate": lambda x: not parse_bool_flag(x),
}


def _unwrap_each(key: str) -> Callable[[Any], Any]:
    """Reads `[{key: v}, ...]` back into `[v, ...]`; any other shape is not ours."""

    def unwrap(value):
        if not isinstance(value, list):
            return None
        if not all(isinstance(item, dict) and set(item) == {key} for item in value):
            return None
        return [item[key] for item in value] or None

    return unwrap


# Inverses used when a setting is read back from an existing resource.
# Transformations missing here are never read back.
REVERSE_TRANSFORMATION_MAP: Dict[str, Callable[[Any], Any]] = {
    "ip_address_list": _unwrap_each("ipAddress"),
    "fqdn_list": _unwrap_each("fqdn"),
    "resource_id_ref": lambda x: x.get("id") if isinstance(x, dict) else None,
    "resource_id_list": _unwrap_each("id"),
    "negate": lambda x: not parse_bool_flag(x),
}


class RequestBuilder:
    """Builds provider request bodies for one resource type."""

    def __init__(self, config: ResourceTypeConfig):
        self.config = config

    def build(self, canonical: CanonicalRequest) -> Dict[str, Any]:
        """
        Maps canonical settings into the provider body.

        The result depends only on `canonical`; building the same request twice
        yields structurally equal bodies.

        Raises:
            InvalidArgument: If a value cannot be mapped (unknown enum member,
                malformed flag, settings bag missing required keys, ...).
        """
        body = copy.deepcopy(self.config.body_defaults)
        for field_config in self.config.fields:
            value = canonical.settings.get(field_config.name)
            if value is None:
                continue
            value = self._convert(field_config, copy.deepcopy(value))
            set_by_path(body, field_config.wire_path, value)

        logger.debug(
            "Built request body for %s '%s' with keys %s",
            self.config.resource_type,
            canonical.identity.name,
            sorted(body),
        )
        return body

    def _convert(self, field_config: FieldConfig, value: Any) -> Any:
        if field_config.type == "enum":
            value = self._parse_enum(field_config, value)
        elif field_config.type == "bool":
            value = parse_bool_flag(value)
        elif field_config.type in ("int", "float"):
            value = self._parse_number(field_config, value)
        elif field_config.type == "list":
            value = list(_as_list(value))

        if field_config.transform:
            transform = TRANSFORMATION_MAP.get(field_config.transform)
            if transform is None:
                raise InvalidArgument(
                    f"Unknown transformation '{field_config.transform}' for '{field_config.name}'."
                )
            value = transform(value)

        if field_config.bag is not None:
            self._validate_bag(field_config.name, field_config.bag, value)
        return value

    def _parse_enum(self, field_config: FieldConfig, value: Any) -> str:
        for choice in field_config.choices:
            if str(value).lower() == choice.lower():
                return choice
        raise InvalidArgument(
            f"Invalid value '{value}' for '{field_config.name}'. "
            f"Expected one of: {', '.join(field_config.choices)}."
        )

    def _parse_number(self, field_config: FieldConfig, value: Any):
        cast = int if field_config.type == "int" else float
        if isinstance(value, bool):
            raise InvalidArgument(f"Value for '{field_config.name}' must be a number.")
        try:
            return cast(value)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(
                f"Value '{value}' for '{field_config.name}' must be a number."
            ) from e

    def _validate_bag(self, name: str, bag: SettingsBagConfig, value: Any):
        if not isinstance(value, dict):
            raise InvalidArgument(f"Parameter '{name}' must be a mapping.")
        missing = [key for key in bag.required_keys if key not in value]
        if missing:
            raise InvalidArgument(
                f"Parameter '{name}' is missing required keys: {', '.join(missing)}."
            )
        if not bag.allow_extra_keys:
            known = set(bag.required_keys) | set(bag.optional_keys)
            unknown = sorted(key for key in value if key not in known)
            if unknown:
                raise InvalidArgument(
                    f"Parameter '{name}' has unsupported keys: {', '.join(unknown)}."
                )
