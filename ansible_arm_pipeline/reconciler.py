"""
Normalizes whichever parameter set the command host populated (name and
group, resource object, resource id, or a pipeline property bag) into one
`CanonicalRequest`.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ansible_arm_pipeline import identifier
from ansible_arm_pipeline.exceptions import InvalidArgument
from ansible_arm_pipeline.helpers import get_by_path, normalize_key
from ansible_arm_pipeline.interfaces.config import ResourceTypeConfig
from ansible_arm_pipeline.models import (
    CanonicalRequest,
    ParameterSet,
    PresentationModel,
    ResourceIdentity,
)
from ansible_arm_pipeline.request_builder import REVERSE_TRANSFORMATION_MAP

logger = logging.getLogger(__name__)

RESOURCE_ID_PARAM = "resource_id"
INPUT_OBJECT_PARAM = "input_object"
RESOURCE_GROUP_PARAM = "resource_group"
NAME_PARAM = "name"

# Property names accepted from a pipeline object, matched via `normalize_key`.
PIPELINE_ID_KEYS = ("id", "resource_id")
PIPELINE_GROUP_KEYS = ("resource_group_name", "resource_group")
PIPELINE_NAME_KEYS = ("name",)


def _is_given(value: Any) -> bool:
    # A switch turned off does not count as a member of an exclusive group.
    return value is not None and value is not False


def _format_names(names: List[str]) -> str:
    if len(names) <= 2:
        return " and ".join(names)
    return ", ".join(names[:-1]) + f" and {names[-1]}"


class _PropertyBag:
    """Case- and underscore-insensitive read access to a pipeline object."""

    def __init__(self, data: Mapping[str, Any]):
        self.raw = dict(data)
        self._folded = {normalize_key(k): v for k, v in data.items()}

    def get(self, key: str, default: Any = None) -> Any:
        return self._folded.get(normalize_key(key), default)

    def first(self, keys: Tuple[str, ...]) -> Any:
        for key in keys:
            value = self.get(key)
            if value:
                return value
        return None


class InputReconciler:
    """
    Resolves alternative input shapes into a canonical identity and settings
    for one resource type.

    The reconciler holds only configuration; each call to `reconcile` builds a
    fresh `CanonicalRequest`.
    """

    def __init__(self, config: ResourceTypeConfig, subscription_id: Optional[str] = None):
        self.config = config
        self.subscription_id = subscription_id

    def reconcile(
        self,
        parameter_set: Optional[ParameterSet],
        provided: Mapping[str, Any],
        scope_only: bool = False,
        require_settings: bool = False,
        strict_identity: bool = False,
    ) -> CanonicalRequest:
        """
        Builds a `CanonicalRequest` from the populated parameter set.

        Args:
            parameter_set: The active parameter set, or `None` to infer it from
                which discriminating parameters are populated.
            provided: The parameters supplied by the command host.
            scope_only: Allow a missing name (and group) for list operations.
            require_settings: Enforce required settings (create/update).
            strict_identity: Treat an empty `resource_id` as an error instead of
                as "not provided".

        Raises:
            InvalidArgument: On conflicting, missing or mismatched input.
            MalformedIdentifier: If `resource_id` cannot be parsed.
        """
        if strict_identity and provided.get(RESOURCE_ID_PARAM) == "":
            raise InvalidArgument("Parameter 'resource_id' must not be empty.")

        if parameter_set is None:
            parameter_set = self._infer_parameter_set(provided)

        if parameter_set == ParameterSet.BY_RESOURCE_ID:
            identity, settings = self._from_resource_id(provided, scope_only)
        elif parameter_set == ParameterSet.BY_OBJECT:
            identity, settings = self._from_object(provided)
        elif parameter_set == ParameterSet.BY_PIPELINE:
            identity, settings = self._from_pipeline(provided)
        else:
            identity, settings = self._from_name(provided)

        explicit = self._explicit_settings(provided)
        self._check_exclusive(explicit)
        # Sibling parameters given explicitly win over values read from an
        # object, including the other members of their exclusive group.
        for group in self.config.exclusive:
            if any(_is_given(explicit.get(name)) for name in group):
                for name in group:
                    settings.pop(name, None)
        settings.update(explicit)

        self._check_exclusive(settings)
        self._apply_defaults(settings)
        self._check_identity(identity, scope_only)
        if require_settings:
            self._check_required(settings)

        logger.debug(
            "Reconciled %s input for %s into %s",
            parameter_set.value,
            self.config.resource_type,
            identity,
        )
        return CanonicalRequest(
            parameter_set=parameter_set, identity=identity, settings=settings
        )

    def _infer_parameter_set(self, provided: Mapping[str, Any]) -> ParameterSet:
        active = []
        if provided.get(RESOURCE_ID_PARAM):
            active.append((ParameterSet.BY_RESOURCE_ID, RESOURCE_ID_PARAM))
        input_object = provided.get(INPUT_OBJECT_PARAM)
        if input_object is not None:
            if isinstance(input_object, PresentationModel):
                active.append((ParameterSet.BY_OBJECT, INPUT_OBJECT_PARAM))
            else:
                active.append((ParameterSet.BY_PIPELINE, INPUT_OBJECT_PARAM))
        name_params = [
            p
            for p in [RESOURCE_GROUP_PARAM, NAME_PARAM] + self.config.parent_params
            if provided.get(p)
        ]
        if name_params:
            active.append((ParameterSet.BY_NAME, name_params[0]))

        if len(active) > 1:
            names = [param for _, param in active]
            raise InvalidArgument(
                f"Parameters {_format_names(names)} address the resource in "
                "different ways; specify only one of them."
            )
        return active[0][0] if active else ParameterSet.BY_NAME

    def _build_identity(
        self,
        resource_group: Optional[str],
        name: Optional[str],
        parent_names: List[Optional[str]],
        subscription_id: Optional[str] = None,
    ) -> ResourceIdentity:
        parent_chain = tuple(
            (parent.type, parent_name)
            for parent, parent_name in zip(self.config.parents, parent_names)
        )
        return ResourceIdentity(
            subscription_id=subscription_id or self.subscription_id,
            resource_group_name=resource_group,
            provider_namespace=self.config.provider_namespace,
            resource_type=self.config.type,
            name=name,
            parent_chain=parent_chain,
        )

    def _from_name(self, provided: Mapping[str, Any]):
        identity = self._build_identity(
            provided.get(RESOURCE_GROUP_PARAM),
            provided.get(NAME_PARAM),
            [provided.get(p) for p in self.config.parent_params],
        )
        return identity, {}

    def _from_resource_id(self, provided: Mapping[str, Any], scope_only: bool):
        resource_id = provided.get(RESOURCE_ID_PARAM)
        identity = identifier.parse(resource_id)
        if identity is None:
            raise InvalidArgument("Parameter 'resource_id' is required.")
        if not identifier.matches_type(identity, self.config.full_type):
            raise InvalidArgument(
                f"Resource id '{resource_id}' refers to type '{identity.full_type}', "
                f"expected '{self.config.full_type}'."
            )
        if identity.name is None and not scope_only:
            raise InvalidArgument(
                f"Resource id '{resource_id}' does not address a single resource."
            )
        if identity.subscription_id is None:
            identity = identity.with_subscription(self.subscription_id)
        return identity, {}

    def _check_object_type(self, identity: ResourceIdentity, object_id: str):
        if not identifier.matches_type(identity, self.config.full_type):
            raise InvalidArgument(
                f"Parameter 'input_object' refers to '{object_id}' of type "
                f"'{identity.full_type}', expected '{self.config.full_type}'."
            )

    def _from_object(self, provided: Mapping[str, Any]):
        input_object: PresentationModel = provided[INPUT_OBJECT_PARAM]
        identity = identifier.parse(input_object.id)
        if identity is not None:
            self._check_object_type(identity, input_object.id)
        else:
            identity = self._build_identity(
                input_object.resource_group_name,
                input_object.name,
                [input_object.get(p) for p in self.config.parent_params],
            )
        settings = self._settings_from(input_object.get, input_object.to_dict())
        return identity, settings

    def _from_pipeline(self, provided: Mapping[str, Any]):
        value = provided[INPUT_OBJECT_PARAM]
        if not isinstance(value, Mapping):
            raise InvalidArgument(
                f"Parameter 'input_object' must be a mapping, got {type(value).__name__}."
            )
        bag = _PropertyBag(value)
        object_id = bag.first(PIPELINE_ID_KEYS)
        identity = identifier.parse(object_id)
        if identity is not None:
            self._check_object_type(identity, object_id)
        else:
            identity = self._build_identity(
                bag.first(PIPELINE_GROUP_KEYS),
                bag.first(PIPELINE_NAME_KEYS),
                [bag.get(p) for p in self.config.parent_params],
            )
        settings = self._settings_from(bag.get, bag.raw)
        return identity, settings

    def _settings_from(self, lookup, raw: Mapping[str, Any]) -> Dict[str, Any]:
        """Reads each known setting from an object by name, falling back to its wire path."""
        settings = {}
        claimed = set()
        for field_config in self.config.fields:
            if field_config.write_only:
                continue
            value = lookup(field_config.name)
            # Only the first field that reads a wire path back gets its value.
            if value is None and field_config.wire_path not in claimed:
                value = get_by_path(dict(raw), field_config.wire_path)
                if value is not None and field_config.transform:
                    reverse = REVERSE_TRANSFORMATION_MAP.get(field_config.transform)
                    value = reverse(value) if reverse else None
            if value is not None:
                settings[field_config.name] = value
                claimed.add(field_config.wire_path)
        return settings

    def _explicit_settings(self, provided: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            name: provided[name]
            for name in self.config.field_names
            if provided.get(name) is not None
        }

    def _check_exclusive(self, settings: Mapping[str, Any]):
        for group in self.config.exclusive:
            given = [name for name in group if _is_given(settings.get(name))]
            if len(given) > 1:
                raise InvalidArgument(
                    f"At most one of {_format_names(group)} can be specified."
                )

    def _apply_defaults(self, settings: Dict[str, Any]):
        for field_config in self.config.fields:
            value = settings.get(field_config.name)
            is_unset = value is None or (
                field_config.unset is not None and value == field_config.unset
            )
            if not is_unset:
                continue
            if field_config.default is not None:
                settings[field_config.name] = field_config.default
            else:
                settings.pop(field_config.name, None)

    def _check_identity(self, identity: ResourceIdentity, scope_only: bool):
        missing = []
        if not identity.resource_group_name and not scope_only:
            missing.append(RESOURCE_GROUP_PARAM)
        if identity.resource_group_name or not scope_only:
            missing.extend(
                parent.param
                for parent, (_, parent_name) in zip(
                    self.config.parents, identity.parent_chain
                )
                if not parent_name
            )
        if not identity.name and not scope_only:
            missing.append(NAME_PARAM)
        if missing:
            raise InvalidArgument(
                f"Missing required parameters: {', '.join(missing)}. Specify the "
                "resource by name, by resource_id or by input_object."
            )

    def _check_required(self, settings: Mapping[str, Any]):
        missing = [
            f.name
            for f in self.config.fields
            if f.required and settings.get(f.name) is None
        ]
        if missing:
            raise InvalidArgument(
                f"Missing required parameters: {', '.join(missing)}."
            )
