"""
This module defines the core data structures passed between the stages of the
resource pipeline: the parsed resource identity, the canonical request handed
from the reconciler to the builder, the raw operation results returned by the
invoker, and the presentation objects returned to the command host.

Identity and canonical request objects are frozen; every invocation builds
fresh instances and nothing here is cached across invocations.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ansible_arm_pipeline.helpers import normalize_key


class ParameterSet(str, Enum):
    """The alternative input shapes a command host may use to address a resource."""

    BY_NAME = "by_name"
    BY_OBJECT = "by_object"
    BY_RESOURCE_ID = "by_resource_id"
    BY_PIPELINE = "by_pipeline"


class OperationKind(str, Enum):
    GET = "get"
    CREATE_OR_UPDATE = "create_or_update"
    DELETE = "delete"
    LIST_BY_RESOURCE_GROUP = "list_by_resource_group"
    LIST_BY_SUBSCRIPTION = "list_by_subscription"

    @property
    def is_list(self) -> bool:
        return self in (
            OperationKind.LIST_BY_RESOURCE_GROUP,
            OperationKind.LIST_BY_SUBSCRIPTION,
        )


class OperationState(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_FLIGHT = "InFlight"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            OperationState.SUCCEEDED,
            OperationState.FAILED,
            OperationState.CANCELLED,
        )


@dataclass(frozen=True)
class ResourceIdentity:
    """
    The structured form of a resource path such as
    `/subscriptions/{sub}/resourceGroups/{rg}/providers/{ns}/{type}/{name}`.

    `parent_chain` holds the (type, name) pairs of every ancestor below the
    provider namespace, outermost first. A `name` of `None` addresses the
    collection of resources of `resource_type` under the given scope.
    """

    subscription_id: Optional[str]
    resource_group_name: Optional[str]
    provider_namespace: Optional[str] = None
    resource_type: Optional[str] = None
    name: Optional[str] = None
    parent_chain: Tuple[Tuple[str, str], ...] = ()

    @property
    def full_type(self) -> Optional[str]:
        """The namespaced type, e.g. `Microsoft.Compute/virtualMachines/extensions`."""
        if not (self.provider_namespace and self.resource_type):
            return None
        types = [t for t, _ in self.parent_chain] + [self.resource_type]
        return "/".join([self.provider_namespace] + types)

    @property
    def parent_names(self) -> Tuple[str, ...]:
        return tuple(n for _, n in self.parent_chain)

    def with_name(self, name: Optional[str]) -> "ResourceIdentity":
        return replace(self, name=name)

    def with_subscription(self, subscription_id: str) -> "ResourceIdentity":
        return replace(self, subscription_id=subscription_id)

    def to_path(self) -> str:
        """Formats the identity back into a resource path (inverse of `parse`)."""
        path = (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group_name}"
        )
        if not self.provider_namespace:
            return path
        path += f"/providers/{self.provider_namespace}"
        for parent_type, parent_name in self.parent_chain:
            path += f"/{parent_type}/{parent_name}"
        if self.resource_type:
            path += f"/{self.resource_type}"
            if self.name:
                path += f"/{self.name}"
        return path


@dataclass(frozen=True)
class CanonicalRequest:
    """
    The normalized user input: one identity plus one read-only settings mapping.
    It is immutable input to the request builder and the operation invoker.
    """

    parameter_set: ParameterSet
    identity: ResourceIdentity
    settings: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self):
        if not isinstance(self.settings, MappingProxyType):
            object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))


@dataclass
class Page:
    """One page of a list operation; `next_link` is empty on the last page."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    next_link: Optional[str] = None


@dataclass
class OperationHandle:
    """
    A long-running operation in progress, as reported by the management client.
    `resource` holds the terminal body when the provider returns one.
    """

    status: str
    location: Optional[str] = None
    retry_after: Optional[float] = None
    resource: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


@dataclass
class OperationResult:
    kind: OperationKind
    state: OperationState = OperationState.NOT_STARTED
    resource: Optional[Dict[str, Any]] = None
    items: Optional[List[Dict[str, Any]]] = None
    handle: Optional[OperationHandle] = None

    @property
    def is_collection(self) -> bool:
        return self.items is not None


@dataclass
class PresentationModel:
    """
    The output-facing view of a single resource. Known top-level fields are
    exposed as attributes; everything else the provider returned, plus any
    configured projections and legacy aliases, lives in `fields`.
    """

    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    resource_group_name: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)
    properties: Dict[str, Any] = field(default_factory=dict)
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.fields)
        data.update(
            {
                "id": self.id,
                "name": self.name,
                "type": self.type,
                "location": self.location,
                "resource_group_name": self.resource_group_name,
                "tags": self.tags,
                "properties": self.properties,
            }
        )
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """
        Looks up a field by name, ignoring case and underscores, so that both
        `resource_group_name` and `ResourceGroupName` resolve to the same value.
        """
        wanted = normalize_key(key)
        for name, value in self.to_dict().items():
            if normalize_key(name) == wanted:
                return value
        return default
