"""
Parses resource paths of the form

    /subscriptions/{sub}/resourceGroups/{rg}/providers/{ns}/{type}/{name}[/{childType}/{childName}]*

into `ResourceIdentity` objects. All functions here are pure.
"""

import logging
from typing import Optional

from ansible_arm_pipeline.exceptions import MalformedIdentifier
from ansible_arm_pipeline.models import ResourceIdentity

logger = logging.getLogger(__name__)

# Fixed token positions after empty tokens are discarded.
SUBSCRIPTION_INDEX = 1
RESOURCE_GROUP_INDEX = 3
NAMESPACE_INDEX = 5
FIRST_TYPE_INDEX = 6

MIN_TOKENS = RESOURCE_GROUP_INDEX + 1


def parse(path: Optional[str]) -> Optional[ResourceIdentity]:
    """
    Parses a resource path into a `ResourceIdentity`.

    Empty or `None` input yields `None`; callers decide whether that means
    "not provided" or an error. Fewer than four non-empty segments raise
    `MalformedIdentifier`, since the resource group name is always token 3.

    Type/name pairs after the provider namespace are read left to right: all
    but the last form the parent chain, the last is the leaf resource. A
    trailing type without a name addresses a collection (`name` is `None`).
    """
    if path is None or not path.strip():
        return None

    tokens = [token for token in path.split("/") if token]
    if len(tokens) < MIN_TOKENS:
        raise MalformedIdentifier(
            path,
            f"Expected at least {MIN_TOKENS} segments, found {len(tokens)}.",
        )

    subscription_id = tokens[SUBSCRIPTION_INDEX]
    resource_group_name = tokens[RESOURCE_GROUP_INDEX]
    provider_namespace = (
        tokens[NAMESPACE_INDEX] if len(tokens) > NAMESPACE_INDEX else None
    )

    type_tokens = tokens[FIRST_TYPE_INDEX:]
    pairs = [
        (type_tokens[i], type_tokens[i + 1] if i + 1 < len(type_tokens) else None)
        for i in range(0, len(type_tokens), 2)
    ]

    resource_type, name = (None, None)
    if pairs:
        resource_type, name = pairs[-1]
        pairs = pairs[:-1]

    identity = ResourceIdentity(
        subscription_id=subscription_id,
        resource_group_name=resource_group_name,
        provider_namespace=provider_namespace,
        resource_type=resource_type,
        name=name,
        parent_chain=tuple(pairs),
    )
    logger.debug("Parsed resource id '%s' into %s", path, identity)
    return identity


def resource_group_from_id(resource_id: Optional[str]) -> Optional[str]:
    """Re-derives the resource group name from a resource id, or `None` for an empty id."""
    identity = parse(resource_id)
    return identity.resource_group_name if identity else None


def matches_type(identity: ResourceIdentity, full_type: str) -> bool:
    """
    Checks whether the identity's namespaced type equals `full_type`, ignoring
    case as the provider does.
    """
    return (identity.full_type or "").lower() == full_type.lower()
