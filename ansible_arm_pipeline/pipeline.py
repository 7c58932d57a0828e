"""
Composes the five pipeline stages for one resource type:

    reconcile -> (parse) -> build -> invoke -> project

A `ResourcePipeline` is configured by a `ResourceTypeConfig` mapping table and
an injected `ManagementClient`; it keeps no state between calls.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from ansible_arm_pipeline.exceptions import InvalidArgument
from ansible_arm_pipeline.interfaces.client import ManagementClient
from ansible_arm_pipeline.interfaces.config import ResourceTypeConfig
from ansible_arm_pipeline.invoker import OperationInvoker
from ansible_arm_pipeline.models import (
    CanonicalRequest,
    OperationKind,
    OperationResult,
    ParameterSet,
    PresentationModel,
)
from ansible_arm_pipeline.projector import Projection, ResultProjector
from ansible_arm_pipeline.reconciler import InputReconciler
from ansible_arm_pipeline.request_builder import RequestBuilder
from ansible_arm_pipeline.tracker import OperationTracker

logger = logging.getLogger(__name__)


class ResourcePipeline:
    def __init__(
        self,
        config: ResourceTypeConfig,
        client: ManagementClient,
        subscription_id: Optional[str] = None,
        tracker: Optional[OperationTracker] = None,
        wait: bool = True,
    ):
        self.config = config
        self.client = client
        self.reconciler = InputReconciler(config, subscription_id)
        self.builder = RequestBuilder(config)
        self.invoker = OperationInvoker(client, tracker, wait)
        self.projector = ResultProjector(config)

    def get(
        self,
        provided: Mapping[str, Any],
        parameter_set: Optional[ParameterSet] = None,
        missing_ok: bool = False,
    ) -> Optional[PresentationModel]:
        """Fetches a single resource; with `missing_ok`, an absent resource yields `None`."""
        canonical = self.reconciler.reconcile(parameter_set, provided)
        result = self.invoker.invoke(
            OperationKind.GET, canonical.identity, missing_ok=missing_ok
        )
        return self.projector.project(result)

    def list(
        self,
        provided: Mapping[str, Any],
        parameter_set: Optional[ParameterSet] = None,
    ) -> Projection:
        """
        Lists resources in the narrowest scope the input describes: a named
        resource is fetched directly, a resource group (plus parents) is listed,
        and with no scope at all the whole subscription is listed.
        """
        canonical = self.reconciler.reconcile(parameter_set, provided, scope_only=True)
        identity = canonical.identity

        if identity.name:
            result = self.invoker.invoke(OperationKind.GET, identity)
            return self.projector.project(result)

        if identity.resource_group_name:
            kind = OperationKind.LIST_BY_RESOURCE_GROUP
        elif self.config.list_by_subscription:
            kind = OperationKind.LIST_BY_SUBSCRIPTION
        else:
            params = ", ".join(["resource_group"] + self.config.parent_params)
            raise InvalidArgument(
                f"Listing {self.config.resource_type} resources requires: {params}."
            )

        result = self.invoker.invoke(kind, identity)
        return self.projector.project(result, unwrap_singleton=True)

    def prepare(
        self,
        provided: Mapping[str, Any],
        parameter_set: Optional[ParameterSet] = None,
    ) -> Tuple[CanonicalRequest, Dict[str, Any]]:
        """Reconciles and builds a create/update request without calling the client."""
        canonical = self.reconciler.reconcile(
            parameter_set, provided, require_settings=True, strict_identity=True
        )
        return canonical, self.builder.build(canonical)

    def create_or_update(
        self,
        provided: Mapping[str, Any],
        parameter_set: Optional[ParameterSet] = None,
    ) -> Optional[PresentationModel]:
        canonical, body = self.prepare(provided, parameter_set)
        return self.apply(canonical, body)

    def apply(
        self, canonical: CanonicalRequest, body: Dict[str, Any]
    ) -> Optional[PresentationModel]:
        """Sends a prepared request and projects the terminal resource."""
        logger.info(
            "Creating or updating %s '%s' in resource group '%s'",
            self.config.resource_type,
            canonical.identity.name,
            canonical.identity.resource_group_name,
        )
        result = self.invoker.invoke(
            OperationKind.CREATE_OR_UPDATE, canonical.identity, body
        )
        return self.projector.project(result)

    def delete(
        self,
        provided: Mapping[str, Any],
        parameter_set: Optional[ParameterSet] = None,
    ) -> OperationResult:
        canonical = self.reconciler.reconcile(
            parameter_set, provided, strict_identity=True
        )
        logger.info(
            "Deleting %s '%s' in resource group '%s'",
            self.config.resource_type,
            canonical.identity.name,
            canonical.identity.resource_group_name,
        )
        return self.invoker.invoke(OperationKind.DELETE, canonical.identity)
