"""
Calls the management client for one operation and records the invocation's
state. Long-running operations are handed to an `OperationTracker`; list
operations are followed through every `next_link` before returning.
"""

import logging
from typing import Any, Dict, List, Optional

from ansible_arm_pipeline.exceptions import InvalidArgument, ServiceError
from ansible_arm_pipeline.interfaces.client import ManagementClient
from ansible_arm_pipeline.models import (
    OperationHandle,
    OperationKind,
    OperationResult,
    OperationState,
    Page,
    ResourceIdentity,
)
from ansible_arm_pipeline.tracker import OperationTracker, status_to_state

logger = logging.getLogger(__name__)

NOT_FOUND = 404


class OperationInvoker:
    """
    Executes management operations against an injected client. Faults are not
    retried here; they are annotated with the operation and resource they
    belong to and re-raised.
    """

    def __init__(
        self,
        client: ManagementClient,
        tracker: Optional[OperationTracker] = None,
        wait: bool = True,
    ):
        self.client = client
        self.tracker = tracker or OperationTracker(client)
        self.wait = wait

    def invoke(
        self,
        kind: OperationKind,
        identity: ResourceIdentity,
        body: Optional[Dict[str, Any]] = None,
        missing_ok: bool = False,
    ) -> OperationResult:
        """
        Runs one operation.

        Args:
            kind: The operation to run.
            identity: The target resource, or the list scope for list operations.
            body: The request body; required for CREATE_OR_UPDATE.
            missing_ok: For GET, report a 404 as an empty result instead of a fault.

        Returns:
            An `OperationResult` holding either the terminal resource, the fully
            materialised collection, or (with `wait=False`) the in-flight handle.

        Raises:
            ServiceError: If the client reports a fault or the operation fails.
            OperationTimeout: If a long-running operation does not finish in time.
        """
        if kind == OperationKind.CREATE_OR_UPDATE and body is None:
            raise InvalidArgument("A request body is required for create_or_update.")

        result = OperationResult(kind=kind, state=OperationState.IN_FLIGHT)
        logger.debug("Invoking %s on %s", kind.value, identity)

        try:
            if kind == OperationKind.GET:
                result.resource = self.client.get(identity)
            elif kind == OperationKind.CREATE_OR_UPDATE:
                response = self.client.create_or_update(identity, body)
                self._complete(result, response, identity)
            elif kind == OperationKind.DELETE:
                response = self.client.delete(identity)
                self._complete(result, response, identity)
            elif kind == OperationKind.LIST_BY_RESOURCE_GROUP:
                result.items = self._collect(self.client.list_by_resource_group(identity))
            elif kind == OperationKind.LIST_BY_SUBSCRIPTION:
                result.items = self._collect(self.client.list_by_subscription(identity))
        except ServiceError as e:
            if missing_ok and kind == OperationKind.GET and e.status_code == NOT_FOUND:
                logger.debug("Resource %s does not exist", identity)
                result.state = OperationState.SUCCEEDED
                return result
            result.state = OperationState.FAILED
            self._annotate(e, kind, identity)
            raise

        if result.state == OperationState.IN_FLIGHT and not (
            result.handle and not self.wait
        ):
            result.state = OperationState.SUCCEEDED
        return result

    def _complete(
        self,
        result: OperationResult,
        response: Any,
        identity: ResourceIdentity,
    ):
        if not isinstance(response, OperationHandle):
            result.resource = response
            return

        result.handle = response
        if not self.wait:
            logger.info(
                "Not waiting for %s on '%s' (status '%s')",
                result.kind.value,
                identity.name,
                response.status,
            )
            result.state = status_to_state(response.status)
            return

        terminal = self.tracker.wait(response)
        result.handle = terminal
        result.resource = terminal.resource
        if result.resource is None and result.kind == OperationKind.CREATE_OR_UPDATE:
            # The status endpoint does not always echo the resource.
            result.resource = self.client.get(identity)

    def _collect(self, page: Page) -> List[Dict[str, Any]]:
        items = list(page.items)
        pages = 1
        while page.next_link:
            page = self.client.list_next(page.next_link)
            items.extend(page.items)
            pages += 1
        logger.debug("Collected %d items from %d pages", len(items), pages)
        return items

    def _annotate(self, error: ServiceError, kind: OperationKind, identity: ResourceIdentity):
        if error.operation is None:
            error.operation = kind.value
        if error.resource_group is None:
            error.resource_group = identity.resource_group_name
        if error.name is None:
            error.name = identity.name
