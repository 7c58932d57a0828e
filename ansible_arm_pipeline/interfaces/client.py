from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from ansible_arm_pipeline.models import OperationHandle, Page, ResourceIdentity


class ManagementClient(ABC):
    """
    The boundary to the provider's resource-management API.

    Implementations own authentication, transport and (de)serialization. They
    report faults by raising `ServiceError`; retrying is up to them. The
    pipeline treats a client instance as read-only configuration and never
    mutates it.
    """

    @abstractmethod
    def get(self, identity: ResourceIdentity) -> Dict[str, Any]:
        """Returns the raw representation of a single resource."""
        ...

    @abstractmethod
    def create_or_update(
        self, identity: ResourceIdentity, body: Dict[str, Any]
    ) -> Union[Dict[str, Any], OperationHandle]:
        """
        Creates or replaces a resource.

        Returns:
            The terminal resource when the provider completes synchronously, or
            an `OperationHandle` to be polled for completion.
        """
        ...

    @abstractmethod
    def delete(self, identity: ResourceIdentity) -> Optional[OperationHandle]:
        """Deletes a resource; returns a handle when deletion is asynchronous."""
        ...

    @abstractmethod
    def list_by_resource_group(self, scope: ResourceIdentity) -> Page:
        """
        Lists resources of `scope.resource_type` in `scope.resource_group_name`
        (under `scope.parent_chain` for child resources).
        """
        ...

    @abstractmethod
    def list_by_subscription(self, scope: ResourceIdentity) -> Page:
        """Lists resources of `scope.resource_type` across the subscription."""
        ...

    @abstractmethod
    def list_next(self, next_link: str) -> Page:
        """Fetches the page addressed by a previous page's `next_link`."""
        ...

    @abstractmethod
    def get_operation_status(self, handle: OperationHandle) -> OperationHandle:
        """Polls the status location of a long-running operation once."""
        ...
