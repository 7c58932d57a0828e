import logging
import time

from ansible_arm_pipeline.exceptions import OperationTimeout, ServiceError
from ansible_arm_pipeline.interfaces.client import ManagementClient
from ansible_arm_pipeline.models import OperationHandle, OperationState

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5
DEFAULT_TIMEOUT = 600

SUCCEEDED_STATUSES = ("succeeded", "ready")
FAILED_STATUSES = ("failed",)
CANCELLED_STATUSES = ("canceled", "cancelled")


def status_to_state(status: str) -> OperationState:
    """Maps a provider status string onto the invocation state machine."""
    lowered = (status or "").lower()
    if lowered in SUCCEEDED_STATUSES:
        return OperationState.SUCCEEDED
    if lowered in FAILED_STATUSES:
        return OperationState.FAILED
    if lowered in CANCELLED_STATUSES:
        return OperationState.CANCELLED
    return OperationState.IN_FLIGHT


class OperationTracker:
    """
    Polls a long-running operation until it reaches a terminal status.
    Polling blocks the calling thread; the only bound is `timeout`.
    """

    def __init__(
        self,
        client: ManagementClient,
        interval: float = DEFAULT_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.client = client
        self.interval = interval
        self.timeout = timeout

    def wait(self, handle: OperationHandle) -> OperationHandle:
        """
        Blocks until the operation behind `handle` terminates.

        Returns:
            The terminal handle of a succeeded operation.

        Raises:
            ServiceError: If the operation failed or was cancelled.
            OperationTimeout: If no terminal status was seen within `timeout`.
        """
        start_time = time.time()
        state = status_to_state(handle.status)

        while not state.is_terminal:
            elapsed = time.time() - start_time
            if elapsed >= self.timeout:
                raise OperationTimeout(handle.location, self.timeout, handle.status)

            # Providers may ask for a specific delay between polls; never sleep past the timeout.
            delay = handle.retry_after or self.interval
            time.sleep(min(delay, self.timeout - elapsed))
            handle = self.client.get_operation_status(handle)
            state = status_to_state(handle.status)
            logger.debug(
                "Operation '%s' reported status '%s'", handle.location, handle.status
            )

        if state == OperationState.FAILED:
            error = handle.error or {}
            raise ServiceError(
                error.get("message")
                or f"Long-running operation '{handle.location}' failed.",
                code=error.get("code"),
                response=handle.error,
            )
        if state == OperationState.CANCELLED:
            raise ServiceError(
                f"Long-running operation '{handle.location}' was cancelled.",
                code="Canceled",
            )
        return handle
