"""Error taxonomy shared by every stage of the resource pipeline."""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""

    def details(self) -> Dict[str, Any]:
        """Structured context passed to the command host alongside the message."""
        return {}


class MalformedIdentifier(PipelineError):
    """Raised when a resource path does not match the expected segment structure."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Malformed resource identifier '{path}'."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {"resource_id": self.path}


class InvalidArgument(PipelineError):
    """Raised when user input is missing, conflicting or cannot be mapped."""

    pass


class ServiceError(PipelineError):
    """Raised when the management client reports a fault."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        operation: Optional[str] = None,
        resource_group: Optional[str] = None,
        name: Optional[str] = None,
        response: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.operation = operation
        self.resource_group = resource_group
        self.name = name
        self.response = response

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            target = "/".join(p for p in (self.resource_group, self.name) if p)
            parts.append(
                f"Operation: {self.operation}" + (f" on '{target}'" if target else "")
            )
        if self.status_code is not None:
            parts.append(f"Status: {self.status_code}")
        if self.code:
            parts.append(f"Code: {self.code}")
        return ". ".join(parts)

    def details(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "error_code": self.code,
            "operation": self.operation,
            "resource_group": self.resource_group,
            "name": self.name,
            "response": self.response,
        }


class OperationTimeout(PipelineError):
    """Raised when a long-running operation does not reach a terminal state in time."""

    def __init__(self, location: Optional[str], timeout: float, last_status: str = ""):
        self.location = location
        self.timeout = timeout
        self.last_status = last_status
        message = (
            f"Timeout after {timeout} seconds waiting for operation "
            f"'{location}' to complete."
        )
        if last_status:
            message = f"{message} Last reported status: '{last_status}'."
        super().__init__(message)

    def details(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "timeout": self.timeout,
            "last_status": self.last_status,
        }


class CatalogError(Exception):
    """Raised when the resource-type catalog cannot be read or fails validation."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(
            "Invalid resource-type catalog:\n"
            + "\n".join(f"  {i}. {error}" for i, error in enumerate(self.errors, 1))
        )
