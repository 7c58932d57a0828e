import json
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

from ansible.module_utils.basic import AnsibleModule
from ansible.module_utils.urls import fetch_url

from ansible_arm_pipeline.exceptions import ServiceError
from ansible_arm_pipeline.helpers import DEFAULT_API_URL
from ansible_arm_pipeline.interfaces.client import ManagementClient
from ansible_arm_pipeline.models import OperationHandle, Page, ResourceIdentity

logger = logging.getLogger(__name__)

ASYNC_OPERATION_HEADER = "azure-asyncoperation"
LOCATION_HEADER = "location"
RETRY_AFTER_HEADER = "retry-after"

IN_PROGRESS = "InProgress"
SUCCEEDED = "Succeeded"


class RestManagementClient(ManagementClient):
    """
    A management client that talks to the REST endpoint through Ansible's
    `fetch_url`. It sends an already-acquired bearer token and does not retry.
    """

    def __init__(
        self,
        module: AnsibleModule,
        api_version: str,
        subscription_id: Optional[str] = None,
        api_url: Optional[str] = None,
        access_token: Optional[str] = None,
        request_timeout: int = 30,
    ):
        self.module = module
        self.api_version = api_version
        self.subscription_id = subscription_id or module.params.get("subscription_id")
        self.api_url = (api_url or module.params.get("api_url") or DEFAULT_API_URL).rstrip("/")
        self.access_token = access_token or module.params.get("access_token")
        self.request_timeout = request_timeout

    def get(self, identity: ResourceIdentity) -> Dict[str, Any]:
        body, _, _ = self._send_request("GET", self._path(identity))
        return body

    def create_or_update(self, identity: ResourceIdentity, body: Dict[str, Any]):
        resource, status_code, headers = self._send_request(
            "PUT", self._path(identity), data=body
        )
        handle = self._handle_from(status_code, headers, resource)
        return handle or resource

    def delete(self, identity: ResourceIdentity) -> Optional[OperationHandle]:
        _, status_code, headers = self._send_request("DELETE", self._path(identity))
        return self._handle_from(status_code, headers, None)

    def list_by_resource_group(self, scope: ResourceIdentity) -> Page:
        return self._page(self._path(scope.with_name(None)))

    def list_by_subscription(self, scope: ResourceIdentity) -> Page:
        path = (
            f"/subscriptions/{scope.subscription_id or self.subscription_id}"
            f"/providers/{scope.provider_namespace}/{scope.resource_type}"
        )
        return self._page(path)

    def list_next(self, next_link: str) -> Page:
        return self._page(next_link, with_api_version=False)

    def get_operation_status(self, handle: OperationHandle) -> OperationHandle:
        body, status_code, headers = self._send_request(
            "GET", handle.location, with_api_version=False
        )
        retry_after = self._retry_after(headers)

        # Azure-AsyncOperation endpoints report a status document; Location
        # endpoints answer 202 until done and then return the resource.
        if isinstance(body, dict) and "status" in body:
            return OperationHandle(
                status=body["status"],
                location=handle.location,
                retry_after=retry_after,
                resource=(body.get("properties") or {}).get("output"),
                error=body.get("error"),
            )
        if status_code == 202:
            return OperationHandle(
                status=IN_PROGRESS, location=handle.location, retry_after=retry_after
            )
        return OperationHandle(
            status=SUCCEEDED,
            location=handle.location,
            resource=body if isinstance(body, dict) and body else None,
        )

    def _path(self, identity: ResourceIdentity) -> str:
        if not identity.subscription_id:
            identity = identity.with_subscription(self.subscription_id)
        return identity.to_path()

    def _page(self, path: str, with_api_version: bool = True) -> Page:
        body, _, _ = self._send_request("GET", path, with_api_version=with_api_version)
        body = body or {}
        return Page(items=body.get("value", []), next_link=body.get("nextLink"))

    def _handle_from(self, status_code: int, headers: Dict[str, Any], resource) -> Optional[OperationHandle]:
        location = headers.get(ASYNC_OPERATION_HEADER) or headers.get(LOCATION_HEADER)
        if status_code not in (201, 202) or not location:
            return None
        status = IN_PROGRESS
        if isinstance(resource, dict):
            properties = resource.get("properties") or {}
            status = properties.get("provisioningState", IN_PROGRESS)
        return OperationHandle(
            status=status,
            location=location,
            retry_after=self._retry_after(headers),
        )

    def _retry_after(self, headers: Dict[str, Any]) -> Optional[float]:
        value = headers.get(RETRY_AFTER_HEADER)
        try:
            return float(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def _send_request(
        self,
        method: str,
        path: str,
        data: Any = None,
        with_api_version: bool = True,
    ) -> Tuple[Any, int, Dict[str, Any]]:
        """
        A wrapper around fetch_url that raises `ServiceError` for every
        non-2xx response.
        """
        # If the path is already a full URL (next links, status locations), use it directly.
        if path.startswith("http://") or path.startswith("https://"):
            url = path
        else:
            url = f"{self.api_url}/{path.lstrip('/')}"
        if with_api_version:
            separator = "&" if "?" in url else "?"
            url += separator + urlencode({"api-version": self.api_version})

        if data is not None and not isinstance(data, str):
            data = self.module.jsonify(data)

        logger.debug("%s %s", method, url)
        response, info = fetch_url(
            self.module,
            url,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            },
            method=method,
            data=data,
            timeout=self.request_timeout,
        )

        body_content = response.read() if response else info.get("body")
        status_code = info["status"]

        if status_code < 200 or status_code >= 300:
            error, raw = self._parse_error(body_content)
            raise ServiceError(
                error.get("message")
                or f"Request to {url} failed: {info.get('msg')}",
                status_code=status_code,
                code=error.get("code"),
                response=raw,
            )

        if not body_content:
            return None, status_code, info

        try:
            return json.loads(body_content), status_code, info
        except json.JSONDecodeError as e:
            raise ServiceError(
                f"API returned a success status ({status_code}) but the response was not valid JSON.",
                status_code=status_code,
                response=body_content.decode(errors="ignore")
                if isinstance(body_content, bytes)
                else body_content,
            ) from e

    def _parse_error(self, body_content) -> Tuple[Dict[str, Any], Any]:
        if not body_content:
            return {}, None
        try:
            parsed = json.loads(body_content)
        except (TypeError, ValueError):
            raw = (
                body_content.decode(errors="ignore")
                if isinstance(body_content, bytes)
                else body_content
            )
            return {}, raw
        error = parsed.get("error", parsed) if isinstance(parsed, dict) else {}
        return error if isinstance(error, dict) else {}, parsed
