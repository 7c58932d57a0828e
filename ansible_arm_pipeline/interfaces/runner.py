import json
from typing import Any, Dict, Optional

from ansible.module_utils.basic import AnsibleModule

from ansible_arm_pipeline.client import RestManagementClient
from ansible_arm_pipeline.exceptions import PipelineError
from ansible_arm_pipeline.helpers import DEFAULT_API_URL
from ansible_arm_pipeline.interfaces.client import ManagementClient
from ansible_arm_pipeline.interfaces.config import ResourceTypeConfig
from ansible_arm_pipeline.pipeline import ResourcePipeline
from ansible_arm_pipeline.tracker import (
    DEFAULT_INTERVAL,
    DEFAULT_TIMEOUT,
    OperationTracker,
)


class BaseRunner:
    """
    Abstract base class for all module runners.
    It handles common initialization tasks, such as setting up the management
    client and the resource pipeline, and reports pipeline errors back to Ansible.
    """

    def __init__(
        self,
        module: AnsibleModule,
        context: dict,
        client: Optional[ManagementClient] = None,
    ):
        """
        Initializes the runner.

        Args:
            module: The AnsibleModule instance.
            context: The resource type's catalog entry, as rendered into the module.
            client: The management client to use. When omitted, a REST client is
                built from the module's connection parameters.
        """
        self.module = module
        self.context = context
        self.has_changed = False
        self.resource = None

        params = module.params
        self.config = ResourceTypeConfig.model_validate(context)
        self.client = client or RestManagementClient(
            module,
            self.config.api_version,
            subscription_id=params.get("subscription_id"),
            api_url=params.get("api_url") or DEFAULT_API_URL,
            access_token=params.get("access_token"),
        )
        tracker = OperationTracker(
            self.client,
            interval=params.get("interval") or DEFAULT_INTERVAL,
            timeout=params.get("timeout") or DEFAULT_TIMEOUT,
        )
        self.pipeline = ResourcePipeline(
            self.config,
            self.client,
            subscription_id=params.get("subscription_id"),
            tracker=tracker,
            wait=params.get("wait", True) is not False,
        )

    def run(self):
        """
        The main execution method for the runner. Pipeline errors are surfaced
        through `fail_json` together with their structured details.
        """
        try:
            self.execute()
        except PipelineError as e:
            details = {k: v for k, v in e.details().items() if v is not None}
            self.module.fail_json(msg=str(e), error_type=type(e).__name__, **details)

    def execute(self):
        """Runs the module's logic. Implemented by all subclasses."""
        raise NotImplementedError

    def _normalize_for_comparison(self, value: Any) -> Any:
        """
        Normalizes lists into an order-insensitive, comparable form.

        Lists of dictionaries are turned into a set of canonical JSON strings,
        lists of hashable values into a set. Anything else is returned as-is.
        """
        if not isinstance(value, list):
            return value
        if not value:
            return set()
        if isinstance(value[0], dict):
            return {
                json.dumps(item, sort_keys=True, separators=(",", ":"))
                for item in value
            }
        try:
            return set(value)
        except TypeError:
            # Unhashable, non-dict items: fall back to an order-sensitive comparison.
            return value

    def _differs(self, desired: Any, current: Any) -> bool:
        """
        Checks whether the desired request body would change the current
        resource. Only keys present in `desired` are compared, so server-side
        fields on the resource are ignored.
        """
        if isinstance(desired, dict):
            if not isinstance(current, dict):
                return True
            return any(self._differs(v, current.get(k)) for k, v in desired.items())
        return self._normalize_for_comparison(desired) != self._normalize_for_comparison(
            current
        )

    def _comparable_body(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Strips write-only settings, which the provider never returns."""
        comparable = json.loads(json.dumps(body))
        for field_config in self.config.fields:
            if not field_config.write_only:
                continue
            parts = field_config.wire_path.split(".")
            parent = comparable
            for part in parts[:-1]:
                parent = parent.get(part) if isinstance(parent, dict) else None
            if isinstance(parent, dict):
                parent.pop(parts[-1], None)
        return comparable
