"""Shared helper functions and constants."""

# Mapping from catalog field types to Ansible module types.
FIELD_TYPE_TO_ANSIBLE_TYPE_MAP = {
    "str": "str",
    "int": "int",
    "float": "float",
    "bool": "bool",
    "enum": "str",
    "list": "list",
    "dict": "dict",
}

DEFAULT_API_URL = "https://management.azure.com"

AUTH_OPTIONS = {
    "access_token": {
        "description": "A bearer token for the resource management API.",
        "required": True,
        "type": "str",
        "no_log": True,  # Sensitive information, do not log
    },
    "subscription_id": {
        "description": "The subscription that contains the resource.",
        "required": True,
        "type": "str",
    },
    "api_url": {
        "description": "Fully qualified URL of the resource management endpoint.",
        "default": DEFAULT_API_URL,
        "type": "str",
    },
}

AUTH_FIXTURE = {
    "access_token": "eyJ0eXAiOiJKV1QiLCJhbGciOiJSUzI1NiJ9.example",
    "subscription_id": "00000000-0000-0000-0000-000000000000",
    "api_url": DEFAULT_API_URL,
}

WAITER_OPTIONS = {
    "state": {
        "description": "Should the resource be present or absent.",
        "choices": ["present", "absent"],
        "default": "present",
        "type": "str",
    },
    "wait": {
        "description": "Whether to wait for long-running operations to complete.",
        "default": True,
        "type": "bool",
    },
    "timeout": {
        "description": "The maximum number of seconds to wait for a long-running operation.",
        "default": 600,
        "type": "int",
    },
    "interval": {
        "description": "The interval in seconds for polling a long-running operation.",
        "default": 5,
        "type": "int",
    },
}

# Parameters that select the resource by something other than its name.
LOOKUP_OPTIONS = {
    "resource_id": {
        "description": "The full resource ID. Mutually exclusive with resource_group and name.",
        "type": "str",
    },
    "input_object": {
        "description": "A resource previously returned by another module, used to address the resource.",
        "type": "dict",
    },
}


def to_camel_case(name: str) -> str:
    """Converts snake_case to lowerCamelCase."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def normalize_key(key: str) -> str:
    """Folds a field name so `ResourceGroupName` and `resource_group_name` compare equal."""
    return key.replace("_", "").lower()


def get_by_path(data, path: str):
    """Reads a dotted path such as `properties.tenantId` from nested dicts."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def set_by_path(data: dict, path: str, value) -> None:
    """Writes a value at a dotted path, creating intermediate dicts as needed."""
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


class ValidationErrorCollector:
    """A simple class to collect and report validation errors."""

    def __init__(self):
        self.errors = []

    def add_error(self, message: str):
        self.errors.append(message)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0
