from unittest.mock import MagicMock, patch
import pytest

from ansible_arm_pipeline.catalog import load_catalog
from ansible_arm_pipeline.interfaces.client import ManagementClient

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"


@pytest.fixture
def mock_ansible_module():
    """
    A pytest fixture that provides a mocked AnsibleModule instance for each test.
    This prevents tests from interfering with each other and from exiting the test runner.
    """
    # We patch 'AnsibleModule' in the runner's namespace to avoid import issues.
    with patch("ansible_arm_pipeline.interfaces.runner.AnsibleModule") as mock_class:
        mock_module = mock_class.return_value
        mock_module.params = {}  # Start with empty params for each test
        mock_module.check_mode = False

        # Mock the exit methods to prevent sys.exit and to capture their arguments
        mock_module.exit_json = MagicMock()
        mock_module.fail_json = MagicMock()
        mock_module.warn = MagicMock()

        yield mock_module


@pytest.fixture
def mock_client():
    """A management client double; every call is recorded for assertions."""
    return MagicMock(spec=ManagementClient)


@pytest.fixture(scope="session")
def catalog():
    """The bundled resource-type catalog, validated once per session."""
    return load_catalog()


@pytest.fixture
def identity_config(catalog):
    return catalog["user_assigned_identity"]


@pytest.fixture
def pool_config(catalog):
    return catalog["application_gateway_backend_address_pool"]


@pytest.fixture
def http_settings_config(catalog):
    return catalog["application_gateway_backend_http_settings"]


@pytest.fixture
def extension_config(catalog):
    return catalog["virtual_machine_extension"]


@pytest.fixture
def certificate_config(catalog):
    return catalog["iot_hub_certificate"]


@pytest.fixture
def module_params():
    """The parameters every generated resource module receives, with Ansible defaults applied."""
    return {
        "access_token": "test-token",
        "subscription_id": SUBSCRIPTION_ID,
        "api_url": "https://management.example.com",
        "state": "present",
        "wait": True,
        "timeout": 600,
        "interval": 5,
        "resource_id": None,
        "input_object": None,
        "resource_group": None,
        "name": None,
    }
