import pytest

from ansible_arm_pipeline.exceptions import InvalidArgument, MalformedIdentifier
from ansible_arm_pipeline.models import ParameterSet, PresentationModel
from ansible_arm_pipeline.reconciler import InputReconciler

SUB = "00000000-0000-0000-0000-000000000000"
IDENTITY_ID = (
    f"/subscriptions/{SUB}/resourceGroups/RG1/providers"
    "/Microsoft.ManagedIdentity/userAssignedIdentities/Thing1"
)
POOL_ID = (
    f"/subscriptions/{SUB}/resourceGroups/rg/providers/Microsoft.Network"
    "/applicationGateways/gw1/backendAddressPools/pool1"
)


class TestParameterSets:
    def test_by_name(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        canonical = reconciler.reconcile(
            None, {"resource_group": "RG1", "name": "Thing1", "location": "westus"}
        )

        assert canonical.parameter_set == ParameterSet.BY_NAME
        assert canonical.identity.subscription_id == SUB
        assert canonical.identity.resource_group_name == "RG1"
        assert canonical.identity.name == "Thing1"
        assert canonical.settings["location"] == "westus"

    def test_by_resource_id(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        canonical = reconciler.reconcile(None, {"resource_id": IDENTITY_ID})

        assert canonical.parameter_set == ParameterSet.BY_RESOURCE_ID
        assert canonical.identity.resource_group_name == "RG1"
        assert canonical.identity.name == "Thing1"

    def test_by_resource_id_with_parents(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)

        canonical = reconciler.reconcile(None, {"resource_id": POOL_ID})

        assert canonical.identity.parent_chain == (("applicationGateways", "gw1"),)
        assert canonical.identity.name == "pool1"

    def test_by_object(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)
        model = PresentationModel(
            id=IDENTITY_ID,
            name="Thing1",
            location="westus",
            resource_group_name="RG1",
            tags={"env": "dev"},
        )

        canonical = reconciler.reconcile(None, {"input_object": model})

        assert canonical.parameter_set == ParameterSet.BY_OBJECT
        assert canonical.identity.name == "Thing1"
        assert canonical.settings["location"] == "westus"
        assert canonical.settings["tags"] == {"env": "dev"}

    def test_by_object_without_id_uses_its_fields(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)
        model = PresentationModel(
            name="pool1",
            resource_group_name="rg",
            fields={"ApplicationGatewayName": "gw1"},
        )

        canonical = reconciler.reconcile(ParameterSet.BY_OBJECT, {"input_object": model})

        assert canonical.identity.parent_names == ("gw1",)
        assert canonical.identity.name == "pool1"

    def test_by_pipeline_matches_keys_loosely(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        canonical = reconciler.reconcile(
            None,
            {
                "input_object": {
                    "ResourceGroupName": "RG1",
                    "Name": "Thing1",
                    "Location": "eastus",
                }
            },
        )

        assert canonical.parameter_set == ParameterSet.BY_PIPELINE
        assert canonical.identity.resource_group_name == "RG1"
        assert canonical.identity.name == "Thing1"
        assert canonical.settings["location"] == "eastus"

    def test_by_pipeline_rejects_non_mapping(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        with pytest.raises(InvalidArgument, match="must be a mapping"):
            reconciler.reconcile(ParameterSet.BY_PIPELINE, {"input_object": ["x"]})

    def test_explicit_settings_override_object(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        canonical = reconciler.reconcile(
            None,
            {
                "input_object": {"id": IDENTITY_ID, "location": "eastus"},
                "location": "westus",
            },
        )

        assert canonical.settings["location"] == "westus"

    def test_conflicting_sets_are_rejected(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        with pytest.raises(InvalidArgument, match="resource_id and resource_group"):
            reconciler.reconcile(
                None, {"resource_id": IDENTITY_ID, "resource_group": "RG1"}
            )


class TestIdentityChecks:
    def test_resource_id_of_other_type_is_rejected(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)

        with pytest.raises(InvalidArgument, match="expected 'Microsoft.Network"):
            reconciler.reconcile(None, {"resource_id": IDENTITY_ID})

    def test_malformed_resource_id(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        with pytest.raises(MalformedIdentifier):
            reconciler.reconcile(None, {"resource_id": "/subscriptions/x"})

    def test_missing_name_and_group_are_reported(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)

        with pytest.raises(InvalidArgument) as exc_info:
            reconciler.reconcile(None, {})

        assert "resource_group, application_gateway_name, name" in str(exc_info.value)

    def test_scope_only_allows_missing_name(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)

        canonical = reconciler.reconcile(
            None,
            {"resource_group": "rg", "application_gateway_name": "gw1"},
            scope_only=True,
        )

        assert canonical.identity.name is None
        assert canonical.identity.parent_names == ("gw1",)

    def test_scope_only_with_group_still_needs_parents(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)

        with pytest.raises(InvalidArgument, match="application_gateway_name"):
            reconciler.reconcile(None, {"resource_group": "rg"}, scope_only=True)

    def test_empty_resource_id_is_not_provided_for_reads(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        canonical = reconciler.reconcile(
            None, {"resource_id": "", "resource_group": "RG1", "name": "Thing1"}
        )

        assert canonical.parameter_set == ParameterSet.BY_NAME

    def test_empty_resource_id_is_an_error_for_writes(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        with pytest.raises(InvalidArgument, match="must not be empty"):
            reconciler.reconcile(None, {"resource_id": ""}, strict_identity=True)


class TestSettings:
    def test_exclusive_settings_are_rejected(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)

        with pytest.raises(InvalidArgument) as exc_info:
            reconciler.reconcile(
                None,
                {
                    "resource_id": POOL_ID,
                    "backend_ip_addresses": ["10.0.0.4"],
                    "backend_fqdns": ["a.example.com"],
                },
            )

        assert str(exc_info.value) == (
            "At most one of backend_ip_addresses and backend_fqdns can be specified."
        )

    @pytest.mark.parametrize("given", [None, 0])
    def test_unset_value_gets_default(self, http_settings_config, given):
        reconciler = InputReconciler(http_settings_config, SUB)

        canonical = reconciler.reconcile(
            None,
            {
                "resource_group": "rg",
                "application_gateway_name": "gw1",
                "name": "settings1",
                "request_timeout": given,
            },
        )

        assert canonical.settings["request_timeout"] == 30

    def test_explicit_value_is_kept(self, http_settings_config):
        reconciler = InputReconciler(http_settings_config, SUB)

        canonical = reconciler.reconcile(
            None,
            {
                "resource_group": "rg",
                "application_gateway_name": "gw1",
                "name": "settings1",
                "request_timeout": 45,
            },
        )

        assert canonical.settings["request_timeout"] == 45

    def test_required_settings_are_enforced_for_writes(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        with pytest.raises(InvalidArgument, match="Missing required parameters: location"):
            reconciler.reconcile(
                None,
                {"resource_group": "RG1", "name": "Thing1"},
                require_settings=True,
            )

    def test_settings_are_read_only(self, identity_config):
        reconciler = InputReconciler(identity_config, SUB)

        canonical = reconciler.reconcile(
            None, {"resource_group": "RG1", "name": "Thing1", "location": "westus"}
        )

        with pytest.raises(TypeError):
            canonical.settings["location"] = "eastus"


VM_ID = (
    f"/subscriptions/{SUB}/resourceGroups/rg/providers/Microsoft.Compute"
    "/virtualMachines/vm1"
)
EXTENSION_ID = f"{VM_ID}/extensions/ext1"


def extension_object(**properties):
    """An extension as read from the provider, in pipeline (mapping) form."""
    return {
        "id": EXTENSION_ID,
        "name": "ext1",
        "location": "westus",
        "properties": {
            "publisher": "Contoso",
            "type": "CustomScript",
            "typeHandlerVersion": "2.1",
            **properties,
        },
    }


class TestObjectTypeChecks:
    def test_object_of_other_type_is_rejected(self, extension_config):
        reconciler = InputReconciler(extension_config, SUB)
        model = PresentationModel(id=VM_ID, name="vm1", resource_group_name="rg")

        with pytest.raises(InvalidArgument) as exc_info:
            reconciler.reconcile(None, {"input_object": model})

        assert "'Microsoft.Compute/virtualMachines'" in str(exc_info.value)
        assert "expected 'Microsoft.Compute/virtualMachines/extensions'" in str(
            exc_info.value
        )

    def test_pipeline_object_of_other_type_is_rejected(self, extension_config):
        reconciler = InputReconciler(extension_config, SUB)

        with pytest.raises(InvalidArgument, match="expected 'Microsoft.Compute"):
            reconciler.reconcile(
                None, {"input_object": {"id": VM_ID, "name": "vm1"}}, strict_identity=True
            )

    def test_object_type_is_matched_ignoring_case(self, extension_config):
        reconciler = InputReconciler(extension_config, SUB)
        object_id = EXTENSION_ID.replace("Microsoft.Compute", "microsoft.compute")

        canonical = reconciler.reconcile(None, {"input_object": {"id": object_id}})

        assert canonical.identity.parent_names == ("vm1",)
        assert canonical.identity.name == "ext1"


class TestObjectReadBack:
    def test_explicit_setting_replaces_read_back_sibling(self, extension_config):
        reconciler = InputReconciler(extension_config, SUB)

        canonical = reconciler.reconcile(
            None,
            {
                "input_object": extension_object(settings={"a": 1}),
                "setting_string": '{"b": 2}',
            },
        )

        assert "settings" not in canonical.settings
        assert canonical.settings["setting_string"] == '{"b": 2}'

    def test_read_back_settings_are_kept_without_override(self, extension_config):
        reconciler = InputReconciler(extension_config, SUB)

        canonical = reconciler.reconcile(
            None, {"input_object": extension_object(settings={"a": 1})}
        )

        assert canonical.settings["settings"] == {"a": 1}
        assert "setting_string" not in canonical.settings

    def test_explicit_conflict_is_still_rejected(self, extension_config):
        reconciler = InputReconciler(extension_config, SUB)

        with pytest.raises(InvalidArgument, match="At most one of settings and setting_string"):
            reconciler.reconcile(
                None,
                {
                    "input_object": extension_object(),
                    "settings": {"a": 1},
                    "setting_string": '{"b": 2}',
                },
            )

    @pytest.mark.parametrize("auto_upgrade, disabled", [(False, True), (True, False)])
    def test_negated_flag_is_read_back(self, extension_config, auto_upgrade, disabled):
        reconciler = InputReconciler(extension_config, SUB)

        canonical = reconciler.reconcile(
            None,
            {"input_object": extension_object(autoUpgradeMinorVersion=auto_upgrade)},
        )

        assert canonical.settings["disable_auto_upgrade_minor_version"] is disabled

    def test_backend_ip_addresses_are_read_back(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)
        pool = {
            "id": POOL_ID,
            "properties": {"backendAddresses": [{"ipAddress": "10.0.0.4"}]},
        }

        canonical = reconciler.reconcile(None, {"input_object": pool})

        assert canonical.settings["backend_ip_addresses"] == ["10.0.0.4"]
        assert "backend_fqdns" not in canonical.settings

    def test_backend_fqdns_are_read_back(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)
        pool = {
            "id": POOL_ID,
            "properties": {"backendAddresses": [{"fqdn": "a.example.com"}]},
        }

        canonical = reconciler.reconcile(None, {"input_object": pool})

        assert canonical.settings["backend_fqdns"] == ["a.example.com"]
        assert "backend_ip_addresses" not in canonical.settings

    def test_explicit_fqdns_replace_read_back_addresses(self, pool_config):
        reconciler = InputReconciler(pool_config, SUB)
        pool = {
            "id": POOL_ID,
            "properties": {"backendAddresses": [{"ipAddress": "10.0.0.4"}]},
        }

        canonical = reconciler.reconcile(
            None, {"input_object": pool, "backend_fqdns": ["a.example.com"]}
        )

        assert canonical.settings["backend_fqdns"] == ["a.example.com"]
        assert "backend_ip_addresses" not in canonical.settings

    def test_probe_reference_is_read_back(self, http_settings_config):
        reconciler = InputReconciler(http_settings_config, SUB)
        probe_id = (
            f"/subscriptions/{SUB}/resourceGroups/rg/providers/Microsoft.Network"
            "/applicationGateways/gw1/probes/probe1"
        )
        settings_object = {
            "id": (
                f"/subscriptions/{SUB}/resourceGroups/rg/providers/Microsoft.Network"
                "/applicationGateways/gw1/backendHttpSettingsCollection/settings1"
            ),
            "properties": {
                "port": 80,
                "protocol": "Http",
                "cookieBasedAffinity": "Disabled",
                "probe": {"id": probe_id},
                "pickHostNameFromBackendAddress": False,
                "hostName": "www.example.com",
            },
        }

        canonical = reconciler.reconcile(None, {"input_object": settings_object})

        assert canonical.settings["probe_id"] == probe_id
        assert canonical.settings["host_name"] == "www.example.com"
        assert canonical.settings["pick_host_name_from_backend_address"] is False
