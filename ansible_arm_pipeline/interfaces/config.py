from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ansible_arm_pipeline.helpers import to_camel_case

FieldType = Literal["str", "int", "float", "bool", "enum", "list", "dict"]


class SettingsBagConfig(BaseModel):
    """
    Declares the keys of a loosely-typed settings map (for example an
    extension's public settings or a connection draining block). The request
    builder validates user-supplied maps against it.
    """

    model_config = ConfigDict(extra="forbid")

    required_keys: List[str] = Field(default_factory=list)
    optional_keys: List[str] = Field(default_factory=list)

    # When set, keys that are neither required nor optional are passed through.
    allow_extra_keys: bool = False


class FieldConfig(BaseModel):
    """One user-facing setting and how it maps into the provider request body."""

    model_config = ConfigDict(extra="forbid")

    name: str
    type: FieldType = "str"
    description: Optional[str] = None

    # Dotted path inside the request body. Defaults to `properties.<camelName>`.
    wire: Optional[str] = None

    # Accepted values for `enum` fields; matched case-insensitively.
    choices: List[str] = Field(default_factory=list)

    required: bool = False
    default: Any = None

    # A value that means "not provided" (commonly 0 for numeric settings).
    # Such values are replaced with `default` during reconciliation.
    unset: Any = None

    # Name of an entry in the request builder's TRANSFORMATION_MAP.
    transform: Optional[str] = None

    # Key declarations for `dict` fields that carry free-form settings.
    bag: Optional[SettingsBagConfig] = None

    # Accepted by the provider but never returned (e.g. protected settings).
    write_only: bool = False

    @property
    def wire_path(self) -> str:
        return self.wire or f"properties.{to_camel_case(self.name)}"


class ParentConfig(BaseModel):
    """An ancestor in the resource path, e.g. the gateway that owns a backend pool."""

    model_config = ConfigDict(extra="forbid")

    type: str
    param: str
    description: Optional[str] = None


class ResourceTypeConfig(BaseModel):
    """
    The mapping table for a single resource type. Every stage of the pipeline
    is parameterized by one of these instead of by a per-resource subclass.
    """

    model_config = ConfigDict(extra="forbid")

    # The catalog key, also used as the generated module name (e.g. "user_assigned_identity").
    resource_type: str

    provider_namespace: str

    # The leaf type segment, e.g. "userAssignedIdentities".
    type: str

    api_version: str

    # A short description for generated modules. If omitted, one is derived.
    description: Optional[str] = Field(default=None, validate_default=True)

    parents: List[ParentConfig] = Field(default_factory=list)
    fields: List[FieldConfig] = Field(default_factory=list)

    # Groups of fields of which at most one may be given per invocation.
    exclusive: List[List[str]] = Field(default_factory=list)

    # Static values merged into every request body before user settings.
    body_defaults: Dict[str, Any] = Field(default_factory=dict)

    # Output field name -> dotted path inside the raw resource.
    projections: Dict[str, str] = Field(default_factory=dict)

    # Legacy output name -> current output field name, kept for compatibility.
    legacy_fields: Dict[str, str] = Field(default_factory=dict)

    # Whether a list filtered down to one item is returned as a scalar.
    unwrap_singleton: bool = False

    # Child resources can only be listed under their parent.
    list_by_subscription: bool = True

    @field_validator("description", mode="before")
    def set_description(cls, v, info: ValidationInfo):
        if v is None:
            resource_type = info.data.get("resource_type", "").replace("_", " ")
            return f"Manage {resource_type} resources."
        return v

    @property
    def full_type(self) -> str:
        types = [parent.type for parent in self.parents] + [self.type]
        return "/".join([self.provider_namespace] + types)

    @property
    def parent_params(self) -> List[str]:
        return [parent.param for parent in self.parents]

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldConfig]:
        for field_config in self.fields:
            if field_config.name == name:
                return field_config
        return None
