import logging
from typing import Any, Dict, List, Optional, Union

from ansible_arm_pipeline.helpers import get_by_path
from ansible_arm_pipeline.identifier import resource_group_from_id
from ansible_arm_pipeline.interfaces.config import ResourceTypeConfig
from ansible_arm_pipeline.models import OperationResult, PresentationModel

logger = logging.getLogger(__name__)

# Top-level raw fields promoted to attributes of the presentation model.
KNOWN_FIELDS = ("id", "name", "type", "location", "tags", "properties")

Projection = Union[PresentationModel, List[PresentationModel], None]


class ResultProjector:
    """Converts raw provider responses into presentation models."""

    def __init__(self, config: ResourceTypeConfig):
        self.config = config

    def project(self, result: OperationResult, unwrap_singleton: bool = False) -> Projection:
        """
        Projects an operation result.

        Collections keep their source order. When `unwrap_singleton` is set and
        the resource type allows it, a one-item collection is returned as that
        item rather than as a list.
        """
        if result.is_collection:
            models = [self.project_resource(item) for item in result.items]
            if unwrap_singleton and self.config.unwrap_singleton and len(models) == 1:
                return models[0]
            return models
        if result.resource is None:
            return None
        return self.project_resource(result.resource)

    def project_resource(self, raw: Dict[str, Any]) -> PresentationModel:
        resource_id = raw.get("id")
        fields = {key: value for key, value in raw.items() if key not in KNOWN_FIELDS}

        for output_name, path in self.config.projections.items():
            fields[output_name] = get_by_path(raw, path)

        model = PresentationModel(
            id=resource_id,
            name=raw.get("name"),
            type=raw.get("type"),
            location=raw.get("location"),
            resource_group_name=resource_group_from_id(resource_id),
            tags=dict(raw.get("tags") or {}),
            properties=dict(raw.get("properties") or {}),
            fields=fields,
        )

        for legacy_name, current_name in self.config.legacy_fields.items():
            model.fields[legacy_name] = self._lookup(model, current_name)
        return model

    def _lookup(self, model: PresentationModel, name: str) -> Optional[Any]:
        if name in model.fields:
            return model.fields[name]
        return getattr(model, name, None)
