"""
HAL resource base model and link relations.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional, Type, TypeVar

REL_NS = "http://ns.adobe.com/adobecloud/rel"

REL_SELF = "self"
REL_PROGRAM = f"{REL_NS}/program"
REL_PIPELINES = f"{REL_NS}/pipelines"
REL_EXECUTION = f"{REL_NS}/execution"
REL_EXECUTION_ID = f"{REL_NS}/execution/id"
REL_ENVIRONMENTS = f"{REL_NS}/environments"
REL_LOGS = f"{REL_NS}/logs"
REL_LOGS_DOWNLOAD = f"{REL_NS}/logs/download"
REL_LOGS_TAIL = f"{REL_NS}/logs/tail"
REL_STEP_LOGS = f"{REL_NS}/pipeline/logs"
REL_STEP_METRICS = f"{REL_NS}/pipeline/metrics"
REL_STEP_CANCEL = f"{REL_NS}/pipeline/cancel"
REL_STEP_ADVANCE = f"{REL_NS}/pipeline/advance"
REL_COMMERCE_COMMAND_EXECUTION_ID = f"{REL_NS}/commerceCommandExecution/id"
REL_COMMERCE_COMMAND_EXECUTIONS = f"{REL_NS}/commerceCommandExecutions"
REL_COMMERCE_LOGS = f"{REL_NS}/commerceLogs"

R = TypeVar("R", bound="HalResource")

class HalResource(BaseModel):
    """A JSON resource carrying `_links` and `_embedded` sections."""

    id: Optional[str] = None
    links: Dict[str, Any] = Field(default_factory=dict, alias="_links")
    embedded: Dict[str, Any] = Field(default_factory=dict, alias="_embedded")

    class Config:
        populate_by_name = True
        extra = "allow"

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return None if value is None else str(value)

    def link(self, rel: str) -> Optional[str]:
        """Return the href of the first link with this relation."""
        hrefs = self.link_array(rel)
        return hrefs[0] if hrefs else None

    def link_array(self, rel: str) -> List[str]:
        value = self.links.get(rel)
        if value is None:
            return []
        if isinstance(value, dict):
            value = [value]
        return [
            item["href"]
            for item in value
            if isinstance(item, dict) and item.get("href")
        ]

    def embedded_array(self, name: str, model: Type[R] = None) -> List[R]:
        items = self.embedded.get(name) or []
        if isinstance(items, dict):
            items = [items]
        model = model or HalResource
        return [model.model_validate(item) for item in items]
