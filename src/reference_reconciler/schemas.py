"""Request and response shapes for correction and merge commits."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import Reference, UserDecision


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CorrectionRequest(_CamelModel):
    reference_id: str
    decision: UserDecision
    corrected_fields: Optional[Dict[str, Any]] = Field(
        None, description="Fields to overwrite when accepting; canonical values are used when omitted"
    )

    @field_validator("corrected_fields", mode="before")
    @classmethod
    def map_source_to_venue(cls, value: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not value:
            return value
        fields = dict(value)
        if "source" in fields and "venue" not in fields:
            fields["venue"] = fields.pop("source")
        return fields

    @property
    def accepted(self) -> bool:
        return self.decision == UserDecision.ACCEPTED


class CorrectionResponse(_CamelModel):
    success: bool
    message: str = ""
    reference: Optional[Reference] = None
    error: Optional[str] = None


class MergeRequest(_CamelModel):
    group_id: str
    primary_id: str
    ids_to_delete: List[str] = Field(default_factory=list)


class MergeResponse(_CamelModel):
    success: bool
    deleted_count: int = 0
    message: str = ""
    error: Optional[str] = None
