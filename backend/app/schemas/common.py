from typing import Any, Optional, List

from pydantic import BaseModel, Field


class MutationResponse(BaseModel):
    """Result of a write. ``notices`` lists non-fatal problems with its side effects."""
    record: Optional[dict[str, Any]] = None
    follow_ups: List[dict[str, Any]] = Field(default_factory=list)
    notices: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result) -> "MutationResponse":
        return cls(record=result.record, follow_ups=result.follow_ups, notices=result.notices)


class BulkMutationResponse(BaseModel):
    records: List[dict[str, Any]] = Field(default_factory=list)
    notices: List[str] = Field(default_factory=list)
