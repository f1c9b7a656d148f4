from typing import Any, List, Optional

from pydantic import BaseModel, Field


class AuditFindingRequest(BaseModel):
    finding: str = Field(..., min_length=1)
    assigned_to: Optional[str] = None


class AutomationResponse(BaseModel):
    success: bool
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    notices: List[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome) -> "AutomationResponse":
        return cls(success=outcome.success, message=outcome.message, data=outcome.data, notices=outcome.notices)


class TrainingCompliance(BaseModel):
    compliant: bool
    missing_training: List[str]
    completed_count: int
    required_count: int
