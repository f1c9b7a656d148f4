from datetime import date
from typing import Any, Optional, List

from pydantic import BaseModel, EmailStr, Field, model_validator


class EmployeeCreate(BaseModel):
    employee_number: str = Field(..., min_length=1, max_length=50)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    hire_date: Optional[date] = None
    department_id: Optional[str] = None
    job_role_id: Optional[str] = None
    exposure_group_id: Optional[str] = None
    is_active: bool = True

    @model_validator(mode="after")
    def _require_name(self):
        if not self.resolved_full_name:
            raise ValueError("full_name or first_name/last_name is required")
        return self

    @property
    def resolved_full_name(self) -> str:
        if self.full_name and self.full_name.strip():
            return self.full_name.strip()
        return " ".join(p.strip() for p in (self.first_name, self.last_name) if p and p.strip())


class EmployeeFieldUpdate(BaseModel):
    field: str
    value: Any = None


class TagRequest(BaseModel):
    tag: str = Field(..., min_length=1, max_length=64)


class ProfileFieldRequest(BaseModel):
    id: Optional[str] = None
    label: str = Field(..., min_length=1, max_length=100)
    type: str = "text"
    value: Any = None


class NoteCreate(BaseModel):
    content: str = Field(..., min_length=1)


class MentionText(BaseModel):
    text: str = Field(..., min_length=1)
    due_date: Optional[date] = None
    description: Optional[str] = None


class NoteView(BaseModel):
    id: str
    content: str
    author: str
    author_id: Optional[str] = None
    date: Any
    replies: List["NoteView"] = Field(default_factory=list)


NoteView.model_rebuild()
