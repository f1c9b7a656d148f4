from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: str = "medium"
    status: str = "pending"
    due_date: Optional[date] = None
    audit_id: Optional[str] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[date] = None
    audit_id: Optional[str] = None


class TaskStatusChange(BaseModel):
    """``issued_at`` is when the user made the change; later changes win."""
    status: str
    issued_at: Optional[datetime] = None


class TaskToggle(BaseModel):
    """``seen_status`` is the status shown to the user when they clicked."""
    issued_at: Optional[datetime] = None
    seen_status: Optional[str] = None
