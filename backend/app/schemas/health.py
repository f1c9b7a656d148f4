from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class CheckupCreate(BaseModel):
    employee_id: str
    investigation_name: str = Field(..., min_length=1)
    appointment_date: Optional[date] = None
    notes: Optional[str] = None


class CheckupUpdate(BaseModel):
    investigation_name: Optional[str] = Field(None, min_length=1)
    appointment_date: Optional[date] = None
    completion_date: Optional[date] = None
    certificate_path: Optional[str] = None
    notes: Optional[str] = None


class CheckupStatusChange(BaseModel):
    status: str
    completion_date: Optional[date] = None
