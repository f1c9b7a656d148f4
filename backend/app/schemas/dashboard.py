from datetime import datetime
from typing import Any, Optional, List

from pydantic import BaseModel, Field


class DashboardStats(BaseModel):
    """
    Headline numbers of the company dashboard.

    A value of None means "not available": either the underlying query
    failed (the name is then listed in ``unavailable``) or, for
    ``compliance_rate``, there are no audits to measure against.
    """
    employees: Optional[int] = None
    risk_assessments: Optional[int] = None
    audits: Optional[int] = None
    tasks: Optional[int] = None
    completed_audits: Optional[int] = None
    compliance_rate: Optional[int] = None
    overdue_obligations: Optional[int] = None
    recent_incidents: Optional[int] = None
    recent_hazards: Optional[int] = None
    unavailable: List[str] = Field(default_factory=list)


class ReportStats(BaseModel):
    """
    Totals behind the reports page, with the same None conventions as
    DashboardStats. ``training_compliance`` is the share of completed
    training records and None when no training has been assigned.
    """
    employees: Optional[int] = None
    risk_assessments: Optional[int] = None
    audits: Optional[int] = None
    tasks: Optional[int] = None
    incidents: Optional[int] = None
    measures: Optional[int] = None
    courses: Optional[int] = None
    health_checkups: Optional[int] = None
    completed_audits: Optional[int] = None
    completed_tasks: Optional[int] = None
    completed_measures: Optional[int] = None
    open_incidents: Optional[int] = None
    training_compliance: Optional[int] = None
    unavailable: List[str] = Field(default_factory=list)


class TrainingMatrixRow(BaseModel):
    employee_id: str
    employee_name: str
    total_required: int
    completed: int
    expired: int
    compliance_rate: Optional[int] = None


class StatusCount(BaseModel):
    status: str
    count: int
    percent: float


class InvestigationBreakdown(BaseModel):
    total: int
    statuses: List[StatusCount]


class EmployeeProfileView(BaseModel):
    employee: dict[str, Any]
    health_checkups: Optional[List[dict[str, Any]]] = None
    tasks: Optional[List[dict[str, Any]]] = None
    documents: Optional[List[dict[str, Any]]] = None
    notes: Optional[List[dict[str, Any]]] = None
    activity: Optional[List[dict[str, Any]]] = None
    training_records: Optional[List[dict[str, Any]]] = None
    unavailable: List[str] = Field(default_factory=list)


class CompanySummary(BaseModel):
    id: str
    name: str
    email: str
    subscription_tier: str
    subscription_status: str
    max_employees: int
    created_at: datetime

    class Config:
        from_attributes = True


class PlatformStats(BaseModel):
    total_companies: int
    active_companies: int
    trial_companies: int
    total_users: int
    monthly_revenue: float
    recent_companies: List[CompanySummary]
