"""
Dashboard and profile aggregation.

Independent reads are fanned out with ``asyncio.gather``, each on its own
session from ``session_factory``. A failing read only blanks its own
section: the value becomes None and the section name is listed in
``unavailable``. No placeholder numbers are ever substituted.
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.exceptions import HSEError, PermissionDeniedError, QueryError, ValidationError
from app.models.company import Company
from app.models.hse import INVESTIGATION_STATUSES
from app.models.user import User
from app.schemas.dashboard import (
    CompanySummary,
    DashboardStats,
    EmployeeProfileView,
    InvestigationBreakdown,
    PlatformStats,
    ReportStats,
    StatusCount,
    TrainingMatrixRow,
)
from app.services.activity_log import ActivityLogWriter
from app.services.company_service import monthly_revenue
from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.task_service import TASK_FILTERS
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.dashboard")

# Failures of these kinds blank a section; anything else is a bug and propagates
_SECTION_ERRORS = (HSEError, SQLAlchemyError, OSError)


def compliance_rate(completed: Optional[int], total: Optional[int]) -> Optional[int]:
    """Rounded percentage of ``completed`` in ``total``, or None when there is nothing to measure."""
    if completed is None or not total:
        return None
    return round(completed / total * 100)


class DashboardService:
    def __init__(self, session_factory: async_sessionmaker, ctx: TenantContext):
        self.session_factory = session_factory
        self.ctx = ctx

    async def _with_fetcher(self, read: Callable[[EntityFetcher], Awaitable[Any]]) -> Any:
        async with self.session_factory() as session:
            return await read(EntityFetcher(session, self.ctx))

    async def _gather_sections(self, sections: dict[str, Awaitable[Any]]) -> tuple[dict[str, Any], list[str]]:
        names = list(sections)
        results = await asyncio.gather(*sections.values(), return_exceptions=True)
        values: dict[str, Any] = {}
        failed: list[str] = []
        for name, result in zip(names, results):
            if isinstance(result, _SECTION_ERRORS):
                logger.warning(
                    "Dashboard section %s unavailable for company %s: %s", name, self.ctx.company_id, result,
                )
                values[name] = None
                failed.append(name)
            elif isinstance(result, BaseException):
                raise result
            else:
                values[name] = result
        return values, failed

    def _count(self, collection: str, filters: list[Filter] = ()) -> Awaitable[int]:
        return self._with_fetcher(lambda f: f.count(collection, filters))

    async def get_stats(self, today: Optional[date] = None) -> DashboardStats:
        self.ctx.require_company()
        today = today or date.today()
        since = today - timedelta(days=settings.DASHBOARD_RECENT_DAYS)
        since_dt = datetime.combine(since, time.min, tzinfo=timezone.utc)

        counts, failed = await self._gather_sections({
            "employees": self._count("employees"),
            "risk_assessments": self._count("risk_assessments"),
            "audits": self._count("audits"),
            "completed_audits": self._count("audits", [Filter("status", "eq", "completed")]),
            "tasks": self._count("tasks"),
            "expired_training": self._count("training_records", [Filter("expiry_date", "lt", today)]),
            "overdue_measures": self._count(
                "measures", [Filter("due_date", "lt", today), Filter("status", "neq", "completed")]
            ),
            "recent_incidents": self._count("incidents", [Filter("incident_date", "gte", since)]),
            "recent_hazards": self._count("risk_assessments", [Filter("created_at", "gte", since_dt)]),
        })

        unavailable = [n for n in failed if n not in ("expired_training", "overdue_measures")]
        if "audits" in failed or "completed_audits" in failed:
            unavailable.append("compliance_rate")

        overdue = None
        if counts["expired_training"] is not None and counts["overdue_measures"] is not None:
            overdue = counts["expired_training"] + counts["overdue_measures"]
        else:
            unavailable.append("overdue_obligations")

        return DashboardStats(
            employees=counts["employees"],
            risk_assessments=counts["risk_assessments"],
            audits=counts["audits"],
            tasks=counts["tasks"],
            completed_audits=counts["completed_audits"],
            compliance_rate=compliance_rate(counts["completed_audits"], counts["audits"]),
            overdue_obligations=overdue,
            recent_incidents=counts["recent_incidents"],
            recent_hazards=counts["recent_hazards"],
            unavailable=unavailable,
        )

    async def get_report_stats(self) -> ReportStats:
        self.ctx.require_company()
        completed = [Filter("status", "eq", "completed")]

        counts, failed = await self._gather_sections({
            "employees": self._count("employees"),
            "risk_assessments": self._count("risk_assessments"),
            "audits": self._count("audits"),
            "tasks": self._count("tasks"),
            "incidents": self._count("incidents"),
            "measures": self._count("measures"),
            "courses": self._count("courses"),
            "health_checkups": self._count("health_checkups"),
            "completed_audits": self._count("audits", completed),
            "completed_tasks": self._count("tasks", completed),
            "completed_measures": self._count("measures", completed),
            "open_incidents": self._count("incidents", [Filter("investigation_status", "eq", "open")]),
            "training_records": self._count("training_records"),
            "completed_training": self._count("training_records", completed),
        })

        unavailable = [n for n in failed if n not in ("training_records", "completed_training")]
        if "training_records" in failed or "completed_training" in failed:
            unavailable.append("training_compliance")
        training_total = counts.pop("training_records")
        training_done = counts.pop("completed_training")

        return ReportStats(
            **counts,
            training_compliance=compliance_rate(training_done, training_total),
            unavailable=unavailable,
        )

    async def get_training_matrix(self) -> list[TrainingMatrixRow]:
        """Training status per active employee, in name order."""
        self.ctx.require_company()

        async def read(fetcher: EntityFetcher) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
            employees = await fetcher.fetch("employees", [Filter("is_active", "eq", True)])
            records = await fetcher.fetch("training_records")
            return employees, records

        employees, records = await self._with_fetcher(read)
        by_employee: dict[str, list[str]] = {}
        for record in records:
            by_employee.setdefault(record["employee_id"], []).append(record["status"])

        matrix = []
        for employee in employees:
            statuses = by_employee.get(employee["id"], [])
            done = statuses.count("completed")
            matrix.append(TrainingMatrixRow(
                employee_id=employee["id"],
                employee_name=employee["full_name"],
                total_required=len(statuses),
                completed=done,
                expired=statuses.count("expired"),
                compliance_rate=compliance_rate(done, len(statuses)),
            ))
        return matrix

    async def get_investigation_breakdown(self) -> InvestigationBreakdown:
        self.ctx.require_company()
        counts, failed = await self._gather_sections({
            status: self._count("investigations", [Filter("status", "eq", status)])
            for status in INVESTIGATION_STATUSES
        })
        if failed:
            raise QueryError("Could not load investigations")
        total = sum(counts.values())
        return InvestigationBreakdown(
            total=total,
            statuses=[
                StatusCount(status=s, count=counts[s], percent=counts[s] / (total or 1))
                for s in INVESTIGATION_STATUSES
            ],
        )

    async def get_task_overview(self, status_filter: str = "upcoming") -> list[dict[str, Any]]:
        if status_filter not in TASK_FILTERS:
            raise ValidationError(f"Unknown task filter '{status_filter}'", details={"allowed": list(TASK_FILTERS)})
        return await self._with_fetcher(
            lambda f: f.fetch(
                "tasks",
                filters=TASK_FILTERS[status_filter],
                order_by="due_date",
                ascending=True,
                limit=settings.DASHBOARD_TASK_LIMIT,
                embed=["assignee"],
            )
        )

    async def get_employee_profile(self, employee_id: str) -> EmployeeProfileView:
        employee = await self._with_fetcher(
            lambda f: f.get("employees", employee_id, embed=["department", "job_role", "exposure_group"])
        )
        by_employee = [Filter("employee_id", "eq", employee_id)]

        async def activity() -> list[dict[str, Any]]:
            async with self.session_factory() as session:
                return await ActivityLogWriter(session, self.ctx).recent(employee_id)

        sections, failed = await self._gather_sections({
            "health_checkups": self._with_fetcher(
                lambda f: f.fetch("health_checkups", by_employee, order_by="appointment_date", ascending=True)
            ),
            "tasks": self._with_fetcher(
                lambda f: f.fetch("tasks", [Filter("assigned_to", "eq", employee_id)], order_by="due_date", ascending=True)
            ),
            "documents": self._with_fetcher(
                lambda f: f.fetch("documents", by_employee, order_by="created_at", ascending=False)
            ),
            "notes": self._with_fetcher(
                lambda f: f.fetch("employee_notes", by_employee, order_by="created_at", ascending=True)
            ),
            "activity": activity(),
            "training_records": self._with_fetcher(
                lambda f: f.fetch("training_records", by_employee, embed=["training_type"])
            ),
        })
        return EmployeeProfileView(employee=employee, unavailable=failed, **sections)

    async def get_platform_stats(self) -> PlatformStats:
        """Cross-tenant figures for the super admin console."""
        if not self.ctx.is_super_admin:
            raise PermissionDeniedError("Super admin role required")

        async def scalar(statement) -> Any:
            async with self.session_factory() as session:
                return await session.scalar(statement)

        async def active_tiers() -> list[str]:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Company.subscription_tier).where(Company.subscription_status == "active")
                )
                return list(result.scalars().all())

        async def recent_companies() -> list[Company]:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Company).order_by(Company.created_at.desc(), Company.id).limit(5)
                )
                return list(result.scalars().all())

        total, active, trial, users, tiers, recent = await asyncio.gather(
            scalar(select(func.count()).select_from(Company)),
            scalar(select(func.count()).select_from(Company).where(Company.subscription_status == "active")),
            scalar(select(func.count()).select_from(Company).where(Company.subscription_status == "trial")),
            scalar(select(func.count()).select_from(User)),
            active_tiers(),
            recent_companies(),
        )
        return PlatformStats(
            total_companies=total or 0,
            active_companies=active or 0,
            trial_companies=trial or 0,
            total_users=users or 0,
            monthly_revenue=monthly_revenue(tiers),
            recent_companies=[CompanySummary.model_validate(c) for c in recent],
        )
