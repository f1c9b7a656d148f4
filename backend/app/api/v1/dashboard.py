from typing import Any, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api.deps import get_session_factory, require_tenant
from app.schemas.dashboard import DashboardStats, InvestigationBreakdown, ReportStats, TrainingMatrixRow
from app.services.dashboard_service import DashboardService
from app.services.tenant_context import TenantContext

router = APIRouter()


def _dashboard(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    ctx: TenantContext = Depends(require_tenant),
) -> DashboardService:
    return DashboardService(session_factory, ctx)


@router.get("/stats", response_model=DashboardStats)
async def get_stats(dashboard: DashboardService = Depends(_dashboard)) -> Any:
    """
    Headline counts. Sections whose query failed are null and listed in
    ``unavailable``; ``compliance_rate`` is null when there are no audits.
    """
    return await dashboard.get_stats()


@router.get("/reports", response_model=ReportStats)
async def get_report_stats(dashboard: DashboardService = Depends(_dashboard)) -> Any:
    return await dashboard.get_report_stats()


@router.get("/training-matrix", response_model=List[TrainingMatrixRow])
async def get_training_matrix(dashboard: DashboardService = Depends(_dashboard)) -> Any:
    """Per-employee training totals; ``compliance_rate`` is null without assigned training."""
    return await dashboard.get_training_matrix()


@router.get("/investigations", response_model=InvestigationBreakdown)
async def get_investigation_breakdown(dashboard: DashboardService = Depends(_dashboard)) -> Any:
    return await dashboard.get_investigation_breakdown()


@router.get("/tasks")
async def get_task_overview(
    status_filter: str = Query("upcoming", alias="filter"),
    dashboard: DashboardService = Depends(_dashboard),
) -> List[dict[str, Any]]:
    return await dashboard.get_task_overview(status_filter)
