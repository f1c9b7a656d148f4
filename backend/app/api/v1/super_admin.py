from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_db, get_session_factory, require_super_admin
from app.schemas.company import CompanyView, SubscriptionUpdate
from app.schemas.dashboard import PlatformStats
from app.services import company_service
from app.services.dashboard_service import DashboardService
from app.services.tenant_context import TenantContext

router = APIRouter()


@router.get("/stats", response_model=PlatformStats)
async def get_platform_stats(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    ctx: TenantContext = Depends(require_super_admin),
) -> Any:
    return await DashboardService(session_factory, ctx).get_platform_stats()


@router.get("/companies", response_model=List[CompanyView])
async def list_companies(
    search: Optional[str] = Query(None, max_length=100),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _: TenantContext = Depends(require_super_admin),
) -> Any:
    return await company_service.list_companies(db, search=search, limit=limit)


@router.get("/companies/{company_id}", response_model=CompanyView)
async def get_company(
    company_id: str,
    db: AsyncSession = Depends(get_db),
    _: TenantContext = Depends(require_super_admin),
) -> Any:
    return await company_service.get_company(db, company_id)


@router.patch("/companies/{company_id}/subscription", response_model=CompanyView)
async def update_subscription(
    company_id: str,
    payload: SubscriptionUpdate,
    db: AsyncSession = Depends(get_db),
    _: TenantContext = Depends(require_super_admin),
) -> Any:
    return await company_service.update_subscription(
        db,
        company_id,
        tier=payload.subscription_tier,
        status=payload.subscription_status,
        max_employees=payload.max_employees,
    )
