from typing import Any

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_db, require_company_admin, require_tenant
from app.core.config import settings
from app.core.rate_limiter import RateLimits, limiter
from app.core.security import create_access_token
from app.models.user import User
from app.schemas.company import (
    AddOnView,
    CompanyRegistration,
    CompanySetup,
    CompanyUpdate,
    CompanyView,
    PlanCatalogue,
    PlanView,
)
from app.services import company_service
from app.services.tenant_context import TenantContext

router = APIRouter()


@router.get("/plans", response_model=PlanCatalogue)
async def list_plans() -> Any:
    return PlanCatalogue(
        plans=[
            PlanView(
                tier=p.tier,
                name=p.name,
                subtitle=p.subtitle,
                monthly_price=p.monthly_price,
                max_employees=p.max_employees,
                features=list(p.features),
            )
            for p in company_service.PLANS.values()
        ],
        add_ons=[
            AddOnView(id=a.id, name=a.name, description=a.description, price=a.price, period=a.period)
            for a in company_service.ADD_ONS.values()
        ],
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.AUTH_REGISTER)
async def register_company(
    request: Request,
    payload: CompanyRegistration,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Sign up a new company together with its administrator account."""
    user, company = await company_service.register_company(
        db,
        company_name=payload.company_name,
        company_email=str(payload.company_email),
        admin_email=str(payload.admin_email),
        admin_name=payload.admin_name,
        password=payload.password,
        tier=payload.subscription_tier,
        company_phone=payload.company_phone,
        company_address=payload.company_address,
        add_ons=tuple(payload.add_ons),
    )
    return {
        "company": CompanyView.model_validate(company),
        "user_id": user.id,
        "access_token": create_access_token(subject=user.id),
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


@router.post("/setup", response_model=CompanyView, status_code=status.HTTP_201_CREATED)
async def setup_company(
    payload: CompanySetup,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Any:
    return await company_service.setup_company(db, current_user, payload.company_name)


@router.get("/current", response_model=CompanyView)
async def current_company(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
) -> Any:
    return await company_service.get_company(db, ctx.company_id)


@router.patch("/current", response_model=CompanyView)
async def update_current_company(
    payload: CompanyUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_company_admin),
) -> Any:
    """Edit the company's contact details (company administrators only)."""
    return await company_service.update_company_details(
        db, ctx.company_id, payload.model_dump(exclude_unset=True, mode="json")
    )
