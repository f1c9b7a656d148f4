"""
Company (tenant) lifecycle: plan catalogue, self-service registration,
company setup for signed-in users without a tenant, contact details kept
by the company admin, and the super-admin subscription management.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.security import get_password_hash
from app.models.company import (
    Company,
    ROLE_COMPANY_ADMIN,
    ROLE_SUPER_ADMIN,
    SUBSCRIPTION_STATUSES,
    SUBSCRIPTION_TIERS,
    UserRoleAssignment,
)
from app.models.employee import Employee
from app.models.user import User

logger = logging.getLogger("hse.companies")

_DETAIL_FIELDS = frozenset({"name", "email", "phone", "address"})


@dataclass(frozen=True)
class Plan:
    tier: str
    name: str
    subtitle: str
    monthly_price: float
    max_employees: int
    features: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AddOn:
    id: str
    name: str
    description: str
    price: float
    period: str


PLANS: dict[str, Plan] = {
    "basic": Plan(
        "basic", "Package S", "HSE Basic", 149, 5,
        ("Dashboard", "Employee management", "Examination management", "Document management", "Task list"),
    ),
    "standard": Plan(
        "standard", "Package M", "HSE Pro", 249, 10,
        ("Everything in Package S", "Incident reports", "Risk assessments", "Action tracking"),
    ),
    "premium": Plan(
        "premium", "Package L", "HSE Enterprise", 349, 999,
        ("Everything in Package M", "Training management", "Audit management", "Priority support"),
    ),
}

ADD_ONS: dict[str, AddOn] = {
    a.id: a
    for a in (
        AddOn("safety-course-bundle", "Basic safety course bundle", "10 standard courses", 149, "year"),
        AddOn("quickstart", "QuickStart", "60-minute remote setup", 149, "one-time"),
        AddOn("priority-support", "Priority Support", "Response time under 10 hours", 49, "month"),
        AddOn("multi-site-basic", "Multi-Site Basic", "Up to 3 locations", 59, "month"),
        AddOn("storage-50gb", "Storage+ 50 GB", "Additional storage", 19, "month"),
        AddOn("storage-200gb", "Storage+ 200 GB", "Additional storage", 59, "month"),
        AddOn("storage-unlimited", "Storage Unlimited", "Unlimited storage", 149, "month"),
        AddOn("custom-course-upload", "Custom Course Upload", "Any number of own courses", 49, "month"),
    )
}


def get_plan(tier: str) -> Plan:
    try:
        return PLANS[tier]
    except KeyError:
        raise ValidationError(f"Unknown subscription tier '{tier}'") from None


def monthly_revenue(tiers: list[str]) -> float:
    """Sum of plan prices for the given tiers (one entry per active company)."""
    return float(sum(PLANS[t].monthly_price for t in tiers if t in PLANS))


async def _create_company(
    db: AsyncSession,
    user: User,
    name: str,
    email: str,
    tier: str = "basic",
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> Company:
    plan = get_plan(tier)
    existing = await db.scalar(select(UserRoleAssignment).where(UserRoleAssignment.user_id == user.id))
    if existing is not None and existing.company_id is not None:
        raise ConflictError("user_roles", "user_id", user.id)

    company = Company(
        name=name.strip(),
        email=email,
        phone=phone or None,
        address=address or None,
        subscription_tier=plan.tier,
        subscription_status="trial",
        max_employees=plan.max_employees,
        subscription_start_date=date.today(),
    )
    db.add(company)
    await db.flush()

    if existing is None:
        db.add(UserRoleAssignment(user_id=user.id, role=ROLE_COMPANY_ADMIN, company_id=company.id))
    else:
        existing.company_id = company.id
        if existing.role != ROLE_SUPER_ADMIN:
            existing.role = ROLE_COMPANY_ADMIN
    return company


async def register_company(
    db: AsyncSession,
    *,
    company_name: str,
    company_email: str,
    admin_email: str,
    admin_name: str,
    password: str,
    tier: str = "basic",
    company_phone: Optional[str] = None,
    company_address: Optional[str] = None,
    add_ons: tuple[str, ...] = (),
) -> tuple[User, Company]:
    """Create the admin account, the company on a trial of ``tier`` and the admin role link."""
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")
    unknown = [a for a in add_ons if a not in ADD_ONS]
    if unknown:
        raise ValidationError(f"Unknown add-ons: {', '.join(unknown)}")

    email = admin_email.strip().lower()
    if await db.scalar(select(User.id).where(User.email == email)) is not None:
        raise ConflictError("users", "email", email)

    user = User(email=email, full_name=admin_name.strip(), hashed_password=get_password_hash(password))
    db.add(user)
    await db.flush()
    company = await _create_company(
        db, user, company_name, company_email, tier=tier, phone=company_phone, address=company_address,
    )
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("users", "email", email) from exc
    await db.refresh(company)
    logger.info(
        "Registered company %s (%s) on %s with add-ons %s", company.id, company.name, tier, list(add_ons),
    )
    return user, company


async def setup_company(db: AsyncSession, user: User, company_name: str) -> Company:
    """Create a company for an authenticated user who is not linked to one yet."""
    if not company_name or not company_name.strip():
        raise ValidationError("Company name is required")
    company = await _create_company(db, user, company_name, user.email)
    await db.commit()
    await db.refresh(company)
    logger.info("User %s created company %s", user.id, company.id)
    return company


async def get_company(db: AsyncSession, company_id: str) -> Company:
    company = await db.get(Company, company_id)
    if company is None:
        raise NotFoundError("companies", company_id)
    return company


async def list_companies(db: AsyncSession, search: Optional[str] = None, limit: int = 100) -> list[Company]:
    statement = select(Company).order_by(Company.created_at.desc(), Company.id).limit(limit)
    if search:
        pattern = f"%{search.strip().lower()}%"
        statement = statement.where(
            or_(func.lower(Company.name).like(pattern), func.lower(Company.email).like(pattern))
        )
    return list((await db.execute(statement)).scalars().all())


async def update_subscription(
    db: AsyncSession,
    company_id: str,
    tier: Optional[str] = None,
    status: Optional[str] = None,
    max_employees: Optional[int] = None,
) -> Company:
    company = await get_company(db, company_id)
    if tier is not None:
        if tier not in SUBSCRIPTION_TIERS:
            raise ValidationError(f"Unknown subscription tier '{tier}'")
        company.subscription_tier = tier
    if status is not None:
        if status not in SUBSCRIPTION_STATUSES:
            raise ValidationError(f"Unknown subscription status '{status}'")
        company.subscription_status = status
    if max_employees is not None:
        if max_employees < 1:
            raise ValidationError("max_employees must be at least 1")
        company.max_employees = max_employees
    await db.commit()
    await db.refresh(company)
    logger.info(
        "Subscription of %s set to tier=%s status=%s max_employees=%s",
        company_id, company.subscription_tier, company.subscription_status, company.max_employees,
    )
    return company


async def update_company_details(db: AsyncSession, company_id: str, values: dict[str, Any]) -> Company:
    """Contact details only; plan and limits go through update_subscription."""
    company = await get_company(db, company_id)
    for key, value in values.items():
        if key not in _DETAIL_FIELDS:
            raise ValidationError(f"Field '{key}' cannot be changed here")
        if key in ("name", "email") and not value:
            raise ValidationError(f"Company {key} cannot be empty")
        setattr(company, key, value.strip() if isinstance(value, str) else value)
    await db.commit()
    await db.refresh(company)
    logger.info("Company %s details updated: %s", company_id, ", ".join(sorted(values)))
    return company


async def active_employee_count(db: AsyncSession, company_id: str) -> int:
    return int(
        await db.scalar(
            select(func.count()).select_from(Employee).where(
                Employee.company_id == company_id, Employee.is_active.is_(True)
            )
        )
    )
