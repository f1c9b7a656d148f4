"""
Employee master data: creation with plan limits, single-field edits from the
profile page, soft (de)activation, tags and custom profile fields.
"""

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, SubscriptionLimitError, ValidationError
from app.models.company import Company
from app.models.employee import Department, JobRole
from app.schemas.employee import EmployeeCreate
from app.services.activity_log import ActivityEvent
from app.services.company_service import active_employee_count
from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.mutations import MutationDispatcher, MutationResult
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.employees")

EMPLOYEE_EMBEDS = ("department", "job_role", "exposure_group")

# Fields editable one at a time from the profile page
EDITABLE_FIELDS = frozenset({
    "first_name",
    "last_name",
    "full_name",
    "employee_number",
    "email",
    "hire_date",
    "department_id",
    "job_role_id",
    "exposure_group_id",
    "department",
    "job_role",
})


def split_full_name(full_name: str) -> tuple[str, str]:
    first, _, last = (full_name or "").strip().partition(" ")
    return first, last.strip()


class EmployeeService:
    def __init__(self, db: AsyncSession, ctx: TenantContext, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.ctx = ctx
        self.fetcher = EntityFetcher(db, ctx)
        self.dispatcher = MutationDispatcher(db, ctx, broadcaster)

    async def list_employees(self, active_only: bool = False, search: Optional[str] = None) -> list[dict[str, Any]]:
        filters = [Filter("is_active", "eq", True)] if active_only else []
        employees = await self.fetcher.fetch("employees", filters, embed=EMPLOYEE_EMBEDS)
        if search:
            needle = search.strip().lower()
            employees = [
                e for e in employees
                if needle in e["full_name"].lower() or needle in (e["employee_number"] or "").lower()
            ]
        return employees

    async def get_employee(self, employee_id: str) -> dict[str, Any]:
        return await self.fetcher.get("employees", employee_id, embed=EMPLOYEE_EMBEDS)

    async def _ensure_number_free(self, employee_number: str, exclude_id: Optional[str] = None) -> None:
        filters = [Filter("employee_number", "eq", employee_number)]
        if exclude_id:
            filters.append(Filter("id", "neq", exclude_id))
        if await self.fetcher.count("employees", filters):
            raise ConflictError("employees", "employee_number", employee_number)

    async def _ensure_capacity(self) -> None:
        company_id = self.ctx.require_company()
        company = await self.db.get(Company, company_id)
        if company is None:
            raise NotFoundError("companies", company_id)
        active = await active_employee_count(self.db, company_id)
        if active >= company.max_employees:
            raise SubscriptionLimitError(
                f"Your plan allows {company.max_employees} active employees",
                details={"max_employees": company.max_employees, "active": active},
            )

    async def create_employee(self, data: EmployeeCreate) -> MutationResult:
        number = data.employee_number.strip()
        await self._ensure_number_free(number)
        if data.is_active:
            await self._ensure_capacity()

        values = {
            "employee_number": number,
            "full_name": data.resolved_full_name,
            "email": str(data.email) if data.email else None,
            "hire_date": data.hire_date,
            "department_id": data.department_id or None,
            "job_role_id": data.job_role_id or None,
            "exposure_group_id": data.exposure_group_id or None,
            "is_active": data.is_active,
        }
        result = await self.dispatcher.insert(
            "employees",
            values,
            activity=lambda record: ActivityEvent(
                employee_id=record["id"],
                action="Employee created",
                action_type="create",
                details=f"Created {record['full_name']} ({record['employee_number']})",
            ),
        )
        logger.info("Employee %s created for company %s", result.record["id"], self.ctx.company_id)
        return result

    async def _find_or_create(self, model, collection: str, column: str, name: str) -> str:
        company_id = self.ctx.require_company()
        existing = await self.db.scalar(
            select(model.id).where(
                model.company_id == company_id,
                func.lower(getattr(model, column)) == name.lower(),
            )
        )
        if existing:
            return existing
        created = await self.dispatcher.insert(collection, {column: name})
        return created.record["id"]

    async def update_field(self, employee_id: str, field: str, value: Any) -> MutationResult:
        """
        Apply one profile edit. ``first_name``/``last_name`` are recombined into
        ``full_name``; ``department``/``job_role`` take a name and create the
        entry on the fly when it does not exist yet.
        """
        if field not in EDITABLE_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be edited", details={"allowed": sorted(EDITABLE_FIELDS)})
        current = await self.fetcher.get("employees", employee_id)

        if isinstance(value, str):
            value = value.strip()

        if field in ("first_name", "last_name"):
            first, last = split_full_name(current["full_name"])
            if field == "first_name":
                first = value or ""
            else:
                last = value or ""
            full_name = f"{first} {last}".strip()
            if not full_name:
                raise ValidationError("Employee name cannot be empty")
            values = {"full_name": full_name}
            old = current["full_name"]
        elif field == "full_name":
            if not value:
                raise ValidationError("Employee name cannot be empty")
            values = {"full_name": value}
            old = current["full_name"]
        elif field in ("department", "job_role"):
            if not value:
                values = {f"{field}_id": None}
            elif field == "department":
                values = {"department_id": await self._find_or_create(Department, "departments", "name", value)}
            else:
                values = {"job_role_id": await self._find_or_create(JobRole, "job_roles", "title", value)}
            old = current[f"{field}_id"]
        else:
            if field == "employee_number":
                if not value:
                    raise ValidationError("Employee number cannot be empty")
                await self._ensure_number_free(value, exclude_id=employee_id)
            values = {field: value if value != "" else None}
            old = current[field]

        return await self.dispatcher.update(
            "employees",
            employee_id,
            values,
            activity=ActivityEvent(
                employee_id=employee_id,
                action=f"Updated {field}",
                action_type="update",
                details=f"Changed {field} to {value}",
                metadata={"field": field, "old_value": old, "new_value": value},
            ),
        )

    async def set_active(self, employee_id: str, active: bool) -> MutationResult:
        current = await self.fetcher.get("employees", employee_id)
        if current["is_active"] == active:
            return MutationResult(record=current)
        if active:
            await self._ensure_capacity()
        return await self.dispatcher.update(
            "employees",
            employee_id,
            {"is_active": active},
            activity=ActivityEvent(
                employee_id=employee_id,
                action="Employee reactivated" if active else "Employee deactivated",
                action_type="status_change",
            ),
        )

    async def add_tag(self, employee_id: str, tag: str) -> MutationResult:
        tag = tag.strip()
        if not tag:
            raise ValidationError("Tag cannot be empty")
        current = await self.fetcher.get("employees", employee_id)
        tags = list(current["tags"] or [])
        if tag in tags:
            return MutationResult(record=current)
        return await self.dispatcher.update(
            "employees",
            employee_id,
            {"tags": tags + [tag]},
            activity=ActivityEvent(employee_id, "Added tag", "update", details=tag),
        )

    async def remove_tag(self, employee_id: str, tag: str) -> MutationResult:
        """Removing a tag that is not present leaves the employee untouched."""
        current = await self.fetcher.get("employees", employee_id)
        tags = list(current["tags"] or [])
        if tag not in tags:
            return MutationResult(record=current)
        return await self.dispatcher.update(
            "employees",
            employee_id,
            {"tags": [t for t in tags if t != tag]},
            activity=ActivityEvent(employee_id, "Removed tag", "update", details=tag),
        )

    async def set_profile_field(
        self,
        employee_id: str,
        label: str,
        value: Any = None,
        field_type: str = "text",
        field_id: Optional[str] = None,
    ) -> MutationResult:
        current = await self.fetcher.get("employees", employee_id)
        fields = [dict(f) for f in current["profile_fields"] or []]
        field_id = field_id or str(uuid.uuid4())
        entry = {"id": field_id, "label": label.strip(), "type": field_type, "value": value}
        for index, existing in enumerate(fields):
            if existing.get("id") == field_id:
                fields[index] = entry
                break
        else:
            fields.append(entry)
        return await self.dispatcher.update(
            "employees",
            employee_id,
            {"profile_fields": fields},
            activity=ActivityEvent(
                employee_id, f"Updated {entry['label']}", "update", details=f"Changed {entry['label']} to {value}",
            ),
        )

    async def remove_profile_field(self, employee_id: str, field_id: str) -> MutationResult:
        current = await self.fetcher.get("employees", employee_id)
        fields = list(current["profile_fields"] or [])
        remaining = [f for f in fields if f.get("id") != field_id]
        if len(remaining) == len(fields):
            return MutationResult(record=current)
        removed = next(f for f in fields if f.get("id") == field_id)
        return await self.dispatcher.update(
            "employees",
            employee_id,
            {"profile_fields": remaining},
            activity=ActivityEvent(employee_id, f"Removed {removed.get('label')}", "delete"),
        )
