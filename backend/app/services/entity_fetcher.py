"""
Tenant-scoped reads over the registered collections.

Every statement built here is filtered by the caller's company. A record
owned by another company is reported exactly like a missing one.

Usage:
    fetcher = EntityFetcher(db, ctx)
    rows = await fetcher.fetch(
        "tasks",
        filters=[Filter("status", "in", ["pending", "in_progress"])],
        order_by="due_date",
        limit=20,
        embed=["assignee"],
    )
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import Column, case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, QueryError
from app.models.activity_log import ActivityLogEntry
from app.models.document import Document
from app.models.employee import Department, Employee, EmployeeNote, ExposureGroup, JobRole
from app.models.health import HealthCheckup
from app.models.hse import (
    ActivityGroup,
    ActivityTrainingRequirement,
    Audit,
    AuditCategory,
    AuditChecklistItem,
    Course,
    CourseLesson,
    EmployeeActivityAssignment,
    Incident,
    Investigation,
    Measure,
    RiskAssessment,
    RiskCategory,
    TrainingRecord,
    TrainingType,
)
from app.models.notification import Notification
from app.models.task import Task
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.fetcher")

FILTER_OPERATORS = ("eq", "neq", "lt", "lte", "gt", "gte", "in", "is")
RESERVED_PARAMS = frozenset({"order", "ascending", "limit", "embed", "select", "confirm"})


@dataclass(frozen=True)
class Embed:
    """Nested projection of the row referenced by ``local_key``."""
    collection: str
    local_key: str
    fields: tuple[str, ...]


@dataclass(frozen=True)
class CollectionSpec:
    model: Any
    default_order: Optional[str] = "created_at"
    default_ascending: bool = False
    embeds: dict[str, Embed] = field(default_factory=dict)
    insertable: bool = True
    updatable: bool = True
    deletable: bool = True
    confirm_delete: bool = False
    tenant_column: str = "company_id"


_EMPLOYEE_REF = ("id", "full_name", "employee_number")

COLLECTIONS: dict[str, CollectionSpec] = {
    "employees": CollectionSpec(
        Employee,
        default_order="full_name",
        default_ascending=True,
        embeds={
            "department": Embed("departments", "department_id", ("id", "name")),
            "job_role": Embed("job_roles", "job_role_id", ("id", "title")),
            "exposure_group": Embed("exposure_groups", "exposure_group_id", ("id", "name")),
        },
    ),
    "departments": CollectionSpec(Department, default_order="name", default_ascending=True),
    "job_roles": CollectionSpec(JobRole, default_order="title", default_ascending=True),
    "exposure_groups": CollectionSpec(ExposureGroup, default_order="name", default_ascending=True),
    "employee_notes": CollectionSpec(EmployeeNote, default_ascending=True, updatable=False),
    "tasks": CollectionSpec(
        Task,
        default_order="due_date",
        default_ascending=True,
        embeds={"assignee": Embed("employees", "assigned_to", _EMPLOYEE_REF)},
    ),
    "health_checkups": CollectionSpec(
        HealthCheckup,
        default_order="appointment_date",
        default_ascending=True,
        embeds={"employee": Embed("employees", "employee_id", _EMPLOYEE_REF)},
        confirm_delete=True,
    ),
    "documents": CollectionSpec(
        Document,
        embeds={"employee": Embed("employees", "employee_id", _EMPLOYEE_REF)},
        insertable=False,
        confirm_delete=True,
    ),
    "employee_activity_logs": CollectionSpec(
        ActivityLogEntry, insertable=False, updatable=False, deletable=False,
    ),
    "notifications": CollectionSpec(Notification),
    "audits": CollectionSpec(
        Audit,
        default_order="scheduled_date",
        embeds={
            "auditor": Embed("employees", "auditor_id", _EMPLOYEE_REF),
            "category": Embed("audit_categories", "category_id", ("id", "name")),
        },
    ),
    "audit_checklist_items": CollectionSpec(AuditChecklistItem, default_order="order_index", default_ascending=True),
    "audit_categories": CollectionSpec(AuditCategory, default_order="name", default_ascending=True),
    "risk_categories": CollectionSpec(RiskCategory, default_order="name", default_ascending=True),
    "risk_assessments": CollectionSpec(
        RiskAssessment,
        embeds={
            "activity_group": Embed("activity_groups", "activity_group_id", ("id", "name")),
            "category": Embed("risk_categories", "category_id", ("id", "name")),
        },
    ),
    "incidents": CollectionSpec(
        Incident,
        default_order="incident_date",
        embeds={"affected_employee": Embed("employees", "affected_employee_id", _EMPLOYEE_REF)},
    ),
    "investigations": CollectionSpec(
        Investigation,
        embeds={"assigned_to": Embed("employees", "assigned_to_id", _EMPLOYEE_REF)},
    ),
    "measures": CollectionSpec(
        Measure,
        default_order="due_date",
        default_ascending=True,
        embeds={"responsible_person": Embed("employees", "responsible_person_id", _EMPLOYEE_REF)},
    ),
    "training_types": CollectionSpec(TrainingType, default_order="name", default_ascending=True),
    "training_records": CollectionSpec(
        TrainingRecord,
        default_order="expiry_date",
        default_ascending=True,
        embeds={
            "employee": Embed("employees", "employee_id", _EMPLOYEE_REF),
            "training_type": Embed("training_types", "training_type_id", ("id", "name", "validity_months")),
        },
    ),
    "courses": CollectionSpec(Course),
    "course_lessons": CollectionSpec(
        CourseLesson,
        default_order="order_index",
        default_ascending=True,
        embeds={"course": Embed("courses", "course_id", ("id", "name"))},
    ),
    "activity_groups": CollectionSpec(ActivityGroup, default_order="name", default_ascending=True),
    "employee_activity_assignments": CollectionSpec(EmployeeActivityAssignment),
    "activity_training_requirements": CollectionSpec(ActivityTrainingRequirement),
}


def get_collection(name: str) -> CollectionSpec:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise QueryError(f"Unknown collection '{name}'") from None


def get_column(spec: CollectionSpec, name: str) -> Column:
    column = spec.model.__table__.c.get(name)
    if column is None:
        raise QueryError(f"Unknown field '{name}' on {spec.model.__tablename__}")
    return column


def coerce_value(column: Column, raw: Any) -> Any:
    """Convert a query-string or JSON value to the column's Python type."""
    if raw is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    if python_type in (dict, list) or isinstance(raw, python_type):
        if python_type is date and isinstance(raw, datetime):
            return raw.date()
        return raw
    try:
        if python_type is bool:
            lowered = str(raw).lower()
            if lowered not in ("true", "false"):
                raise ValueError(raw)
            return lowered == "true"
        if python_type is datetime:
            return datetime.fromisoformat(str(raw))
        if python_type is date:
            return date.fromisoformat(str(raw)[:10])
        if python_type is int:
            return int(raw)
        if python_type is float:
            return float(raw)
        if python_type is str:
            return str(raw)
    except (TypeError, ValueError):
        raise QueryError(f"Invalid value {raw!r} for field '{column.name}'") from None
    return raw


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any = None

    def __post_init__(self):
        if self.op not in FILTER_OPERATORS:
            raise QueryError(f"Unsupported filter operator '{self.op}'")

    def to_condition(self, spec: CollectionSpec):
        column = get_column(spec, self.field)
        if self.op == "is":
            if self.value is None:
                return column.is_(None)
            return column.is_(coerce_value(column, self.value))
        if self.op == "in":
            values = self.value if isinstance(self.value, (list, tuple, set)) else [self.value]
            return column.in_([coerce_value(column, v) for v in values])

        value = coerce_value(column, self.value)
        if self.op == "eq":
            return column == value
        if self.op == "neq":
            return column != value
        if self.op == "lt":
            return column < value
        if self.op == "lte":
            return column <= value
        if self.op == "gt":
            return column > value
        return column >= value


def _parse_filter_value(field_name: str, raw: str) -> Filter:
    op, dot, rest = raw.partition(".")
    if not dot or op not in FILTER_OPERATORS:
        return Filter(field_name, "eq", raw)
    if op == "in":
        inner = rest.strip()
        if inner.startswith("(") and inner.endswith(")"):
            inner = inner[1:-1]
        return Filter(field_name, "in", [v.strip() for v in inner.split(",") if v.strip()])
    if op == "is":
        lowered = rest.lower()
        if lowered == "null":
            return Filter(field_name, "is", None)
        if lowered in ("true", "false"):
            return Filter(field_name, "is", lowered == "true")
        raise QueryError(f"Invalid 'is' value {rest!r} for field '{field_name}'")
    return Filter(field_name, op, rest)


def parse_filters(params: Iterable[tuple[str, str]]) -> list[Filter]:
    """
    Parse ``field=op.value`` query parameters, e.g. ``status=in.(pending,in_progress)``,
    ``due_date=lt.2024-01-01`` or ``assigned_to=is.null``. A value without a
    known operator prefix means equality. Reserved parameters are skipped.
    """
    return [_parse_filter_value(key, value) for key, value in params if key not in RESERVED_PARAMS]


def order_clauses(spec: CollectionSpec, order_by: Optional[str], ascending: bool) -> list:
    """
    ORDER BY clauses with NULL sort keys placed last in both directions and
    ``id`` as the final tie-breaker.
    """
    id_column = spec.model.__table__.c.id
    if not order_by:
        return [id_column.asc()]
    column = get_column(spec, order_by)
    return [
        case((column.is_(None), 1), else_=0),
        column.asc() if ascending else column.desc(),
        id_column.asc(),
    ]


class EntityFetcher:
    """Read access to the registered collections for one tenant."""

    def __init__(self, db: AsyncSession, ctx: TenantContext):
        self.db = db
        self.ctx = ctx

    def _scoped(self, spec: CollectionSpec, statement, filters: Sequence[Filter]):
        company_id = self.ctx.require_company()
        statement = statement.where(get_column(spec, spec.tenant_column) == company_id)
        for f in filters:
            statement = statement.where(f.to_condition(spec))
        return statement

    async def _execute(self, collection: str, statement):
        try:
            return await self.db.execute(statement)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning("Query on %s failed for company %s: %s", collection, self.ctx.company_id, exc)
            raise QueryError(f"Could not read {collection}") from exc

    async def fetch(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        ascending: Optional[bool] = None,
        limit: Optional[int] = None,
        embed: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        spec = get_collection(collection)
        if order_by is None:
            order_by = spec.default_order
            if ascending is None:
                ascending = spec.default_ascending
        if ascending is None:
            ascending = True

        statement = self._scoped(spec, select(spec.model), filters).execution_options(populate_existing=True)
        statement = statement.order_by(*order_clauses(spec, order_by, ascending))
        if limit is not None:
            if limit < 0:
                raise QueryError("limit must not be negative")
            statement = statement.limit(limit)

        result = await self._execute(collection, statement)
        records = [row.as_dict() for row in result.scalars().all()]
        if embed and records:
            await self._resolve_embeds(collection, spec, records, embed)
        return records

    async def get(self, collection: str, record_id: str, embed: Sequence[str] = ()) -> dict[str, Any]:
        rows = await self.fetch(collection, filters=[Filter("id", "eq", record_id)], limit=1, embed=embed)
        if not rows:
            raise NotFoundError(collection, record_id)
        return rows[0]

    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        spec = get_collection(collection)
        statement = self._scoped(spec, select(func.count()).select_from(spec.model), filters)
        result = await self._execute(collection, statement)
        return int(result.scalar_one())

    async def _resolve_embeds(
        self,
        collection: str,
        spec: CollectionSpec,
        records: list[dict[str, Any]],
        embed: Sequence[str],
    ) -> None:
        for name in embed:
            relation = spec.embeds.get(name)
            if relation is None:
                raise QueryError(f"Cannot embed '{name}' in {collection}")
            ids = sorted({r[relation.local_key] for r in records if r.get(relation.local_key)})
            related: dict[str, dict[str, Any]] = {}
            if ids:
                target = get_collection(relation.collection)
                columns = [get_column(target, f) for f in relation.fields]
                statement = self._scoped(target, select(*columns), [Filter("id", "in", ids)])
                result = await self._execute(relation.collection, statement)
                for row in result.mappings():
                    related[row["id"]] = dict(row)
            for record in records:
                record[name] = related.get(record.get(relation.local_key))
