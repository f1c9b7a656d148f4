"""
Tenant-scoped writes with follow-up side effects.

Each dispatch commits the primary change first. Recurrence follow-ups, the
realtime change event and the activity-log entry run afterwards; their
failures are reported as notices on the MutationResult and never undo the
primary change.

Foreign keys into tenant-owned collections are checked before writing: a
reference to another company's row is rejected like a reference to nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import Any, Callable, Optional, Sequence, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConfirmationRequiredError, HSEError, NotFoundError, QueryError, ValidationError
from app.services.activity_log import ActivityEvent, ActivityLogWriter
from app.services.entity_fetcher import (
    COLLECTIONS,
    CollectionSpec,
    EntityFetcher,
    Filter,
    coerce_value,
    get_collection,
    get_column,
)
from app.services.realtime import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    ChangeBroadcaster,
    ChangeEvent,
)
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.mutations")

FOLLOW_UP_FAILED = "follow-up could not be scheduled"

_IMMUTABLE_FIELDS = frozenset({"id", "company_id", "created_at"})

ActivitySpec = Union[ActivityEvent, Callable[[dict[str, Any]], Optional[ActivityEvent]], None]


@dataclass
class MutationResult:
    record: Optional[dict[str, Any]]
    follow_ups: list[dict[str, Any]] = field(default_factory=list)
    notices: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RecurrenceRule:
    """
    When a row of ``collection`` enters ``trigger_status`` with a non-null
    ``date_field``, insert the row returned by ``build`` scheduled ``years``
    after that date.
    """

    collection: str
    status_field: str
    trigger_status: str
    date_field: str
    years: int
    build: Callable[[dict[str, Any], date], dict[str, Any]]

    def applies(self, collection: str, before: Optional[dict[str, Any]], after: dict[str, Any]) -> bool:
        if collection != self.collection:
            return False
        if after.get(self.status_field) != self.trigger_status or after.get(self.date_field) is None:
            return False
        return before is None or before.get(self.status_field) != self.trigger_status

    def next_values(self, record: dict[str, Any]) -> dict[str, Any]:
        due = record[self.date_field] + relativedelta(years=self.years)
        return self.build(record, due)


def _next_checkup(record: dict[str, Any], due: date) -> dict[str, Any]:
    return {
        "employee_id": record["employee_id"],
        "investigation_name": record["investigation_name"],
        "appointment_date": due,
        "status": "open",
    }


CHECKUP_RECURRENCE = RecurrenceRule(
    collection="health_checkups",
    status_field="status",
    trigger_status="done",
    date_field="completion_date",
    years=settings.CHECKUP_RECURRENCE_YEARS,
    build=_next_checkup,
)

DEFAULT_RULES: tuple[RecurrenceRule, ...] = (CHECKUP_RECURRENCE,)


@lru_cache(maxsize=None)
def _attribute_keys(model) -> dict[str, str]:
    """Column name -> mapped attribute name (they differ for e.g. ``metadata``)."""
    return {prop.columns[0].name: prop.key for prop in inspect(model).column_attrs}


@lru_cache(maxsize=None)
def _tenant_references(model) -> tuple[tuple[str, str, str], ...]:
    """(column, attribute, collection) for each foreign key into a tenant-owned collection."""
    collections = {spec.model.__tablename__: name for name, spec in COLLECTIONS.items()}
    keys = _attribute_keys(model)
    references = []
    for column in model.__table__.columns:
        for foreign_key in column.foreign_keys:
            target = collections.get(foreign_key.column.table.name)
            if target is not None:
                references.append((column.name, keys[column.name], target))
    return tuple(references)


class MutationDispatcher:
    def __init__(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        broadcaster: Optional[ChangeBroadcaster] = None,
        rules: Sequence[RecurrenceRule] = DEFAULT_RULES,
    ):
        self.db = db
        self.ctx = ctx
        self.broadcaster = broadcaster
        self.rules = tuple(rules)

    def _clean_values(self, spec: CollectionSpec, values: dict[str, Any]) -> dict[str, Any]:
        keys = _attribute_keys(spec.model)
        cleaned: dict[str, Any] = {}
        for name, raw in values.items():
            if name in _IMMUTABLE_FIELDS:
                if name == "company_id" and raw not in (None, self.ctx.company_id):
                    raise QueryError("company_id cannot be changed")
                continue
            if name not in keys:
                raise QueryError(f"Unknown field '{name}' on {spec.model.__tablename__}")
            cleaned[keys[name]] = coerce_value(get_column(spec, name), raw)
        return cleaned

    async def _check_references(self, spec: CollectionSpec, cleaned: dict[str, Any]) -> None:
        """Referenced rows must belong to the caller's company."""
        fetcher = EntityFetcher(self.db, self.ctx)
        for column, attribute, target in _tenant_references(spec.model):
            value = cleaned.get(attribute)
            if value is None:
                continue
            if not await fetcher.count(target, [Filter("id", "eq", value)]):
                raise ValidationError(
                    f"{column} does not refer to a record of {target}", details={"field": column},
                )

    async def _load(self, collection: str, spec: CollectionSpec, record_id: str, company_id: str):
        result = await self.db.execute(
            select(spec.model).where(
                get_column(spec, "id") == record_id,
                get_column(spec, spec.tenant_column) == company_id,
            ).execution_options(populate_existing=True)
        )
        obj = result.scalar_one_or_none()
        if obj is None:
            raise NotFoundError(collection, record_id)
        return obj

    async def _commit(self, collection: str, action: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("%s on %s violated a constraint: %s", action, collection, exc.orig)
            raise QueryError(f"Could not {action} {collection}: constraint violated") from exc
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.error("%s on %s failed: %s", action, collection, exc)
            raise QueryError(f"Could not {action} {collection}") from exc

    async def _insert_row(self, collection: str, values: dict[str, Any]) -> dict[str, Any]:
        spec = get_collection(collection)
        company_id = self.ctx.require_company()
        cleaned = self._clean_values(spec, values)
        await self._check_references(spec, cleaned)
        obj = spec.model(**cleaned)
        obj.company_id = company_id
        self.db.add(obj)
        await self._commit(collection, "insert")
        await self.db.refresh(obj)
        record = obj.as_dict()
        self._publish(collection, EVENT_INSERT, record)
        return record

    def _publish(self, collection: str, event_type: str, record: dict[str, Any]) -> None:
        if self.broadcaster is None:
            return
        self.broadcaster.publish(ChangeEvent(collection, record["company_id"], event_type, record))

    async def _log(self, activity: ActivitySpec, record: dict[str, Any]) -> list[str]:
        if activity is None:
            return []
        event = activity(record) if callable(activity) else activity
        if event is None:
            return []
        notice = await ActivityLogWriter(self.db, self.ctx).record(event)
        return [notice] if notice else []

    async def _run_rules(
        self, collection: str, before: Optional[dict[str, Any]], after: dict[str, Any]
    ) -> tuple[list[dict[str, Any]], list[str]]:
        follow_ups: list[dict[str, Any]] = []
        notices: list[str] = []
        for rule in self.rules:
            if not rule.applies(collection, before, after):
                continue
            try:
                follow_ups.append(await self._insert_row(rule.collection, rule.next_values(after)))
            except HSEError as exc:
                logger.error(
                    "Follow-up for %s %s not created: %s", collection, after.get("id"), exc.message,
                )
                notices.append(FOLLOW_UP_FAILED)
        return follow_ups, notices

    async def insert(
        self,
        collection: str,
        values: dict[str, Any],
        activity: ActivitySpec = None,
    ) -> MutationResult:
        """Insert one row owned by the caller's company."""
        record = await self._insert_row(collection, values)
        follow_ups, notices = await self._run_rules(collection, None, record)
        notices += await self._log(activity, record)
        return MutationResult(record=record, follow_ups=follow_ups, notices=notices)

    async def update(
        self,
        collection: str,
        record_id: str,
        values: dict[str, Any],
        activity: ActivitySpec = None,
    ) -> MutationResult:
        """Update one row of the caller's company. Other tenants' rows are NotFoundError."""
        spec = get_collection(collection)
        company_id = self.ctx.require_company()
        cleaned = self._clean_values(spec, values)
        obj = await self._load(collection, spec, record_id, company_id)
        await self._check_references(spec, cleaned)
        before = obj.as_dict()
        for key, value in cleaned.items():
            setattr(obj, key, value)
        await self._commit(collection, "update")
        await self.db.refresh(obj)
        after = obj.as_dict()

        self._publish(collection, EVENT_UPDATE, after)
        follow_ups, notices = await self._run_rules(collection, before, after)
        notices += await self._log(activity, after)
        return MutationResult(record=after, follow_ups=follow_ups, notices=notices)

    async def delete(
        self,
        collection: str,
        record_id: str,
        confirm: bool = False,
        activity: ActivitySpec = None,
    ) -> MutationResult:
        spec = get_collection(collection)
        if spec.confirm_delete and not confirm:
            raise ConfirmationRequiredError(f"Deleting from {collection}")
        company_id = self.ctx.require_company()
        obj = await self._load(collection, spec, record_id, company_id)
        before = obj.as_dict()
        await self.db.delete(obj)
        await self._commit(collection, "delete")

        self._publish(collection, EVENT_DELETE, before)
        notices = await self._log(activity, before)
        return MutationResult(record=before, notices=notices)
