"""
Task management.

Status changes carry the time they were issued. A change is applied only if
it was issued after the change currently stored, so the task ends up in the
state of the most recently issued change no matter in which order the
requests reach the database. Toggles issued after the last explicit change
each flip the task once, so a toggle that arrives late is not lost.
"""

import asyncio
import logging
import weakref
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.models.task import TASK_PRIORITIES, TASK_STATUSES, Task
from app.services.activity_log import ActivityEvent, ActivityLogWriter
from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.mentions import extract_mentions
from app.services.mutations import MutationDispatcher, MutationResult
from app.services.realtime import EVENT_UPDATE, ChangeBroadcaster, ChangeEvent
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.tasks")

STALE_STATUS_CHANGE = "status change superseded by a later one"

_UPDATABLE_FIELDS = frozenset({"title", "description", "priority", "due_date", "assigned_to", "audit_id"})

TASK_FILTERS: dict[str, list[Filter]] = {
    "upcoming": [Filter("status", "in", ["pending", "in_progress"])],
    "completed": [Filter("status", "eq", "completed")],
    "pending": [Filter("status", "eq", "pending")],
    "in_progress": [Filter("status", "eq", "in_progress")],
    "all": [],
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_task_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def _task_lock(task_id: str) -> asyncio.Lock:
    lock = _task_locks.get(task_id)
    if lock is None:
        lock = asyncio.Lock()
        _task_locks[task_id] = lock
    return lock


def status_revision(issued_at: datetime) -> int:
    """Epoch microseconds of ``issued_at`` (naive values are taken as UTC)."""
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    return (issued_at - _EPOCH) // timedelta(microseconds=1)


def _flipped(status: str) -> str:
    return "pending" if status == "completed" else "completed"


def _validate(priority: Optional[str] = None, status: Optional[str] = None) -> None:
    if priority is not None and priority not in TASK_PRIORITIES:
        raise ValidationError(f"Unknown priority '{priority}'", details={"allowed": list(TASK_PRIORITIES)})
    if status is not None and status not in TASK_STATUSES:
        raise ValidationError(f"Unknown status '{status}'", details={"allowed": list(TASK_STATUSES)})


class TaskService:
    def __init__(self, db: AsyncSession, ctx: TenantContext, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.ctx = ctx
        self.broadcaster = broadcaster
        self.fetcher = EntityFetcher(db, ctx)
        self.dispatcher = MutationDispatcher(db, ctx, broadcaster)

    async def list_tasks(
        self,
        status_filter: str = "all",
        assigned_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        if status_filter not in TASK_FILTERS:
            raise ValidationError(f"Unknown task filter '{status_filter}'", details={"allowed": list(TASK_FILTERS)})
        filters = list(TASK_FILTERS[status_filter])
        if assigned_to:
            filters.append(Filter("assigned_to", "eq", assigned_to))
        return await self.fetcher.fetch(
            "tasks", filters, order_by="due_date", ascending=True, limit=limit, embed=["assignee"],
        )

    async def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        assigned_to: Optional[str] = None,
        priority: str = "medium",
        status: str = "pending",
        due_date: Optional[date] = None,
        audit_id: Optional[str] = None,
    ) -> MutationResult:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Task title is required")
        _validate(priority, status)
        if assigned_to:
            await self.fetcher.get("employees", assigned_to)

        activity = None
        if assigned_to:
            activity = ActivityEvent(assigned_to, "Task assigned", "create", details=title)
        return await self.dispatcher.insert(
            "tasks",
            {
                "title": title,
                "description": description,
                "assigned_to": assigned_to,
                "priority": priority,
                "status": status,
                "due_date": due_date,
                "audit_id": audit_id,
                "status_revision": status_revision(datetime.now(timezone.utc)),
            },
            activity=activity,
        )

    async def create_tasks_from_mentions(
        self,
        text: str,
        due_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> list[MutationResult]:
        """One pending, medium-priority task per ``@Full Name`` mentioned in ``text``."""
        candidates = await self.fetcher.fetch("employees", [Filter("is_active", "eq", True)])
        mentioned, title = extract_mentions(text or "", candidates)
        if not mentioned:
            raise ValidationError("Please mention at least one employee using @")
        results = [
            await self.create_task(
                title, description=description, assigned_to=e["id"], due_date=due_date,
            )
            for e in mentioned
        ]
        logger.info("Task assigned to %d employee(s) in company %s", len(results), self.ctx.company_id)
        return results

    async def update_task(self, task_id: str, values: dict[str, Any]) -> MutationResult:
        unknown = set(values) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated here: {', '.join(sorted(unknown))}",
                details={"allowed": sorted(_UPDATABLE_FIELDS)},
            )
        _validate(priority=values.get("priority"))
        if values.get("assigned_to"):
            await self.fetcher.get("employees", values["assigned_to"])
        return await self.dispatcher.update("tasks", task_id, values)

    async def delete_task(self, task_id: str) -> MutationResult:
        return await self.dispatcher.delete("tasks", task_id)

    async def set_task_status(
        self, task_id: str, status: str, issued_at: Optional[datetime] = None
    ) -> MutationResult:
        """
        Conditionally set ``status``. Returns the stored task; when a later
        change already won, nothing is written and a notice says so.
        """
        _validate(status=status)
        company_id = self.ctx.require_company()
        revision = status_revision(issued_at or datetime.now(timezone.utc))

        result = await self.db.execute(
            update(Task)
            .where(Task.id == task_id, Task.company_id == company_id, Task.status_revision < revision)
            .values(status=status, status_revision=revision, status_set_revision=revision)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        record = await self.fetcher.get("tasks", task_id)

        if result.rowcount == 0:
            logger.info("Ignored stale status change of task %s to %s", task_id, status)
            return MutationResult(record=record, notices=[STALE_STATUS_CHANGE])
        return await self._status_applied(record)

    async def toggle_task_status(
        self,
        task_id: str,
        issued_at: Optional[datetime] = None,
        seen_status: Optional[str] = None,
    ) -> MutationResult:
        """
        Flip completed <-> pending.

        With ``seen_status`` (what the user saw when clicking) the target is
        fixed at issue time and goes through the same revision guard as
        ``set_task_status``. Without it every toggle issued after the last
        explicit status change flips the task exactly once, so a toggle that
        reaches the server after a later one still counts and the task ends in
        the state the last click asked for.
        """
        if seen_status is not None:
            _validate(status=seen_status)
            return await self.set_task_status(task_id, _flipped(seen_status), issued_at)

        company_id = self.ctx.require_company()
        revision = status_revision(issued_at or datetime.now(timezone.utc))
        async with _task_lock(task_id):
            current = await self.fetcher.get("tasks", task_id)
            # Issued before an explicit change, or a resend of the toggle already applied
            repeated = issued_at is not None and revision == current["status_revision"]
            if revision <= current["status_set_revision"] or repeated:
                logger.info("Ignored stale toggle of task %s", task_id)
                return MutationResult(record=current, notices=[STALE_STATUS_CHANGE])

            result = await self.db.execute(
                update(Task)
                .where(
                    Task.id == task_id,
                    Task.company_id == company_id,
                    Task.status == current["status"],
                    Task.status_set_revision < revision,
                )
                .values(
                    status=_flipped(current["status"]),
                    status_revision=max(revision, current["status_revision"]),
                )
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            record = await self.fetcher.get("tasks", task_id)

        if result.rowcount == 0:
            logger.info("Ignored toggle of task %s racing an explicit status change", task_id)
            return MutationResult(record=record, notices=[STALE_STATUS_CHANGE])
        return await self._status_applied(record)

    async def _status_applied(self, record: dict[str, Any]) -> MutationResult:
        status = record["status"]
        if self.broadcaster is not None:
            self.broadcaster.publish(ChangeEvent("tasks", self.ctx.company_id, EVENT_UPDATE, record))
        notices: list[str] = []
        if record["assigned_to"]:
            notice = await ActivityLogWriter(self.db, self.ctx).record(
                ActivityEvent(
                    record["assigned_to"],
                    "Task status changed",
                    "status_change",
                    details=f"{record['title']}: {status}",
                    metadata={"task_id": record["id"], "status": status},
                )
            )
            if notice:
                notices.append(notice)
        return MutationResult(record=record, notices=notices)
