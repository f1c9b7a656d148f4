"""
Append-only activity history per employee.

A failed log write never affects the change that triggered it: the writer
rolls back its own insert, logs a warning and hands back a notice string
for the caller to surface.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.activity_log import ACTION_TYPES, ActivityLogEntry
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.activity_log")

ACTIVITY_LOG_UNAVAILABLE = "activity log not available"


@dataclass
class ActivityEvent:
    employee_id: str
    action: str
    action_type: str = "update"
    details: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.action_type not in ACTION_TYPES:
            raise ValidationError(f"Unknown activity type '{self.action_type}'")


def _json_safe(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value, default=str))


class ActivityLogWriter:
    def __init__(self, db: AsyncSession, ctx: TenantContext):
        self.db = db
        self.ctx = ctx

    async def record(self, event: ActivityEvent) -> Optional[str]:
        """Append ``event``. Returns None on success or a notice when the write was skipped."""
        company_id = self.ctx.require_company()
        entry = ActivityLogEntry(
            company_id=company_id,
            employee_id=event.employee_id,
            action=event.action,
            action_type=event.action_type,
            details=event.details,
            actor_id=self.ctx.user_id,
            actor_name=self.ctx.actor_name,
            log_metadata=_json_safe(event.metadata) if event.metadata else None,
        )
        try:
            self.db.add(entry)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning(
                "Activity log write skipped for employee %s (%s): %s",
                event.employee_id, event.action, exc,
            )
            return ACTIVITY_LOG_UNAVAILABLE
        return None

    async def recent(self, employee_id: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Newest entries first, never more than ACTIVITY_LOG_LIMIT."""
        cap = settings.ACTIVITY_LOG_LIMIT
        limit = cap if limit is None else max(0, min(limit, cap))
        result = await self.db.execute(
            select(ActivityLogEntry)
            .where(
                ActivityLogEntry.company_id == self.ctx.require_company(),
                ActivityLogEntry.employee_id == employee_id,
            )
            .order_by(ActivityLogEntry.created_at.desc(), ActivityLogEntry.id.desc())
            .limit(limit)
        )
        return [entry.as_dict() for entry in result.scalars().all()]
