"""
Occupational health checkups.

Status only moves forward: planned -> open -> done. Completing a checkup
goes through the dispatcher so the recurrence rule schedules its successor.
"""

import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidTransitionError, ValidationError
from app.models.health import CHECKUP_STATUSES
from app.services.activity_log import ActivityEvent
from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.mutations import MutationDispatcher, MutationResult
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.checkups")

_STATUS_RANK = {status: rank for rank, status in enumerate(CHECKUP_STATUSES)}

_UPDATABLE_FIELDS = frozenset({"investigation_name", "appointment_date", "completion_date", "certificate_path", "notes"})


def check_transition(current: str, target: str) -> None:
    if target not in _STATUS_RANK:
        raise ValidationError(f"Unknown checkup status '{target}'", details={"allowed": list(CHECKUP_STATUSES)})
    if _STATUS_RANK[target] < _STATUS_RANK.get(current, 0):
        raise InvalidTransitionError("health_checkups", current, target)


class HealthCheckupService:
    def __init__(self, db: AsyncSession, ctx: TenantContext, broadcaster: Optional[ChangeBroadcaster] = None):
        self.ctx = ctx
        self.fetcher = EntityFetcher(db, ctx)
        self.dispatcher = MutationDispatcher(db, ctx, broadcaster)

    async def list_for_employee(self, employee_id: str) -> list[dict[str, Any]]:
        await self.fetcher.get("employees", employee_id)
        return await self.fetcher.fetch(
            "health_checkups",
            [Filter("employee_id", "eq", employee_id)],
            order_by="appointment_date",
            ascending=True,
        )

    async def create_checkup(
        self,
        employee_id: str,
        investigation_name: str,
        appointment_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> MutationResult:
        name = (investigation_name or "").strip()
        if not name:
            raise ValidationError("Investigation name is required")
        await self.fetcher.get("employees", employee_id)
        return await self.dispatcher.insert(
            "health_checkups",
            {
                "employee_id": employee_id,
                "investigation_name": name,
                "appointment_date": appointment_date,
                "status": "planned",
                "notes": notes,
            },
            activity=ActivityEvent(employee_id, "Health checkup planned", "create", details=name),
        )

    async def update_checkup(self, checkup_id: str, values: dict[str, Any]) -> MutationResult:
        """Edit checkup details. Status changes go through ``change_status``."""
        unknown = set(values) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated here: {', '.join(sorted(unknown))}",
                details={"allowed": sorted(_UPDATABLE_FIELDS)},
            )
        current = await self.fetcher.get("health_checkups", checkup_id)
        return await self.dispatcher.update(
            "health_checkups",
            checkup_id,
            values,
            activity=ActivityEvent(
                current["employee_id"],
                "Health checkup updated",
                "update",
                details=current["investigation_name"],
                metadata={"fields": sorted(values)},
            ),
        )

    async def change_status(
        self, checkup_id: str, status: str, completion_date: Optional[date] = None
    ) -> MutationResult:
        current = await self.fetcher.get("health_checkups", checkup_id)
        check_transition(current["status"], status)
        if current["status"] == status and completion_date is None:
            return MutationResult(record=current)

        values: dict[str, Any] = {"status": status}
        if status == "done":
            values["completion_date"] = completion_date or current["completion_date"] or date.today()
        elif completion_date is not None:
            values["completion_date"] = completion_date

        result = await self.dispatcher.update(
            "health_checkups",
            checkup_id,
            values,
            activity=ActivityEvent(
                current["employee_id"],
                "Health checkup status changed",
                "status_change",
                details=f"{current['investigation_name']}: {current['status']} -> {status}",
                metadata={"checkup_id": checkup_id, "old_value": current["status"], "new_value": status},
            ),
        )
        if result.follow_ups:
            logger.info(
                "Checkup %s completed, next %s scheduled for %s",
                checkup_id, current["investigation_name"], result.follow_ups[0]["appointment_date"],
            )
        return result

    async def delete_checkup(self, checkup_id: str, confirm: bool = False) -> MutationResult:
        current = await self.fetcher.get("health_checkups", checkup_id)
        return await self.dispatcher.delete(
            "health_checkups",
            checkup_id,
            confirm=confirm,
            activity=ActivityEvent(
                current["employee_id"], "Health checkup deleted", "delete", details=current["investigation_name"],
            ),
        )
