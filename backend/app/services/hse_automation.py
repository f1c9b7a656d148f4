"""
Workflow rules that connect the safety records to each other:

- a risk assessment on an activity group assigns the group's required
  training to every employee doing that activity;
- an audit finding becomes a task for the auditor (or a chosen employee);
- a measure gets a responsible person from the activities it touches;
- training compliance of one employee for one activity group.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.mutations import MutationDispatcher
from app.services.realtime import ChangeBroadcaster
from app.services.task_service import TaskService
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.automation")

AUDIT_FINDING_DUE_DAYS = 7


@dataclass
class AutomationOutcome:
    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    notices: list[str] = field(default_factory=list)


class HSEAutomationService:
    def __init__(self, db: AsyncSession, ctx: TenantContext, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.ctx = ctx
        self.broadcaster = broadcaster
        self.fetcher = EntityFetcher(db, ctx)
        self.dispatcher = MutationDispatcher(db, ctx, broadcaster)

    async def _assigned_employees(self, activity_group_ids: list[str]) -> list[str]:
        if not activity_group_ids:
            return []
        rows = await self.fetcher.fetch(
            "employee_activity_assignments",
            [Filter("activity_group_id", "in", activity_group_ids)],
            order_by="created_at",
            ascending=True,
        )
        return list(dict.fromkeys(row["employee_id"] for row in rows))

    async def assign_training_from_risk(self, risk_assessment_id: str) -> AutomationOutcome:
        risk = await self.fetcher.get("risk_assessments", risk_assessment_id)
        group_id = risk["activity_group_id"]
        if not group_id:
            return AutomationOutcome(False, "No activity linked")

        requirements = await self.fetcher.fetch(
            "activity_training_requirements", [Filter("activity_group_id", "eq", group_id)],
        )
        if not requirements:
            return AutomationOutcome(False, "No training requirements found")

        employee_ids = await self._assigned_employees([group_id])
        if not employee_ids:
            return AutomationOutcome(False, "No employees assigned")

        type_ids = list(dict.fromkeys(r["training_type_id"] for r in requirements))
        existing = await self.fetcher.fetch(
            "training_records",
            [Filter("employee_id", "in", employee_ids), Filter("training_type_id", "in", type_ids)],
        )
        taken = {(r["employee_id"], r["training_type_id"]) for r in existing}

        created: list[dict[str, Any]] = []
        notices: list[str] = []
        for employee_id in employee_ids:
            for type_id in type_ids:
                if (employee_id, type_id) in taken:
                    continue
                result = await self.dispatcher.insert(
                    "training_records",
                    {
                        "employee_id": employee_id,
                        "training_type_id": type_id,
                        "status": "required",
                        "notes": f"Auto-assigned from risk assessment: {risk['title']}",
                    },
                )
                created.append(result.record)
                notices += result.notices

        logger.info(
            "Risk assessment %s: %d training record(s) created for %d employee(s)",
            risk_assessment_id, len(created), len(employee_ids),
        )
        return AutomationOutcome(
            True,
            f"Assigned {len(type_ids)} training types to {len(employee_ids)} employees",
            data={"records_created": len(created), "skipped": len(employee_ids) * len(type_ids) - len(created)},
            notices=notices,
        )

    async def create_task_from_audit_finding(
        self, audit_id: str, finding: str, assigned_to: Optional[str] = None
    ) -> AutomationOutcome:
        audit = await self.fetcher.get("audits", audit_id)
        priority = "high" if audit["status"] == "completed" else "medium"
        result = await TaskService(self.db, self.ctx, self.broadcaster).create_task(
            title=f"Audit Finding: {audit['title']}",
            description=finding,
            assigned_to=assigned_to or audit["auditor_id"],
            priority=priority,
            due_date=date.today() + timedelta(days=AUDIT_FINDING_DUE_DAYS),
            audit_id=audit_id,
        )
        return AutomationOutcome(
            True,
            "Task created successfully from audit finding",
            data={"task": result.record},
            notices=result.notices,
        )

    async def assign_measure(self, measure_id: str) -> AutomationOutcome:
        """
        Make the first employee working on a related activity responsible for
        the measure. Related activities come from the linked risk assessment's
        activity group and from the affected employee of the linked incident.
        """
        measure = await self.fetcher.get("measures", measure_id)
        group_ids: list[str] = []
        if measure["risk_assessment_id"]:
            risk = await self.fetcher.get("risk_assessments", measure["risk_assessment_id"])
            if risk["activity_group_id"]:
                group_ids.append(risk["activity_group_id"])
        if measure["incident_id"]:
            incident = await self.fetcher.get("incidents", measure["incident_id"])
            if incident["affected_employee_id"]:
                rows = await self.fetcher.fetch(
                    "employee_activity_assignments",
                    [Filter("employee_id", "eq", incident["affected_employee_id"])],
                )
                group_ids += [row["activity_group_id"] for row in rows]
        group_ids = list(dict.fromkeys(group_ids))
        if not group_ids:
            return AutomationOutcome(False, "No activities found to link measure to")

        employee_ids = await self._assigned_employees(group_ids)
        if not employee_ids:
            return AutomationOutcome(False, "No employees assigned to related activities")

        result = await self.dispatcher.update("measures", measure_id, {"responsible_person_id": employee_ids[0]})
        return AutomationOutcome(
            True,
            f"Measure assigned to {len(employee_ids)} employee(s)",
            data={"employee_count": len(employee_ids), "responsible_employee": employee_ids[0]},
            notices=result.notices,
        )

    async def check_training_compliance(self, employee_id: str, activity_group_id: str) -> dict[str, Any]:
        await self.fetcher.get("employees", employee_id)
        requirements = await self.fetcher.fetch(
            "activity_training_requirements", [Filter("activity_group_id", "eq", activity_group_id)],
        )
        if not requirements:
            return {"compliant": True, "missing_training": [], "completed_count": 0, "required_count": 0}

        completed = await self.fetcher.fetch(
            "training_records",
            [Filter("employee_id", "eq", employee_id), Filter("status", "eq", "completed")],
        )
        completed_types = {r["training_type_id"] for r in completed}
        mandatory = [r for r in requirements if r["is_mandatory"]]
        missing = [r["training_type_id"] for r in mandatory if r["training_type_id"] not in completed_types]
        return {
            "compliant": not missing,
            "missing_training": missing,
            "completed_count": len(completed),
            "required_count": len(mandatory),
        }
