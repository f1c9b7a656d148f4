from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_db, require_tenant
from app.schemas.automation import AuditFindingRequest, AutomationResponse, TrainingCompliance
from app.services.hse_automation import HSEAutomationService
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

router = APIRouter()


def _automation(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> HSEAutomationService:
    return HSEAutomationService(db, ctx, broadcaster)


@router.post("/risk-assessments/{risk_assessment_id}/assign-training", response_model=AutomationResponse)
async def assign_training_from_risk(
    risk_assessment_id: str, automation: HSEAutomationService = Depends(_automation)
) -> Any:
    return AutomationResponse.from_outcome(await automation.assign_training_from_risk(risk_assessment_id))


@router.post("/audits/{audit_id}/findings", response_model=AutomationResponse)
async def create_task_from_audit_finding(
    audit_id: str,
    payload: AuditFindingRequest,
    automation: HSEAutomationService = Depends(_automation),
) -> Any:
    outcome = await automation.create_task_from_audit_finding(audit_id, payload.finding, payload.assigned_to)
    return AutomationResponse.from_outcome(outcome)


@router.post("/measures/{measure_id}/assign", response_model=AutomationResponse)
async def assign_measure(measure_id: str, automation: HSEAutomationService = Depends(_automation)) -> Any:
    return AutomationResponse.from_outcome(await automation.assign_measure(measure_id))


@router.get("/training-compliance", response_model=TrainingCompliance)
async def check_training_compliance(
    employee_id: str,
    activity_group_id: str,
    automation: HSEAutomationService = Depends(_automation),
) -> Any:
    return await automation.check_training_compliance(employee_id, activity_group_id)
