from typing import Any, List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_db, require_tenant
from app.schemas.common import MutationResponse
from app.schemas.health import CheckupCreate, CheckupStatusChange, CheckupUpdate
from app.services.health_checkup_service import HealthCheckupService
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

router = APIRouter()


def _checkups(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> HealthCheckupService:
    return HealthCheckupService(db, ctx, broadcaster)


@router.get("/")
async def list_checkups(
    employee_id: str = Query(...),
    checkups: HealthCheckupService = Depends(_checkups),
) -> List[dict[str, Any]]:
    return await checkups.list_for_employee(employee_id)


@router.post("/", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def create_checkup(payload: CheckupCreate, checkups: HealthCheckupService = Depends(_checkups)) -> Any:
    return MutationResponse.from_result(await checkups.create_checkup(**payload.model_dump()))


@router.patch("/{checkup_id}", response_model=MutationResponse)
async def update_checkup(
    checkup_id: str, payload: CheckupUpdate, checkups: HealthCheckupService = Depends(_checkups)
) -> Any:
    return MutationResponse.from_result(await checkups.update_checkup(checkup_id, payload.model_dump(exclude_unset=True)))


@router.put("/{checkup_id}/status", response_model=MutationResponse)
async def change_checkup_status(
    checkup_id: str, payload: CheckupStatusChange, checkups: HealthCheckupService = Depends(_checkups)
) -> Any:
    """
    Move a checkup forward. Completing it schedules the next one; the new
    checkup is returned in ``follow_ups``.
    """
    result = await checkups.change_status(checkup_id, payload.status, payload.completion_date)
    return MutationResponse.from_result(result)


@router.delete("/{checkup_id}", response_model=MutationResponse)
async def delete_checkup(
    checkup_id: str,
    confirm: bool = False,
    checkups: HealthCheckupService = Depends(_checkups),
) -> Any:
    return MutationResponse.from_result(await checkups.delete_checkup(checkup_id, confirm=confirm))
