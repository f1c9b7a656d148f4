from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_db, require_tenant
from app.schemas.common import BulkMutationResponse, MutationResponse
from app.schemas.employee import MentionText
from app.schemas.task import TaskCreate, TaskStatusChange, TaskToggle, TaskUpdate
from app.services.realtime import ChangeBroadcaster
from app.services.task_service import TaskService
from app.services.tenant_context import TenantContext

router = APIRouter()


def _tasks(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> TaskService:
    return TaskService(db, ctx, broadcaster)


@router.get("/")
async def list_tasks(
    status_filter: str = Query("all", alias="filter"),
    assigned_to: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    tasks: TaskService = Depends(_tasks),
) -> List[dict[str, Any]]:
    """Tasks by due date, undated ones last."""
    return await tasks.list_tasks(status_filter, assigned_to=assigned_to, limit=limit)


@router.post("/", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def create_task(payload: TaskCreate, tasks: TaskService = Depends(_tasks)) -> Any:
    return MutationResponse.from_result(await tasks.create_task(**payload.model_dump()))


@router.post("/from-mentions", response_model=BulkMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_tasks_from_mentions(payload: MentionText, tasks: TaskService = Depends(_tasks)) -> Any:
    """One task per employee mentioned with ``@Full Name``."""
    results = await tasks.create_tasks_from_mentions(
        payload.text, due_date=payload.due_date, description=payload.description,
    )
    return BulkMutationResponse(
        records=[r.record for r in results],
        notices=sorted({n for r in results for n in r.notices}),
    )


@router.patch("/{task_id}", response_model=MutationResponse)
async def update_task(task_id: str, payload: TaskUpdate, tasks: TaskService = Depends(_tasks)) -> Any:
    return MutationResponse.from_result(await tasks.update_task(task_id, payload.model_dump(exclude_unset=True)))


@router.put("/{task_id}/status", response_model=MutationResponse)
async def set_task_status(task_id: str, payload: TaskStatusChange, tasks: TaskService = Depends(_tasks)) -> Any:
    return MutationResponse.from_result(await tasks.set_task_status(task_id, payload.status, payload.issued_at))


@router.post("/{task_id}/toggle", response_model=MutationResponse)
async def toggle_task_status(
    task_id: str,
    payload: Optional[TaskToggle] = None,
    tasks: TaskService = Depends(_tasks),
) -> Any:
    if payload is None:
        return MutationResponse.from_result(await tasks.toggle_task_status(task_id))
    return MutationResponse.from_result(
        await tasks.toggle_task_status(task_id, payload.issued_at, seen_status=payload.seen_status)
    )


@router.delete("/{task_id}", response_model=MutationResponse)
async def delete_task(task_id: str, tasks: TaskService = Depends(_tasks)) -> Any:
    return MutationResponse.from_result(await tasks.delete_task(task_id))
