from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.deps import get_broadcaster, get_db, get_session_factory, require_tenant
from app.schemas.common import BulkMutationResponse, MutationResponse
from app.schemas.dashboard import EmployeeProfileView
from app.schemas.employee import (
    EmployeeCreate,
    EmployeeFieldUpdate,
    MentionText,
    NoteCreate,
    NoteView,
    ProfileFieldRequest,
    TagRequest,
)
from app.services.activity_log import ActivityLogWriter
from app.services.dashboard_service import DashboardService
from app.services.employee_service import EmployeeService
from app.services.note_service import NoteService
from app.services.realtime import ChangeBroadcaster
from app.services.task_service import TaskService
from app.services.tenant_context import TenantContext

router = APIRouter()


def _employees(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> EmployeeService:
    return EmployeeService(db, ctx, broadcaster)


def _notes(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> NoteService:
    return NoteService(db, ctx, broadcaster)


# Note routes addressed by note id come first so they never shadow /{employee_id}/...

@router.post("/notes/mentions", response_model=BulkMutationResponse, status_code=status.HTTP_201_CREATED)
async def add_note_for_mentions(payload: MentionText, notes: NoteService = Depends(_notes)) -> Any:
    """Add the text as a note to every employee mentioned with ``@Full Name``."""
    results = await notes.add_note_for_mentions(payload.text)
    return BulkMutationResponse(
        records=[r.record for r in results],
        notices=sorted({n for r in results for n in r.notices}),
    )


@router.post("/notes/{note_id}/replies", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def reply_to_note(note_id: str, payload: NoteCreate, notes: NoteService = Depends(_notes)) -> Any:
    return MutationResponse.from_result(await notes.reply_to_note(note_id, payload.content))


@router.delete("/notes/{note_id}", response_model=MutationResponse)
async def delete_note(note_id: str, notes: NoteService = Depends(_notes)) -> Any:
    return MutationResponse.from_result(await notes.delete_note(note_id))


@router.get("/")
async def list_employees(
    active_only: bool = False,
    search: Optional[str] = Query(None, max_length=100),
    employees: EmployeeService = Depends(_employees),
) -> List[dict[str, Any]]:
    return await employees.list_employees(active_only=active_only, search=search)


@router.post("/", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def create_employee(payload: EmployeeCreate, employees: EmployeeService = Depends(_employees)) -> Any:
    return MutationResponse.from_result(await employees.create_employee(payload))


@router.get("/{employee_id}")
async def get_employee(employee_id: str, employees: EmployeeService = Depends(_employees)) -> dict[str, Any]:
    return await employees.get_employee(employee_id)


@router.get("/{employee_id}/profile", response_model=EmployeeProfileView)
async def get_employee_profile(
    employee_id: str,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    ctx: TenantContext = Depends(require_tenant),
) -> Any:
    """Everything the profile page shows, loaded in parallel."""
    return await DashboardService(session_factory, ctx).get_employee_profile(employee_id)


@router.patch("/{employee_id}", response_model=MutationResponse)
async def update_employee_field(
    employee_id: str,
    payload: EmployeeFieldUpdate,
    employees: EmployeeService = Depends(_employees),
) -> Any:
    return MutationResponse.from_result(await employees.update_field(employee_id, payload.field, payload.value))


@router.post("/{employee_id}/deactivate", response_model=MutationResponse)
async def deactivate_employee(employee_id: str, employees: EmployeeService = Depends(_employees)) -> Any:
    return MutationResponse.from_result(await employees.set_active(employee_id, False))


@router.post("/{employee_id}/activate", response_model=MutationResponse)
async def activate_employee(employee_id: str, employees: EmployeeService = Depends(_employees)) -> Any:
    return MutationResponse.from_result(await employees.set_active(employee_id, True))


@router.post("/{employee_id}/tags", response_model=MutationResponse)
async def add_tag(employee_id: str, payload: TagRequest, employees: EmployeeService = Depends(_employees)) -> Any:
    return MutationResponse.from_result(await employees.add_tag(employee_id, payload.tag))


@router.delete("/{employee_id}/tags/{tag}", response_model=MutationResponse)
async def remove_tag(employee_id: str, tag: str, employees: EmployeeService = Depends(_employees)) -> Any:
    return MutationResponse.from_result(await employees.remove_tag(employee_id, tag))


@router.put("/{employee_id}/profile-fields", response_model=MutationResponse)
async def set_profile_field(
    employee_id: str,
    payload: ProfileFieldRequest,
    employees: EmployeeService = Depends(_employees),
) -> Any:
    result = await employees.set_profile_field(
        employee_id, payload.label, payload.value, field_type=payload.type, field_id=payload.id,
    )
    return MutationResponse.from_result(result)


@router.delete("/{employee_id}/profile-fields/{field_id}", response_model=MutationResponse)
async def remove_profile_field(
    employee_id: str, field_id: str, employees: EmployeeService = Depends(_employees)
) -> Any:
    return MutationResponse.from_result(await employees.remove_profile_field(employee_id, field_id))


@router.get("/{employee_id}/notes", response_model=List[NoteView])
async def list_notes(employee_id: str, notes: NoteService = Depends(_notes)) -> Any:
    return await notes.list_notes(employee_id)


@router.post("/{employee_id}/notes", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def add_note(employee_id: str, payload: NoteCreate, notes: NoteService = Depends(_notes)) -> Any:
    return MutationResponse.from_result(await notes.add_note(employee_id, payload.content))


@router.get("/{employee_id}/activity")
async def list_activity(
    employee_id: str,
    limit: Optional[int] = Query(None, ge=1),
    employees: EmployeeService = Depends(_employees),
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
) -> List[dict[str, Any]]:
    """Latest activity entries, newest first."""
    await employees.get_employee(employee_id)
    return await ActivityLogWriter(db, ctx).recent(employee_id, limit)


@router.get("/{employee_id}/tasks")
async def list_employee_tasks(
    employee_id: str,
    status_filter: str = Query("all", alias="filter"),
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
) -> List[dict[str, Any]]:
    return await TaskService(db, ctx).list_tasks(status_filter, assigned_to=employee_id)
