"""
Generic CRUD over the registered collections, for the plain list/detail
pages (audits, measures, incidents, investigations, risk assessments,
training). Filters use ``field=op.value``, e.g.
``GET /collections/measures?status=neq.completed&due_date=lt.2024-06-01&order=due_date``.
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_db, require_tenant
from app.core.exceptions import PermissionDeniedError
from app.schemas.common import MutationResponse
from app.services.entity_fetcher import EntityFetcher, get_collection, parse_filters
from app.services.mutations import MutationDispatcher
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

router = APIRouter()


def _split(value: Optional[str]) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def _dispatcher(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> MutationDispatcher:
    return MutationDispatcher(db, ctx, broadcaster)


def _fetcher(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
) -> EntityFetcher:
    return EntityFetcher(db, ctx)


@router.get("/{collection}")
async def list_records(
    collection: str,
    request: Request,
    order: Optional[str] = None,
    ascending: Optional[bool] = None,
    limit: Optional[int] = Query(None, ge=0, le=1000),
    embed: Optional[str] = None,
    fetcher: EntityFetcher = Depends(_fetcher),
) -> List[dict[str, Any]]:
    filters = parse_filters(request.query_params.multi_items())
    return await fetcher.fetch(
        collection, filters, order_by=order, ascending=ascending, limit=limit, embed=_split(embed),
    )


@router.get("/{collection}/{record_id}")
async def get_record(
    collection: str,
    record_id: str,
    embed: Optional[str] = None,
    fetcher: EntityFetcher = Depends(_fetcher),
) -> dict[str, Any]:
    return await fetcher.get(collection, record_id, embed=_split(embed))


@router.post("/{collection}", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def insert_record(
    collection: str,
    values: dict[str, Any] = Body(...),
    dispatcher: MutationDispatcher = Depends(_dispatcher),
) -> Any:
    if not get_collection(collection).insertable:
        raise PermissionDeniedError(f"Records cannot be created in {collection} through this endpoint")
    return MutationResponse.from_result(await dispatcher.insert(collection, values))


@router.patch("/{collection}/{record_id}", response_model=MutationResponse)
async def update_record(
    collection: str,
    record_id: str,
    values: dict[str, Any] = Body(...),
    dispatcher: MutationDispatcher = Depends(_dispatcher),
) -> Any:
    if not get_collection(collection).updatable:
        raise PermissionDeniedError(f"Records of {collection} cannot be changed")
    return MutationResponse.from_result(await dispatcher.update(collection, record_id, values))


@router.delete("/{collection}/{record_id}", response_model=MutationResponse)
async def delete_record(
    collection: str,
    record_id: str,
    confirm: bool = False,
    dispatcher: MutationDispatcher = Depends(_dispatcher),
) -> Any:
    if not get_collection(collection).deletable:
        raise PermissionDeniedError(f"Records of {collection} cannot be deleted")
    return MutationResponse.from_result(await dispatcher.delete(collection, record_id, confirm=confirm))
