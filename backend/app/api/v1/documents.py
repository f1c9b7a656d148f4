from datetime import date
from typing import Any, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_db, require_tenant
from app.core.config import settings
from app.core.rate_limiter import RateLimits, limiter
from app.models.document import DOCUMENT_CATEGORIES
from app.schemas.common import MutationResponse
from app.schemas.document import DocumentCategories, PublicUrl
from app.services.document_service import DocumentService
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

router = APIRouter()


def _documents(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> DocumentService:
    return DocumentService(db, ctx, broadcaster)


@router.get("/categories", response_model=DocumentCategories)
async def list_categories() -> Any:
    return DocumentCategories(categories=list(DOCUMENT_CATEGORIES))


@router.get("/")
async def list_documents(
    category: Optional[str] = None,
    employee_id: Optional[str] = None,
    documents: DocumentService = Depends(_documents),
) -> List[dict[str, Any]]:
    """Newest first."""
    return await documents.list_documents(category=category, employee_id=employee_id)


@router.post("/", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RateLimits.FILE_UPLOAD)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    title: str = Form(""),
    category: str = Form(...),
    description: Optional[str] = Form(None),
    employee_id: Optional[str] = Form(None),
    expiry_date: Optional[date] = Form(None),
    is_public: bool = Form(False),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    documents: DocumentService = Depends(_documents),
) -> Any:
    # One byte over the limit is enough to reject the file
    content = await file.read(settings.MAX_UPLOAD_SIZE_BYTES + 1)
    result = await documents.upload_document(
        title=title,
        category=category,
        filename=file.filename or "",
        data=content,
        content_type=file.content_type,
        description=description,
        employee_id=employee_id or None,
        expiry_date=expiry_date,
        is_public=is_public,
        tags=[t.strip() for t in (tags or "").split(",") if t.strip()],
    )
    return MutationResponse.from_result(result)


@router.get("/{document_id}")
async def get_document(document_id: str, documents: DocumentService = Depends(_documents)) -> dict[str, Any]:
    return await documents.get_document(document_id)


@router.get("/{document_id}/download")
async def download_document(document_id: str, documents: DocumentService = Depends(_documents)) -> Response:
    document, content = await documents.download_document(document_id)
    return Response(
        content=content,
        media_type=document["mime_type"] or "application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(document['file_name'])}",
            "Cache-Control": f"private, max-age={settings.STORAGE_CACHE_CONTROL}",
        },
    )


@router.get("/{document_id}/url", response_model=PublicUrl)
async def get_public_url(document_id: str, documents: DocumentService = Depends(_documents)) -> Any:
    return PublicUrl(document_id=document_id, url=await documents.get_public_url(document_id))


@router.delete("/{document_id}", response_model=MutationResponse)
async def delete_document(
    document_id: str,
    confirm: bool = False,
    documents: DocumentService = Depends(_documents),
) -> Any:
    """Requires ``confirm=true``. A file left behind in storage is reported in ``notices``."""
    return MutationResponse.from_result(await documents.delete_document(document_id, confirm=confirm))
