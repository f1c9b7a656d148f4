"""
Document library: files in the storage bucket plus their metadata rows.

Upload stores the bytes first and removes them again if the metadata insert
fails. Delete removes the metadata first, so a file whose removal fails is
orphaned but no longer reachable through the API.
"""

from datetime import date
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import HSEError, StorageError, ValidationError
from app.core.logging_config import get_logger
from app.core.security_utils import sanitize_filename
from app.models.document import DOCUMENT_CATEGORIES
from app.services.activity_log import ActivityEvent
from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.mutations import MutationDispatcher, MutationResult
from app.services.realtime import ChangeBroadcaster
from app.services.storage import LocalStorageBackend, build_storage_path, get_storage
from app.services.tenant_context import TenantContext


ORPHANED_FILE = "document removed but its file could not be deleted"


class DocumentService:
    def __init__(
        self,
        db: AsyncSession,
        ctx: TenantContext,
        broadcaster: Optional[ChangeBroadcaster] = None,
        storage: Optional[LocalStorageBackend] = None,
    ):
        self.ctx = ctx
        self.logger = get_logger("hse.documents", company_id=ctx.company_id, user_id=ctx.user_id)
        self.storage = storage or get_storage()
        self.fetcher = EntityFetcher(db, ctx)
        self.dispatcher = MutationDispatcher(db, ctx, broadcaster)

    async def list_documents(
        self, category: Optional[str] = None, employee_id: Optional[str] = None
    ) -> list[dict[str, Any]]:
        filters = []
        if category:
            filters.append(Filter("category", "eq", category))
        if employee_id:
            filters.append(Filter("employee_id", "eq", employee_id))
        return await self.fetcher.fetch("documents", filters, order_by="created_at", ascending=False)

    async def get_document(self, document_id: str) -> dict[str, Any]:
        return await self.fetcher.get("documents", document_id)

    async def upload_document(
        self,
        *,
        title: str,
        category: str,
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
        description: Optional[str] = None,
        employee_id: Optional[str] = None,
        expiry_date: Optional[date] = None,
        is_public: bool = False,
        tags: Optional[list[str]] = None,
    ) -> MutationResult:
        if category not in DOCUMENT_CATEGORIES:
            raise ValidationError(f"Unknown document category '{category}'", details={"allowed": list(DOCUMENT_CATEGORIES)})
        if not data:
            raise ValidationError("File is empty")
        if len(data) > settings.MAX_UPLOAD_SIZE_BYTES:
            raise ValidationError(
                f"File exceeds the {settings.MAX_UPLOAD_SIZE_MB} MB upload limit",
                details={"size": len(data), "max_size": settings.MAX_UPLOAD_SIZE_BYTES},
            )
        if employee_id:
            await self.fetcher.get("employees", employee_id)

        company_id = self.ctx.require_company()
        safe_name = sanitize_filename(filename)
        path = build_storage_path(company_id, category, safe_name)
        stored = self.storage.upload(path, data, content_type=content_type)

        activity = None
        if employee_id:
            activity = ActivityEvent(
                employee_id,
                "Document uploaded",
                "upload",
                details=title or safe_name,
                metadata={"category": category, "file_name": safe_name},
            )
        try:
            result = await self.dispatcher.insert(
                "documents",
                {
                    "title": (title or "").strip() or safe_name,
                    "description": description,
                    "category": category,
                    "file_name": safe_name,
                    "file_path": stored.path,
                    "file_size": stored.size,
                    "mime_type": content_type,
                    "uploaded_by": self.ctx.user_id,
                    "employee_id": employee_id,
                    "expiry_date": expiry_date,
                    "is_public": is_public,
                    "tags": list(tags or []),
                },
                activity=activity,
            )
        except HSEError:
            self.storage.remove([stored.path])
            self.logger.warning("Metadata insert failed, removed uploaded file %s", stored.path)
            raise
        self.logger.info("Document %s uploaded", result.record["id"])
        return result

    async def download_document(self, document_id: str) -> tuple[dict[str, Any], bytes]:
        document = await self.fetcher.get("documents", document_id)
        return document, self.storage.download(document["file_path"])

    async def get_public_url(self, document_id: str) -> str:
        document = await self.fetcher.get("documents", document_id)
        return self.storage.get_public_url(document["file_path"])

    async def delete_document(self, document_id: str, confirm: bool = False) -> MutationResult:
        document = await self.fetcher.get("documents", document_id)
        activity = None
        if document["employee_id"]:
            activity = ActivityEvent(document["employee_id"], "Document deleted", "delete", details=document["title"])
        result = await self.dispatcher.delete("documents", document_id, confirm=confirm, activity=activity)
        try:
            self.storage.remove([document["file_path"]])
        except StorageError as exc:
            self.logger.error("Orphaned file %s after deleting document %s: %s", document["file_path"], document_id, exc.message)
            result.notices.append(ORPHANED_FILE)
        return result
