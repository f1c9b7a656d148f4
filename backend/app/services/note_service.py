"""
Notes on employee profiles, with threaded replies and @mention fan-out.
"""

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.services.activity_log import ActivityEvent
from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.mentions import assignment_suffix, extract_mentions
from app.services.mutations import MutationDispatcher, MutationResult
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.notes")

NO_MENTION = "Please mention at least one employee using @"


def to_note_view(note: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": note["id"],
        "content": note["content"],
        "author": note["author_name"],
        "author_id": note["author_id"],
        "date": note["created_at"],
        "replies": [],
    }


class NoteService:
    def __init__(self, db: AsyncSession, ctx: TenantContext, broadcaster: Optional[ChangeBroadcaster] = None):
        self.ctx = ctx
        self.fetcher = EntityFetcher(db, ctx)
        self.dispatcher = MutationDispatcher(db, ctx, broadcaster)

    async def list_notes(self, employee_id: str) -> list[dict[str, Any]]:
        """Top-level notes oldest first, each with its replies (also oldest first)."""
        await self.fetcher.get("employees", employee_id)
        rows = await self.fetcher.fetch(
            "employee_notes",
            [Filter("employee_id", "eq", employee_id)],
            order_by="created_at",
            ascending=True,
        )
        views = {row["id"]: to_note_view(row) for row in rows}
        threads: list[dict[str, Any]] = []
        for row in rows:
            parent = views.get(row["parent_reply_id"]) if row["parent_reply_id"] else None
            if parent is not None:
                parent["replies"].append(views[row["id"]])
            elif not row["parent_reply_id"]:
                threads.append(views[row["id"]])
        return threads

    async def add_note(self, employee_id: str, content: str, parent_reply_id: Optional[str] = None) -> MutationResult:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Note cannot be empty")
        await self.fetcher.get("employees", employee_id)
        return await self.dispatcher.insert(
            "employee_notes",
            {
                "employee_id": employee_id,
                "author_id": self.ctx.user_id,
                "author_name": self.ctx.actor_name,
                "content": content,
                "parent_reply_id": parent_reply_id,
            },
            activity=ActivityEvent(
                employee_id=employee_id,
                action="Replied to note" if parent_reply_id else "Added note",
                action_type="create",
                details=content[:200],
            ),
        )

    async def reply_to_note(self, note_id: str, content: str) -> MutationResult:
        parent = await self.fetcher.get("employee_notes", note_id)
        # Replies always attach to the thread's top-level note
        root_id = parent["parent_reply_id"] or parent["id"]
        return await self.add_note(parent["employee_id"], content, parent_reply_id=root_id)

    async def delete_note(self, note_id: str) -> MutationResult:
        note = await self.fetcher.get("employee_notes", note_id)
        return await self.dispatcher.delete(
            "employee_notes",
            note_id,
            activity=ActivityEvent(note["employee_id"], "Deleted note", "delete", details=note["content"][:200]),
        )

    async def add_note_for_mentions(self, text: str) -> list[MutationResult]:
        """
        Write one note per employee mentioned as ``@Full Name``. The mentions
        are stripped from the text and replaced by an ``[Assigned to: ...]`` line.
        """
        candidates = await self.fetcher.fetch("employees", [Filter("is_active", "eq", True)])
        mentioned, clean = extract_mentions(text or "", candidates)
        if not mentioned:
            raise ValidationError(NO_MENTION)
        if not clean:
            raise ValidationError("Note cannot be empty")
        content = f"{clean}\n\n{assignment_suffix(mentioned)}"
        results = [await self.add_note(employee["id"], content) for employee in mentioned]
        logger.info("Note added to %d employee(s) in company %s", len(results), self.ctx.company_id)
        return results
