"""
Team messaging and the notification bell.

Chat messages are stored as notifications with category ``message`` and the
channel they were posted to, so one table feeds both the chat view and the
realtime channel.
"""

import logging
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.models.notification import Notification
from app.services.entity_fetcher import EntityFetcher, Filter
from app.services.mutations import MutationDispatcher, MutationResult
from app.services.realtime import ChangeBroadcaster
from app.services.tenant_context import TenantContext

logger = logging.getLogger("hse.messaging")

COMPANY_CHANNELS = ("general", "safety", "announcements")
DIRECT_CHANNEL_PREFIX = "dm-"
MESSAGE_CATEGORY = "message"


class MessagingService:
    def __init__(self, db: AsyncSession, ctx: TenantContext, broadcaster: Optional[ChangeBroadcaster] = None):
        self.db = db
        self.ctx = ctx
        self.fetcher = EntityFetcher(db, ctx)
        self.dispatcher = MutationDispatcher(db, ctx, broadcaster)

    async def list_channels(self) -> list[dict[str, Any]]:
        channels = [{"id": name, "name": name, "type": "company"} for name in COMPANY_CHANNELS]
        employees = await self.fetcher.fetch(
            "employees",
            [Filter("is_active", "eq", True)],
            order_by="full_name",
            limit=settings.DIRECT_CHANNEL_LIMIT,
        )
        channels.extend(
            {"id": f"{DIRECT_CHANNEL_PREFIX}{e['id']}", "name": e["full_name"], "type": "direct"}
            for e in employees
        )
        return channels

    async def _check_channel(self, channel: str) -> None:
        if channel in COMPANY_CHANNELS:
            return
        if channel.startswith(DIRECT_CHANNEL_PREFIX):
            await self.fetcher.get("employees", channel[len(DIRECT_CHANNEL_PREFIX):])
            return
        raise NotFoundError("channels", channel)

    async def list_messages(self, channel: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Newest first."""
        await self._check_channel(channel)
        return await self.fetcher.fetch(
            "notifications",
            [Filter("category", "eq", MESSAGE_CATEGORY), Filter("channel", "eq", channel)],
            order_by="created_at",
            ascending=False,
            limit=min(limit or settings.MESSAGE_LIMIT, settings.MESSAGE_LIMIT),
        )

    async def send_message(self, channel: str, content: str) -> MutationResult:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message cannot be empty")
        await self._check_channel(channel)
        result = await self.dispatcher.insert(
            "notifications",
            {
                "user_id": self.ctx.user_id,
                "sender_name": self.ctx.actor_name,
                "category": MESSAGE_CATEGORY,
                "type": "info",
                "title": f"Message in {channel}",
                "message": content,
                "channel": channel,
            },
        )
        logger.debug("Message %s posted to %s", result.record["id"], channel)
        return result

    async def list_notifications(self, limit: Optional[int] = None) -> dict[str, Any]:
        items = await self.fetcher.fetch(
            "notifications",
            order_by="created_at",
            ascending=False,
            limit=min(limit or settings.NOTIFICATION_LIMIT, settings.NOTIFICATION_LIMIT),
        )
        unread = await self.fetcher.count("notifications", [Filter("is_read", "eq", False)])
        return {"items": items, "unread_count": unread}

    async def mark_read(self, notification_id: str) -> MutationResult:
        return await self.dispatcher.update("notifications", notification_id, {"is_read": True})

    async def mark_all_read(self) -> int:
        company_id = self.ctx.require_company()
        result = await self.db.execute(
            update(Notification)
            .where(Notification.company_id == company_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info("Marked %d notification(s) read for company %s", result.rowcount, company_id)
        return result.rowcount
