import asyncio
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_broadcaster, get_db, get_db_session, require_tenant, user_from_token
from app.core.exceptions import HSEError
from app.schemas.common import MutationResponse
from app.schemas.message import Channel, MarkAllReadResponse, MessageCreate, NotificationList
from app.services.messaging_service import MESSAGE_CATEGORY, MessagingService
from app.services.realtime import ChangeBroadcaster, Subscription
from app.services.tenant_context import TenantContext, resolve_tenant_context

logger = logging.getLogger("hse.messages")

router = APIRouter()


def _messaging(
    db: AsyncSession = Depends(get_db),
    ctx: TenantContext = Depends(require_tenant),
    broadcaster: ChangeBroadcaster = Depends(get_broadcaster),
) -> MessagingService:
    return MessagingService(db, ctx, broadcaster)


@router.get("/channels", response_model=List[Channel])
async def list_channels(messaging: MessagingService = Depends(_messaging)) -> Any:
    return await messaging.list_channels()


@router.get("/channels/{channel}")
async def list_messages(
    channel: str,
    limit: Optional[int] = Query(None, ge=1),
    messaging: MessagingService = Depends(_messaging),
) -> List[dict[str, Any]]:
    """Latest messages of a channel, newest first."""
    return await messaging.list_messages(channel, limit)


@router.post("/channels/{channel}", response_model=MutationResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    channel: str, payload: MessageCreate, messaging: MessagingService = Depends(_messaging)
) -> Any:
    return MutationResponse.from_result(await messaging.send_message(channel, payload.content))


@router.get("/notifications", response_model=NotificationList)
async def list_notifications(messaging: MessagingService = Depends(_messaging)) -> Any:
    return await messaging.list_notifications()


@router.post("/notifications/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(messaging: MessagingService = Depends(_messaging)) -> Any:
    return MarkAllReadResponse(updated=await messaging.mark_all_read())


@router.post("/notifications/{notification_id}/read", response_model=MutationResponse)
async def mark_read(notification_id: str, messaging: MessagingService = Depends(_messaging)) -> Any:
    return MutationResponse.from_result(await messaging.mark_read(notification_id))


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json({"type": "event", "change": event.to_message()})


async def _receive_messages(websocket: WebSocket, messaging: MessagingService, channel: str) -> None:
    while True:
        data = await websocket.receive_json()
        content = data.get("content") if isinstance(data, dict) else None
        try:
            await messaging.send_message(channel, content or "")
        except HSEError as exc:
            await websocket.send_json({"type": "error", "error": exc.message, "code": exc.code})


@router.websocket("/ws")
async def messages_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT access token"),
    channel: str = Query("general"),
):
    """
    Live view of one channel.

    Connect with /ws?token=<jwt>&channel=<channel>. The server first sends
    {"type": "initial", "messages": [...]} (newest first), then one
    {"type": "event", "change": {"table", "type", "record"}} per change.
    Messages the client already received in the initial page are not sent
    again. Send {"content": "..."} to post to the channel.
    """
    await websocket.accept()
    broadcaster = get_broadcaster()
    async with get_db_session() as db:
        try:
            user = await user_from_token(db, token)
            ctx = await resolve_tenant_context(db, user)
            company_id = ctx.require_company()
            messaging = MessagingService(db, ctx, broadcaster)
            subscription = broadcaster.subscribe(
                "notifications", company_id, where={"category": MESSAGE_CATEGORY, "channel": channel},
            )
        except HSEError as exc:
            await websocket.close(code=4001 if exc.status_code == 401 else 4003, reason=exc.message)
            return

        try:
            initial = await messaging.list_messages(channel)
            subscription.prime(m["id"] for m in initial)
            await websocket.send_json(jsonable_encoder({"type": "initial", "messages": initial}))

            tasks = [
                asyncio.create_task(_forward_events(websocket, subscription)),
                asyncio.create_task(_receive_messages(websocket, messaging, channel)),
            ]
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    raise exc
        except WebSocketDisconnect:
            logger.debug("Client left channel %s of company %s", channel, company_id)
        except HSEError as exc:
            await websocket.close(code=4004, reason=exc.message)
        finally:
            subscription.close()
