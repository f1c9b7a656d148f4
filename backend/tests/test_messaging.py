"""
Tests for app/services/messaging_service.py - channels, messages and the
notification bell.
"""
import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.messaging_service import MESSAGE_CATEGORY, MessagingService
from app.services.mutations import MutationDispatcher


class TestChannels:
    @pytest.mark.asyncio
    async def test_company_and_direct_channels(self, db, ctx_a):
        employee = (await MutationDispatcher(db, ctx_a).insert(
            "employees", {"employee_number": "E1", "full_name": "Jane Doe"},
        )).record

        channels = await MessagingService(db, ctx_a).list_channels()

        assert [c["id"] for c in channels] == ["general", "safety", "announcements", f"dm-{employee['id']}"]
        assert channels[-1] == {"id": f"dm-{employee['id']}", "name": "Jane Doe", "type": "direct"}

    @pytest.mark.asyncio
    async def test_unknown_channel(self, db, ctx_a):
        service = MessagingService(db, ctx_a)

        with pytest.raises(NotFoundError):
            await service.list_messages("random")
        with pytest.raises(NotFoundError):
            await service.send_message("dm-someone-else", "hi")


class TestMessages:
    @pytest.mark.asyncio
    async def test_send_and_list_newest_first(self, db, ctx_a, broadcaster):
        subscription = broadcaster.subscribe(
            "notifications", ctx_a.company_id, where={"category": MESSAGE_CATEGORY, "channel": "safety"},
        )
        service = MessagingService(db, ctx_a, broadcaster)

        await service.send_message("safety", "Helmets on site B")
        await service.send_message("safety", "Drill at 10:00")
        await service.send_message("general", "Lunch")

        messages = await service.list_messages("safety")

        assert [m["message"] for m in messages] == ["Drill at 10:00", "Helmets on site B"]
        assert messages[0]["sender_name"] == "Alice Admin"
        assert messages[0]["title"] == "Message in safety"
        assert (await subscription.get()).record["message"] == "Helmets on site B"
        assert (await subscription.get()).record["message"] == "Drill at 10:00"
        assert subscription._queue.empty()

    @pytest.mark.asyncio
    async def test_empty_message_rejected(self, db, ctx_a):
        with pytest.raises(ValidationError):
            await MessagingService(db, ctx_a).send_message("general", "   ")

    @pytest.mark.asyncio
    async def test_messages_are_tenant_scoped(self, db, ctx_a, ctx_b):
        await MessagingService(db, ctx_a).send_message("general", "Acme only")

        assert await MessagingService(db, ctx_b).list_messages("general") == []


class TestNotifications:
    @pytest.mark.asyncio
    async def test_unread_count_and_mark_read(self, db, ctx_a, ctx_b):
        service = MessagingService(db, ctx_a)
        first = (await service.send_message("general", "one")).record
        await service.send_message("general", "two")
        await MessagingService(db, ctx_b).send_message("general", "elsewhere")

        assert (await service.list_notifications())["unread_count"] == 2

        await service.mark_read(first["id"])
        assert (await service.list_notifications())["unread_count"] == 1

        assert await service.mark_all_read() == 1
        bell = await service.list_notifications()
        assert bell["unread_count"] == 0
        assert len(bell["items"]) == 2
        assert (await MessagingService(db, ctx_b).list_notifications())["unread_count"] == 1

    @pytest.mark.asyncio
    async def test_mark_foreign_notification(self, db, ctx_a, ctx_b):
        foreign = (await MessagingService(db, ctx_b).send_message("general", "elsewhere")).record

        with pytest.raises(NotFoundError):
            await MessagingService(db, ctx_a).mark_read(foreign["id"])
