"""
Tests for app/services/task_service.py - task CRUD, mention assignment and
ordered status changes.
"""
import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.mutations import MutationDispatcher
from app.services.task_service import STALE_STATUS_CHANGE, TaskService, status_revision


async def _employee(db, ctx, number, name):
    result = await MutationDispatcher(db, ctx).insert("employees", {"employee_number": number, "full_name": name})
    return result.record


class TestStatusRevision:
    def test_naive_times_are_utc(self):
        naive = datetime(2024, 1, 1, 12, 0, 0)
        aware = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

        assert status_revision(naive) == status_revision(aware)

    def test_microsecond_resolution(self):
        t = datetime(2024, 1, 1, tzinfo=timezone.utc)

        assert status_revision(t + timedelta(microseconds=1)) - status_revision(t) == 1


class TestTaskCrud:
    @pytest.mark.asyncio
    async def test_create_and_list_with_assignee(self, db, ctx_a):
        jane = await _employee(db, ctx_a, "E1", "Jane Doe")
        tasks = TaskService(db, ctx_a)

        await tasks.create_task("Inspect ladders", assigned_to=jane["id"], due_date=date(2024, 6, 1))
        await tasks.create_task("Order first-aid kits", priority="high")

        listed = await tasks.list_tasks("upcoming")

        assert [t["title"] for t in listed] == ["Inspect ladders", "Order first-aid kits"]
        assert listed[0]["assignee"]["full_name"] == "Jane Doe"
        assert listed[1]["assignee"] is None

    @pytest.mark.asyncio
    async def test_invalid_values(self, db, ctx_a, ctx_b):
        tasks = TaskService(db, ctx_a)
        foreign = await _employee(db, ctx_b, "B1", "Ben B")

        with pytest.raises(ValidationError):
            await tasks.create_task("  ")
        with pytest.raises(ValidationError):
            await tasks.create_task("x", priority="critical")
        with pytest.raises(NotFoundError):
            await tasks.create_task("x", assigned_to=foreign["id"])
        with pytest.raises(ValidationError):
            await tasks.list_tasks("someday")

    @pytest.mark.asyncio
    async def test_update_rejects_status_and_unknown_fields(self, db, ctx_a):
        tasks = TaskService(db, ctx_a)
        task = (await tasks.create_task("Inspect ladders")).record

        with pytest.raises(ValidationError):
            await tasks.update_task(task["id"], {"status": "completed"})

        updated = await tasks.update_task(task["id"], {"priority": "urgent", "due_date": date(2024, 7, 1)})
        assert updated.record["priority"] == "urgent"
        assert updated.record["due_date"] == date(2024, 7, 1)

    @pytest.mark.asyncio
    async def test_delete(self, db, ctx_a, ctx_b):
        task = (await TaskService(db, ctx_a).create_task("Inspect ladders")).record

        with pytest.raises(NotFoundError):
            await TaskService(db, ctx_b).delete_task(task["id"])
        await TaskService(db, ctx_a).delete_task(task["id"])

        assert await TaskService(db, ctx_a).list_tasks() == []

    @pytest.mark.asyncio
    async def test_tasks_from_mentions(self, db, ctx_a):
        jane = await _employee(db, ctx_a, "E1", "Jane Doe")
        max_ = await _employee(db, ctx_a, "E2", "Max Mustermann")

        results = await TaskService(db, ctx_a).create_tasks_from_mentions(
            "@Jane Doe @Max Mustermann check the fire exits", due_date=date(2024, 6, 1),
        )

        assert [(r.record["assigned_to"], r.record["title"]) for r in results] == [
            (jane["id"], "check the fire exits"),
            (max_["id"], "check the fire exits"),
        ]
        assert all(r.record["status"] == "pending" and r.record["priority"] == "medium" for r in results)

    @pytest.mark.asyncio
    async def test_tasks_from_text_without_mentions(self, db, ctx_a):
        with pytest.raises(ValidationError):
            await TaskService(db, ctx_a).create_tasks_from_mentions("check the fire exits")


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_later_change_wins_regardless_of_arrival_order(self, db, ctx_a):
        tasks = TaskService(db, ctx_a)
        task = (await tasks.create_task("Inspect ladders")).record
        first_issued = datetime.now(timezone.utc) + timedelta(seconds=1)
        second_issued = first_issued + timedelta(milliseconds=200)

        # The second change reaches the server first
        applied = await tasks.set_task_status(task["id"], "pending", issued_at=second_issued)
        stale = await tasks.set_task_status(task["id"], "completed", issued_at=first_issued)

        assert applied.notices == []
        assert stale.notices == [STALE_STATUS_CHANGE]
        assert stale.record["status"] == "pending"

    @pytest.mark.asyncio
    async def test_rapid_toggles_end_in_last_toggle_state(self, session_factory, ctx_a):
        async with session_factory() as session:
            task = (await TaskService(session, ctx_a).create_task("Inspect ladders")).record

        async def toggle():
            async with session_factory() as session:
                return await TaskService(session, ctx_a).toggle_task_status(task["id"])

        first, second = await asyncio.gather(toggle(), toggle())

        assert first.record["status"] == "completed"
        assert second.record["status"] == "pending"
        async with session_factory() as session:
            stored = await TaskService(session, ctx_a).fetcher.get("tasks", task["id"])
        assert stored["status"] == "pending"

    @pytest.mark.asyncio
    async def test_toggles_arriving_out_of_order_end_in_last_click_state(self, db, ctx_a):
        tasks = TaskService(db, ctx_a)
        task = (await tasks.create_task("Inspect ladders")).record
        first_click = datetime.now(timezone.utc) + timedelta(seconds=1)
        second_click = first_click + timedelta(milliseconds=200)

        # Two clicks on a pending task: completed, then back to pending.
        # The second click reaches the server first.
        await tasks.toggle_task_status(task["id"], issued_at=second_click)
        late = await tasks.toggle_task_status(task["id"], issued_at=first_click)

        assert late.notices == []
        stored = await tasks.fetcher.get("tasks", task["id"])
        assert stored["status"] == "pending"

    @pytest.mark.asyncio
    async def test_repeated_toggle_is_applied_once(self, db, ctx_a):
        tasks = TaskService(db, ctx_a)
        task = (await tasks.create_task("Inspect ladders")).record
        click = datetime.now(timezone.utc) + timedelta(seconds=1)

        await tasks.toggle_task_status(task["id"], issued_at=click)
        repeat = await tasks.toggle_task_status(task["id"], issued_at=click)

        assert repeat.notices == [STALE_STATUS_CHANGE]
        assert repeat.record["status"] == "completed"

    @pytest.mark.asyncio
    async def test_toggle_issued_before_explicit_change_is_stale(self, db, ctx_a):
        tasks = TaskService(db, ctx_a)
        task = (await tasks.create_task("Inspect ladders")).record
        toggled_at = datetime.now(timezone.utc) + timedelta(seconds=1)

        await tasks.set_task_status(task["id"], "in_progress", issued_at=toggled_at + timedelta(seconds=1))
        late = await tasks.toggle_task_status(task["id"], issued_at=toggled_at)

        assert late.notices == [STALE_STATUS_CHANGE]
        assert late.record["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_toggle_with_seen_status_targets_the_opposite(self, db, ctx_a):
        tasks = TaskService(db, ctx_a)
        task = (await tasks.create_task("Inspect ladders")).record
        first_click = datetime.now(timezone.utc) + timedelta(seconds=1)
        second_click = first_click + timedelta(milliseconds=200)

        await tasks.toggle_task_status(task["id"], issued_at=second_click, seen_status="completed")
        late = await tasks.toggle_task_status(task["id"], issued_at=first_click, seen_status="pending")

        assert late.notices == [STALE_STATUS_CHANGE]
        assert late.record["status"] == "pending"

    @pytest.mark.asyncio
    async def test_status_change_is_logged_for_assignee(self, db, ctx_a, broadcaster):
        jane = await _employee(db, ctx_a, "E1", "Jane Doe")
        tasks = TaskService(db, ctx_a, broadcaster)
        task = (await tasks.create_task("Inspect ladders", assigned_to=jane["id"])).record
        subscription = broadcaster.subscribe("tasks", ctx_a.company_id)

        result = await tasks.set_task_status(task["id"], "in_progress")

        assert result.record["status"] == "in_progress"
        assert result.notices == []
        event = await subscription.get()
        assert event.record["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_unknown_status(self, db, ctx_a):
        task = (await TaskService(db, ctx_a).create_task("Inspect ladders")).record

        with pytest.raises(ValidationError):
            await TaskService(db, ctx_a).set_task_status(task["id"], "archived")

    @pytest.mark.asyncio
    async def test_foreign_task_status_is_not_found(self, db, ctx_a, ctx_b):
        task = (await TaskService(db, ctx_b).create_task("Other company")).record

        with pytest.raises(NotFoundError):
            await TaskService(db, ctx_a).set_task_status(task["id"], "completed")
