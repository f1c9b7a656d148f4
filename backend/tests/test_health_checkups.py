"""
Tests for app/services/health_checkup_service.py - the forward-only status
workflow and the three-year recurrence.
"""
from datetime import date

import pytest
import pytest_asyncio

from app.core.exceptions import ConfirmationRequiredError, InvalidTransitionError, NotFoundError, ValidationError
from app.services.health_checkup_service import HealthCheckupService, check_transition
from app.services.mutations import MutationDispatcher


class TestCheckTransition:
    @pytest.mark.parametrize(
        "current,target",
        [("planned", "open"), ("planned", "done"), ("open", "done"), ("open", "open")],
    )
    def test_forward_moves_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize("current,target", [("done", "open"), ("done", "planned"), ("open", "planned")])
    def test_backward_moves_rejected(self, current, target):
        with pytest.raises(InvalidTransitionError):
            check_transition(current, target)

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            check_transition("planned", "cancelled")


@pytest_asyncio.fixture
async def employee(db, ctx_a):
    result = await MutationDispatcher(db, ctx_a).insert(
        "employees", {"employee_number": "E1", "full_name": "Jane Doe"},
    )
    return result.record


class TestCheckupLifecycle:
    @pytest.mark.asyncio
    async def test_create_lists_for_employee(self, db, ctx_a, employee):
        service = HealthCheckupService(db, ctx_a)

        await service.create_checkup(employee["id"], "G25 Driving", appointment_date=date(2024, 9, 1))
        await service.create_checkup(employee["id"], "G37 Display work", appointment_date=date(2024, 3, 1))

        checkups = await service.list_for_employee(employee["id"])

        assert [c["investigation_name"] for c in checkups] == ["G37 Display work", "G25 Driving"]
        assert {c["status"] for c in checkups} == {"planned"}

    @pytest.mark.asyncio
    async def test_completion_schedules_successor(self, db, ctx_a, employee):
        service = HealthCheckupService(db, ctx_a)
        checkup = (await service.create_checkup(employee["id"], "G37 Display work")).record

        await service.change_status(checkup["id"], "open")
        result = await service.change_status(checkup["id"], "done", completion_date=date(2024, 5, 2))

        assert result.record["completion_date"] == date(2024, 5, 2)
        assert [(f["appointment_date"], f["status"]) for f in result.follow_ups] == [(date(2027, 5, 2), "open")]
        assert len(await service.list_for_employee(employee["id"])) == 2

    @pytest.mark.asyncio
    async def test_done_without_date_uses_today(self, db, ctx_a, employee):
        service = HealthCheckupService(db, ctx_a)
        checkup = (await service.create_checkup(employee["id"], "G37 Display work")).record

        result = await service.change_status(checkup["id"], "done")

        assert result.record["completion_date"] == date.today()
        assert len(result.follow_ups) == 1

    @pytest.mark.asyncio
    async def test_reopening_done_checkup_rejected(self, db, ctx_a, employee):
        service = HealthCheckupService(db, ctx_a)
        checkup = (await service.create_checkup(employee["id"], "G37 Display work")).record
        await service.change_status(checkup["id"], "done", completion_date=date(2024, 5, 2))

        with pytest.raises(InvalidTransitionError):
            await service.change_status(checkup["id"], "open")

    @pytest.mark.asyncio
    async def test_update_cannot_touch_status(self, db, ctx_a, employee):
        service = HealthCheckupService(db, ctx_a)
        checkup = (await service.create_checkup(employee["id"], "G37 Display work")).record

        with pytest.raises(ValidationError):
            await service.update_checkup(checkup["id"], {"status": "done"})

        updated = await service.update_checkup(checkup["id"], {"notes": "bring glasses"})
        assert updated.record["notes"] == "bring glasses"

    @pytest.mark.asyncio
    async def test_delete_needs_confirmation(self, db, ctx_a, ctx_b, employee):
        service = HealthCheckupService(db, ctx_a)
        checkup = (await service.create_checkup(employee["id"], "G37 Display work")).record

        with pytest.raises(ConfirmationRequiredError):
            await service.delete_checkup(checkup["id"])
        with pytest.raises(NotFoundError):
            await HealthCheckupService(db, ctx_b).delete_checkup(checkup["id"], confirm=True)
        await service.delete_checkup(checkup["id"], confirm=True)

        assert await service.list_for_employee(employee["id"]) == []

    @pytest.mark.asyncio
    async def test_name_required(self, db, ctx_a, employee):
        with pytest.raises(ValidationError):
            await HealthCheckupService(db, ctx_a).create_checkup(employee["id"], " ")
