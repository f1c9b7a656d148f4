"""
Tests for app/core/exceptions.py and the HSEError handler in app/main.py.
"""
import json

import pytest

from app.core.exceptions import (
    AuthenticationError,
    ConfirmationRequiredError,
    ConflictError,
    HSEError,
    InvalidTransitionError,
    NotFoundError,
    TenantNotResolvedError,
    ValidationError,
)


class TestExceptionTypes:
    """Status codes and messages of the domain errors."""

    def test_not_found_message(self):
        exc = NotFoundError("employees", "e-1")

        assert exc.status_code == 404
        assert exc.message == "employees id=e-1 not found"

    def test_tenant_not_resolved_carries_setup_redirect(self):
        exc = TenantNotResolvedError()

        assert exc.status_code == 409
        assert exc.redirect == "/setup-company"

    def test_conflict_message(self):
        exc = ConflictError("employees", "employee_number", "E100")

        assert exc.status_code == 409
        assert "employee_number='E100'" in exc.message

    def test_invalid_transition_is_a_validation_error(self):
        exc = InvalidTransitionError("health_checkups", "done", "planned")

        assert isinstance(exc, ValidationError)
        assert exc.details == {"current": "done", "target": "planned"}

    def test_confirmation_required(self):
        exc = ConfirmationRequiredError("Deleting from documents")

        assert exc.status_code == 428
        assert "confirm=true" in exc.message

    def test_all_errors_share_the_base(self):
        for exc in (AuthenticationError(), NotFoundError("tasks"), TenantNotResolvedError()):
            assert isinstance(exc, HSEError)


class TestErrorHandler:
    """The app turns HSEError into the standard error envelope."""

    @pytest.mark.asyncio
    async def test_envelope_for_not_found(self, mock_request):
        from app.main import hse_exception_handler

        response = await hse_exception_handler(mock_request, NotFoundError("tasks", "t-1"))
        body = json.loads(response.body)

        assert response.status_code == 404
        assert body["code"] == "not_found"
        assert body["error"] == "tasks id=t-1 not found"
        assert body["path"] == "/api/v1/test"
        assert "redirect" not in body

    @pytest.mark.asyncio
    async def test_envelope_for_missing_tenant_has_redirect(self, mock_request):
        from app.main import hse_exception_handler

        response = await hse_exception_handler(mock_request, TenantNotResolvedError())
        body = json.loads(response.body)

        assert response.status_code == 409
        assert body["redirect"] == "/setup-company"

    @pytest.mark.asyncio
    async def test_authentication_error_sets_www_authenticate(self, mock_request):
        from app.main import hse_exception_handler

        response = await hse_exception_handler(mock_request, AuthenticationError())

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
