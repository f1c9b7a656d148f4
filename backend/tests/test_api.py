"""
End-to-end tests of the HTTP API, driven in-process through httpx against
the test database.
"""
import pytest

from app.core.security import create_access_token, get_password_hash
from app.models.company import ROLE_EMPLOYEE, UserRoleAssignment
from app.models.user import User

API = "/api/v1"


class TestAuth:
    @pytest.mark.asyncio
    async def test_login_returns_token_and_tenant(self, client, tenant_a, admin_password):
        company, _ = tenant_a

        response = await client.post(f"{API}/auth/login", json={"email": "ADMIN@acme.example.com", "password": admin_password})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["context"]["company_id"] == company.id
        assert body["context"]["role"] == "company_admin"
        assert "access_token" in response.cookies

    @pytest.mark.asyncio
    async def test_wrong_password(self, client, tenant_a):
        response = await client.post(f"{API}/auth/login", json={"email": "admin@acme.example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["code"] == "authentication_required"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_requests_without_token_are_rejected(self, client):
        response = await client.get(f"{API}/employees/")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client, engine):
        headers = {"Authorization": f"Bearer {create_access_token(subject='ghost')}"}

        response = await client.get(f"{API}/auth/me", headers=headers)

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client, auth_headers_a):
        response = await client.get(f"{API}/auth/me", headers=auth_headers_a)

        assert response.status_code == 200
        assert response.json()["user"]["email"] == "admin@acme.example.com"
        assert response.json()["context"]["company_name"] == "Acme Safety"


class TestCompanySetupFlow:
    @pytest.mark.asyncio
    async def test_user_without_company_is_sent_to_setup(self, client, engine):
        registered = await client.post(
            f"{API}/auth/register",
            json={"email": "new@user.example.com", "password": "long-enough-password", "full_name": "New User"},
        )
        assert registered.status_code == 201
        login = await client.post(f"{API}/auth/login", json={"email": "new@user.example.com", "password": "long-enough-password"})
        assert login.json()["context"]["company_id"] is None
        headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

        blocked = await client.get(f"{API}/employees/", headers=headers)

        assert blocked.status_code == 409
        assert blocked.json()["code"] == "tenant_not_resolved"
        assert blocked.json()["redirect"] == "/setup-company"

        created = await client.post(f"{API}/companies/setup", json={"company_name": "New Co"}, headers=headers)
        assert created.status_code == 201

        # Same token, company picked up without signing in again
        refreshed = await client.post(f"{API}/auth/context/refresh", headers=headers)
        assert refreshed.json()["company_id"] == created.json()["id"]
        assert (await client.get(f"{API}/employees/", headers=headers)).json() == []

    @pytest.mark.asyncio
    async def test_plans_are_public(self, client):
        response = await client.get(f"{API}/companies/plans")

        assert response.status_code == 200
        assert [p["tier"] for p in response.json()["plans"]] == ["basic", "standard", "premium"]

    @pytest.mark.asyncio
    async def test_company_registration(self, client, engine):
        response = await client.post(f"{API}/companies/register", json={
            "company_name": "Gamma GmbH",
            "company_email": "info@gamma.example.com",
            "admin_email": "owner@gamma.example.com",
            "admin_name": "Greta Owner",
            "password": "long-enough-password",
            "subscription_tier": "premium",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["company"]["subscription_status"] == "trial"
        headers = {"Authorization": f"Bearer {body['access_token']}"}
        current = await client.get(f"{API}/companies/current", headers=headers)
        assert current.json()["name"] == "Gamma GmbH"


class TestCompanyDetailsApi:
    @pytest.mark.asyncio
    async def test_admin_updates_contact_details(self, client, auth_headers_a):
        response = await client.patch(
            f"{API}/companies/current",
            json={"phone": "+49 30 1234", "address": "Hauptstr. 1, Berlin"},
            headers=auth_headers_a,
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "+49 30 1234"
        assert response.json()["name"] == "Acme Safety"

    @pytest.mark.asyncio
    async def test_empty_name_rejected(self, client, auth_headers_a):
        response = await client.patch(f"{API}/companies/current", json={"name": None}, headers=auth_headers_a)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_employee_role_cannot_update(self, client, db, tenant_a):
        company, _ = tenant_a
        worker = User(email="worker@acme.example.com", full_name="Walt Worker", hashed_password=get_password_hash("x" * 12))
        db.add(worker)
        await db.flush()
        db.add(UserRoleAssignment(user_id=worker.id, role=ROLE_EMPLOYEE, company_id=company.id))
        await db.commit()
        headers = {"Authorization": f"Bearer {create_access_token(subject=worker.id)}"}

        response = await client.patch(f"{API}/companies/current", json={"phone": "0"}, headers=headers)

        assert response.status_code == 403
        assert response.json()["code"] == "permission_denied"


class TestEmployeesApi:
    @pytest.mark.asyncio
    async def test_create_and_list_employee(self, client, auth_headers_a, auth_headers_b):
        created = await client.post(
            f"{API}/employees/",
            json={"employee_number": "E100", "full_name": "Jane Doe"},
            headers=auth_headers_a,
        )
        assert created.status_code == 201
        employee_id = created.json()["record"]["id"]

        listed = await client.get(f"{API}/employees/", headers=auth_headers_a)
        assert [e["employee_number"] for e in listed.json()] == ["E100"]

        foreign = await client.get(f"{API}/employees/{employee_id}", headers=auth_headers_b)
        assert foreign.status_code == 404
        assert (await client.get(f"{API}/employees/", headers=auth_headers_b)).json() == []

    @pytest.mark.asyncio
    async def test_duplicate_number_conflict(self, client, auth_headers_a):
        payload = {"employee_number": "E100", "full_name": "Jane Doe"}
        await client.post(f"{API}/employees/", json=payload, headers=auth_headers_a)

        response = await client.post(f"{API}/employees/", json=payload, headers=auth_headers_a)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_notes_and_activity(self, client, auth_headers_a):
        employee = (await client.post(
            f"{API}/employees/", json={"employee_number": "E1", "full_name": "Jane Doe"}, headers=auth_headers_a,
        )).json()["record"]

        note = await client.post(
            f"{API}/employees/{employee['id']}/notes", json={"content": "Boots ordered"}, headers=auth_headers_a,
        )
        reply = await client.post(
            f"{API}/employees/notes/{note.json()['record']['id']}/replies",
            json={"content": "Size 39"},
            headers=auth_headers_a,
        )
        notes = await client.get(f"{API}/employees/{employee['id']}/notes", headers=auth_headers_a)
        activity = await client.get(f"{API}/employees/{employee['id']}/activity", headers=auth_headers_a)

        assert reply.status_code == 201
        assert notes.json()[0]["replies"][0]["content"] == "Size 39"
        assert "Employee created" in [a["action"] for a in activity.json()]


class TestTasksApi:
    @pytest.mark.asyncio
    async def test_null_due_dates_listed_last(self, client, auth_headers_a):
        await client.post(f"{API}/tasks/", json={"title": "Undated", "priority": "high"}, headers=auth_headers_a)
        await client.post(f"{API}/tasks/", json={"title": "Dated", "due_date": "2024-06-01"}, headers=auth_headers_a)

        response = await client.get(f"{API}/tasks/", headers=auth_headers_a)

        assert [t["title"] for t in response.json()] == ["Dated", "Undated"]

    @pytest.mark.asyncio
    async def test_toggle(self, client, auth_headers_a):
        task = (await client.post(f"{API}/tasks/", json={"title": "Inspect ladders"}, headers=auth_headers_a)).json()

        first = await client.post(f"{API}/tasks/{task['record']['id']}/toggle", headers=auth_headers_a)
        second = await client.post(f"{API}/tasks/{task['record']['id']}/toggle", headers=auth_headers_a)

        assert first.json()["record"]["status"] == "completed"
        assert second.json()["record"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_toggle_with_seen_status_out_of_order(self, client, auth_headers_a):
        task = (await client.post(f"{API}/tasks/", json={"title": "Inspect ladders"}, headers=auth_headers_a)).json()
        url = f"{API}/tasks/{task['record']['id']}/toggle"

        await client.post(
            url, json={"issued_at": "2099-01-01T10:00:01Z", "seen_status": "completed"}, headers=auth_headers_a,
        )
        late = await client.post(
            url, json={"issued_at": "2099-01-01T10:00:00Z", "seen_status": "pending"}, headers=auth_headers_a,
        )

        assert late.status_code == 200
        assert late.json()["record"]["status"] == "pending"


class TestCollectionsApi:
    @pytest.mark.asyncio
    async def test_generic_filters(self, client, auth_headers_a):
        for title, status in (("Fix railing", "planned"), ("Signs", "completed")):
            await client.post(
                f"{API}/collections/measures", json={"title": title, "status": status}, headers=auth_headers_a,
            )

        response = await client.get(f"{API}/collections/measures?status=neq.completed", headers=auth_headers_a)

        assert response.status_code == 200
        assert [m["title"] for m in response.json()] == ["Fix railing"]

    @pytest.mark.asyncio
    async def test_bad_filter_is_400(self, client, auth_headers_a):
        response = await client.get(f"{API}/collections/measures?due_date=lt.soon", headers=auth_headers_a)

        assert response.status_code == 400
        assert response.json()["code"] == "query_error"

    @pytest.mark.asyncio
    async def test_read_only_collections(self, client, auth_headers_a):
        response = await client.post(
            f"{API}/collections/documents", json={"title": "x"}, headers=auth_headers_a,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_course_lessons_in_order_with_course(self, client, auth_headers_a):
        course = (await client.post(
            f"{API}/collections/courses", json={"name": "Fire safety"}, headers=auth_headers_a,
        )).json()["record"]
        for index, name in ((1, "Extinguishers"), (0, "Evacuation")):
            await client.post(
                f"{API}/collections/course_lessons",
                json={"course_id": course["id"], "name": name, "order_index": index},
                headers=auth_headers_a,
            )

        response = await client.get(
            f"{API}/collections/course_lessons?course_id=eq.{course['id']}&embed=course", headers=auth_headers_a,
        )

        assert [lesson["name"] for lesson in response.json()] == ["Evacuation", "Extinguishers"]
        assert response.json()[0]["course"] == {"id": course["id"], "name": "Fire safety"}
        assert response.json()[0]["status"] == "draft"

    @pytest.mark.asyncio
    async def test_reference_to_other_company_is_422(self, client, auth_headers_a, auth_headers_b):
        foreign = (await client.post(
            f"{API}/employees/", json={"employee_number": "E1", "full_name": "Bob Builder"}, headers=auth_headers_b,
        )).json()["record"]

        response = await client.post(
            f"{API}/collections/tasks", json={"title": "Ladders", "assigned_to": foreign["id"]}, headers=auth_headers_a,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


class TestCheckupsAndDocumentsApi:
    @pytest.mark.asyncio
    async def test_checkup_delete_needs_confirmation(self, client, auth_headers_a):
        employee = (await client.post(
            f"{API}/employees/", json={"employee_number": "E1", "full_name": "Jane Doe"}, headers=auth_headers_a,
        )).json()["record"]
        checkup = (await client.post(
            f"{API}/health-checkups/",
            json={"employee_id": employee["id"], "investigation_name": "G37 Display work"},
            headers=auth_headers_a,
        )).json()["record"]

        unconfirmed = await client.delete(f"{API}/health-checkups/{checkup['id']}", headers=auth_headers_a)
        confirmed = await client.delete(f"{API}/health-checkups/{checkup['id']}?confirm=true", headers=auth_headers_a)

        assert unconfirmed.status_code == 428
        assert confirmed.status_code == 200

    @pytest.mark.asyncio
    async def test_document_upload_download_delete(self, client, auth_headers_a):
        uploaded = await client.post(
            f"{API}/documents/",
            data={"title": "Fire plan", "category": "policy", "tags": "fire, evacuation"},
            files={"file": ("plan.pdf", b"%PDF-1.4 plan", "application/pdf")},
            headers=auth_headers_a,
        )
        assert uploaded.status_code == 201
        document = uploaded.json()["record"]
        assert document["tags"] == ["fire", "evacuation"]

        download = await client.get(f"{API}/documents/{document['id']}/download", headers=auth_headers_a)
        assert download.content == b"%PDF-1.4 plan"
        assert "plan.pdf" in download.headers["content-disposition"]

        deleted = await client.delete(f"{API}/documents/{document['id']}?confirm=true", headers=auth_headers_a)
        assert deleted.status_code == 200
        assert (await client.get(f"{API}/documents/", headers=auth_headers_a)).json() == []
        gone = await client.get(f"{API}/documents/{document['id']}/download", headers=auth_headers_a)
        assert gone.status_code == 404


class TestDashboardAndAdminApi:
    @pytest.mark.asyncio
    async def test_stats(self, client, auth_headers_a):
        response = await client.get(f"{API}/dashboard/stats", headers=auth_headers_a)

        assert response.status_code == 200
        assert response.json()["compliance_rate"] is None
        assert response.json()["unavailable"] == []

    @pytest.mark.asyncio
    async def test_reports_and_training_matrix(self, client, auth_headers_a):
        await client.post(
            f"{API}/employees/", json={"employee_number": "E1", "full_name": "Jane Doe"}, headers=auth_headers_a,
        )

        reports = await client.get(f"{API}/dashboard/reports", headers=auth_headers_a)
        matrix = await client.get(f"{API}/dashboard/training-matrix", headers=auth_headers_a)

        assert reports.status_code == 200
        assert reports.json()["employees"] == 1
        assert reports.json()["training_compliance"] is None
        assert matrix.json()[0]["employee_name"] == "Jane Doe"
        assert matrix.json()[0]["compliance_rate"] is None

    @pytest.mark.asyncio
    async def test_super_admin_only(self, client, auth_headers_a):
        response = await client.get(f"{API}/super-admin/stats", headers=auth_headers_a)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_messages(self, client, auth_headers_a):
        sent = await client.post(
            f"{API}/messages/channels/safety", json={"content": "Helmets on"}, headers=auth_headers_a,
        )
        listed = await client.get(f"{API}/messages/channels/safety", headers=auth_headers_a)
        bell = await client.get(f"{API}/messages/notifications", headers=auth_headers_a)

        assert sent.status_code == 201
        assert [m["message"] for m in listed.json()] == ["Helmets on"]
        assert bell.json()["unread_count"] == 1


def test_user_model_has_no_tenant_column():
    """Tenant membership lives in user_roles so it can change without a new token."""
    assert "company_id" not in User.__table__.c
