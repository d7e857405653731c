"""
HTTP tests for the applicant and reviewer endpoints, run against the
in-memory database with authentication overridden.
"""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core import rate_limit
from app.core.auth import CurrentUser, get_current_reviewer, get_current_user
from app.core.database import get_db
from app.main import app
from app.modules.users import UserRole

REVIEWER = CurrentUser(id=uuid4(), email="reviewer@mentors.example", role="admin")

VALID_PAYLOAD = {
    "email": "Ada@X.edu",
    "fullName": "Ada Lovelace",
    "institution": "X University",
    "graduationYear": 2026,
    "ageConfirmed": True,
    "agreementAccepted": True,
    "topics": ["Breakup support"],
}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_reviewer] = lambda: REVIEWER

    with (
        patch.dict(rate_limit._memory_store, clear=True),
        patch("app.core.notifications.dispatch", new_callable=MagicMock) as dispatch,
    ):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            ac.dispatch = dispatch
            yield ac

    app.dependency_overrides.clear()


class TestSubmit:
    @pytest.mark.asyncio
    async def test_submit_creates_pending_application(self, client):
        response = await client.post("/api/v1/mentor-applications", json=VALID_PAYLOAD)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["status"] == "pending"
        assert body["record"]["email"] == "ada@x.edu"
        client.dispatch.assert_called_once()

    @pytest.mark.asyncio
    async def test_missing_consent_lists_every_error(self, client):
        payload = {key: value for key, value in VALID_PAYLOAD.items() if key != "ageConfirmed"}
        payload.pop("institution")

        response = await client.post("/api/v1/mentor-applications", json=payload)

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["error"] == "VALIDATION_ERROR"
        assert len(detail["errors"]) == 2
        client.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_returns_existing_application(self, client):
        first = await client.post("/api/v1/mentor-applications", json=VALID_PAYLOAD)

        second = await client.post(
            "/api/v1/mentor-applications", json={**VALID_PAYLOAD, "email": "ada@x.edu"}
        )

        assert second.status_code == 409
        detail = second.json()["detail"]
        assert detail["error"] == "DUPLICATE_APPLICATION"
        assert detail["existing_id"] == first.json()["id"]
        assert detail["existing_status"] == "pending"

    @pytest.mark.asyncio
    async def test_form_submission(self, client):
        answers = [
            {"label": "Full name", "answer": "Grace Hopper"},
            {"label": "Which university do you attend?", "answer": "Y College"},
            {"label": "Are you 18 or older?", "answer": "Yes"},
            {"label": "Do you agree to the mentor agreement?", "answer": "I agree"},
        ]

        response = await client.post(
            "/api/v1/mentor-applications/form",
            json={"respondent_email": "grace@y.edu", "answers": answers},
        )

        assert response.status_code == 201
        assert response.json()["record"]["full_name"] == "Grace Hopper"

    @pytest.mark.asyncio
    async def test_submission_rate_limit(self, client):
        for i in range(5):
            await client.post(
                "/api/v1/mentor-applications", json={**VALID_PAYLOAD, "email": f"a{i}@x.edu"}
            )

        response = await client.post(
            "/api/v1/mentor-applications", json={**VALID_PAYLOAD, "email": "late@x.edu"}
        )

        assert response.status_code == 429


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_requires_matching_email(self, client):
        created = await client.post("/api/v1/mentor-applications", json=VALID_PAYLOAD)
        application_id = created.json()["id"]

        ok = await client.get(
            f"/api/v1/mentor-applications/{application_id}/status",
            params={"email": "ADA@x.edu"},
        )
        wrong = await client.get(
            f"/api/v1/mentor-applications/{application_id}/status",
            params={"email": "eve@x.edu"},
        )

        assert ok.status_code == 200
        assert ok.json()["status"] == "pending"
        assert wrong.status_code == 403


class TestReviewerDecisions:
    @pytest.mark.asyncio
    async def test_second_approval_is_noop(self, client):
        created = await client.post("/api/v1/mentor-applications", json=VALID_PAYLOAD)
        application_id = created.json()["id"]

        first = await client.post(f"/api/v1/admin/mentor-applications/{application_id}/approve")
        second = await client.post(f"/api/v1/admin/mentor-applications/{application_id}/approve")

        assert first.status_code == 200
        assert first.json() == {
            "success": True,
            "noop": False,
            "error": None,
            "status": "approved",
        }
        assert second.json()["noop"] is True

    @pytest.mark.asyncio
    async def test_unknown_application(self, client):
        response = await client.post(f"/api/v1/admin/mentor-applications/{uuid4()}/reject")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "APPLICATION_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, client):
        await client.post("/api/v1/mentor-applications", json=VALID_PAYLOAD)

        pending = await client.get(
            "/api/v1/admin/mentor-applications", params={"status": "pending"}
        )
        approved = await client.get(
            "/api/v1/admin/mentor-applications", params={"status": "approved"}
        )

        assert pending.json()["total"] == 1
        assert approved.json()["total"] == 0


class TestRoleSelection:
    @pytest.mark.asyncio
    async def test_select_role_locks_account(self, client, make_user):
        user = await make_user("s@x.edu")
        app.dependency_overrides[get_current_user] = lambda: CurrentUser(
            id=user.id, email=user.email, role="user"
        )

        first = await client.post("/api/v1/users/me/role", json={"role": "student"})
        second = await client.post("/api/v1/users/me/role", json={"role": "mentor"})

        assert first.status_code == 200
        assert first.json()["role"] == UserRole.STUDENT.value
        assert second.status_code == 409
        assert second.json()["detail"]["error"] == "ROLE_ALREADY_LOCKED"

    @pytest.mark.asyncio
    async def test_unset_is_rejected(self, client, make_user):
        user = await make_user("u@x.edu")
        app.dependency_overrides[get_current_user] = lambda: CurrentUser(
            id=user.id, email=user.email, role="user"
        )

        response = await client.post("/api/v1/users/me/role", json={"role": "unset"})

        assert response.status_code == 400
