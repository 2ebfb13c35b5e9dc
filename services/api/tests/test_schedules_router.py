"""Tests for moment window schedule and device registration routes."""

import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.dialects import postgresql

from moments.dependencies import get_current_user_id, get_db
from moments.models.moment_window_schedule import ScheduleStatus
from moments.routers import devices, schedules

TEST_USER_ID = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")


def _make_schedule():
    schedule = MagicMock()
    schedule.id = uuid.uuid4()
    schedule.next_due_at = datetime(2026, 3, 1, 12, 1, 0, tzinfo=timezone.utc)
    schedule.min_delay_seconds = 30
    schedule.max_delay_seconds = 120
    schedule.status = ScheduleStatus.PENDING
    schedule.notification_sent_at = None
    return schedule


@pytest.fixture
def mock_db():
    return AsyncMock()


def _build_app(mock_db, authed=True):
    test_app = FastAPI()
    test_app.include_router(schedules.router, prefix="/api/v1")
    test_app.include_router(devices.router, prefix="/api/v1")
    if authed:
        test_app.dependency_overrides[get_current_user_id] = lambda: TEST_USER_ID

    async def _get_db():
        yield mock_db

    test_app.dependency_overrides[get_db] = _get_db
    return test_app


@pytest.fixture
def client(mock_db):
    return TestClient(_build_app(mock_db))


@pytest.fixture
def unauthed_client(mock_db):
    return TestClient(_build_app(mock_db, authed=False))


class TestScheduleRoutes:
    def test_requires_auth(self, unauthed_client):
        response = unauthed_client.post("/api/v1/moment-windows/schedule")
        assert response.status_code in (401, 403)

    def test_activate_with_defaults(self, client):
        schedule = _make_schedule()
        with patch("moments.routers.schedules.activate_schedule", AsyncMock(return_value=schedule)) as mock_activate:
            response = client.post("/api/v1/moment-windows/schedule")

        assert response.status_code == 201
        body = response.json()
        assert body["id"] == str(schedule.id)
        assert body["status"] == "pending"
        kwargs = mock_activate.call_args.kwargs
        assert kwargs["min_delay"] == 30
        assert kwargs["max_delay"] == 120
        assert mock_activate.call_args.args[1] == TEST_USER_ID

    def test_activate_with_custom_bounds(self, client):
        with patch(
            "moments.routers.schedules.activate_schedule", AsyncMock(return_value=_make_schedule())
        ) as mock_activate:
            response = client.post(
                "/api/v1/moment-windows/schedule",
                json={"min_delay_seconds": 5, "max_delay_seconds": 10},
            )

        assert response.status_code == 201
        assert mock_activate.call_args.kwargs["min_delay"] == 5
        assert mock_activate.call_args.kwargs["max_delay"] == 10

    def test_activate_rejects_inverted_bounds(self, client):
        response = client.post(
            "/api/v1/moment-windows/schedule",
            json={"min_delay_seconds": 100, "max_delay_seconds": 10},
        )
        assert response.status_code == 422

    def test_get_pending_404_when_none(self, client):
        with patch("moments.routers.schedules.get_pending_schedule", AsyncMock(return_value=None)):
            response = client.get("/api/v1/moment-windows/schedule")
        assert response.status_code == 404

    def test_get_pending(self, client):
        schedule = _make_schedule()
        with patch("moments.routers.schedules.get_pending_schedule", AsyncMock(return_value=schedule)):
            response = client.get("/api/v1/moment-windows/schedule")

        assert response.status_code == 200
        assert response.json()["id"] == str(schedule.id)

    def test_cancel(self, client):
        with patch("moments.routers.schedules.cancel_pending_schedule", AsyncMock(return_value=1)):
            response = client.delete("/api/v1/moment-windows/schedule")

        assert response.status_code == 200
        assert response.json() == {"cancelled": 1}


class TestDeviceRoutes:
    def test_register_upserts(self, client, mock_db):
        response = client.post(
            "/api/v1/devices/register",
            json={"platform": "ios", "token": "ExponentPushToken[abc]"},
        )

        assert response.status_code == 201
        assert response.json() == {"platform": "ios", "is_active": True}
        mock_db.execute.assert_awaited_once()
        stmt = mock_db.execute.call_args.args[0]
        assert "ON CONFLICT" in str(stmt.compile(dialect=postgresql.dialect()))

    def test_register_rejects_unknown_platform(self, client, mock_db):
        response = client.post(
            "/api/v1/devices/register",
            json={"platform": "web", "token": "tok"},
        )

        assert response.status_code == 422
        mock_db.execute.assert_not_called()

    def test_deactivate(self, client, mock_db):
        result = MagicMock()
        result.rowcount = 1
        mock_db.execute.return_value = result

        response = client.post("/api/v1/devices/deactivate", json={"token": "ExponentPushToken[abc]"})

        assert response.status_code == 200
        assert response.json() == {"deactivated": 1}

    def test_register_requires_auth(self, unauthed_client):
        response = unauthed_client.post(
            "/api/v1/devices/register",
            json={"platform": "ios", "token": "tok"},
        )
        assert response.status_code in (401, 403)
