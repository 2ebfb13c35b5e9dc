"""Unit tests for the Celery dispatch task."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from moments.services.dispatcher import DispatchResult, ScheduleFetchError
from moments.tasks.dispatch_tasks import dispatch_moment_windows


@pytest.fixture
def patched_db():
    db = AsyncMock()
    engine = MagicMock()
    engine.dispose = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=db)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)

    with patch("moments.tasks.dispatch_tasks.create_async_engine", return_value=engine), patch(
        "moments.tasks.dispatch_tasks.async_sessionmaker", return_value=factory
    ):
        yield db, engine


class TestDispatchTask:
    def test_returns_response_payload(self, patched_db):
        db, engine = patched_db
        dispatcher = AsyncMock()
        dispatcher.run.return_value = DispatchResult(total=1, processed=1, sent=1)

        with patch("moments.tasks.dispatch_tasks.get_dispatcher", return_value=dispatcher) as mock_get:
            result = dispatch_moment_windows()

        assert result["message"] == "Processing complete"
        assert result["sent"] == 1
        assert mock_get.call_args.args[0] is db
        engine.dispose.assert_awaited_once()

    def test_empty_run(self, patched_db):
        dispatcher = AsyncMock()
        dispatcher.run.return_value = DispatchResult()

        with patch("moments.tasks.dispatch_tasks.get_dispatcher", return_value=dispatcher):
            result = dispatch_moment_windows()

        assert result == {"message": "No pending schedules found", "processed": 0}

    def test_fetch_failure_propagates_and_disposes_engine(self, patched_db):
        _, engine = patched_db
        dispatcher = AsyncMock()
        dispatcher.run.side_effect = ScheduleFetchError("db down")

        with patch("moments.tasks.dispatch_tasks.get_dispatcher", return_value=dispatcher):
            with pytest.raises(ScheduleFetchError):
                dispatch_moment_windows()

        engine.dispose.assert_awaited_once()


class TestBeatSchedule:
    def test_dispatch_scheduled_every_interval(self):
        from moments.config import get_settings
        from moments.tasks.celery_app import celery_app

        entry = celery_app.conf.beat_schedule["dispatch-moment-windows"]
        assert entry["task"] == "moments.tasks.dispatch_tasks.dispatch_moment_windows"
        assert entry["schedule"] == get_settings().dispatch_interval_seconds
