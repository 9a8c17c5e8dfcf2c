"""Tests for scheduled sync jobs."""

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from reservesync.exceptions import FatalFetchError, MergeWriteError, TransientFetchError
from reservesync.schemas.sync import SyncOutcome, SyncState
from reservesync.services.sync_orchestrator import SyncWindowKind
from reservesync.services.sync_runs import SyncRunLog
from reservesync.tasks import scheduler as scheduler_module

WINDOW = (date(2024, 1, 1), date(2024, 1, 14))


@pytest.fixture
def recorder(monkeypatch) -> AsyncMock:
    fake = AsyncMock()
    monkeypatch.setattr(scheduler_module, "record_sync_run", fake)
    return fake


@pytest.fixture
def orchestrator(monkeypatch, recorder) -> MagicMock:
    """Patch session creation, orchestrator wiring and run recording for the jobs."""
    fake = MagicMock()
    fake.sync_window = AsyncMock()
    monkeypatch.setattr(scheduler_module, "async_session_maker", lambda: MagicMock())
    monkeypatch.setattr(scheduler_module, "build_sync_orchestrator", lambda db, settings: fake)
    return fake


@pytest.fixture
def fake_scheduler(monkeypatch) -> MagicMock:
    fake = MagicMock()
    monkeypatch.setattr(scheduler_module, "scheduler", fake)
    return fake


def _outcome(complete: bool) -> SyncOutcome:
    return SyncOutcome(
        window_key="reservation_sync:abc",
        state=SyncState.DONE if complete else SyncState.SUSPENDED,
        complete=complete,
        synced_count=1000,
        offset=1000,
    )


class TestSyncJobs:
    """Tests for sync job functions."""

    @pytest.mark.asyncio
    async def test_suspended_window_is_rescheduled(self, orchestrator, fake_scheduler):
        orchestrator.sync_window.return_value = _outcome(complete=False)

        outcome = await scheduler_module.sync_window_job(*WINDOW)

        assert outcome.complete is False
        fake_scheduler.add_job.assert_called_once()
        kwargs = fake_scheduler.add_job.call_args.kwargs
        assert kwargs["args"] == list(WINDOW)
        assert kwargs["id"] == "resume_sync_2024-01-01_2024-01-14"

    @pytest.mark.asyncio
    async def test_complete_window_is_not_rescheduled(self, orchestrator, fake_scheduler):
        orchestrator.sync_window.return_value = _outcome(complete=True)

        await scheduler_module.sync_window_job(*WINDOW)

        fake_scheduler.add_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_fatal_failure_is_logged_and_not_retried(self, orchestrator, fake_scheduler, caplog):
        orchestrator.sync_window.side_effect = FatalFetchError("HTTP 400")

        assert await scheduler_module.sync_window_job(*WINDOW) is None

        assert "failed" in caplog.text
        fake_scheduler.add_job.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [TransientFetchError("HTTP 503"), MergeWriteError("store unavailable")]
    )
    async def test_recoverable_failure_resumes_same_window(self, orchestrator, fake_scheduler, error):
        """A transient or merge failure re-queues the window it failed on."""
        orchestrator.sync_window.side_effect = error

        assert await scheduler_module.sync_window_job(*WINDOW) is None

        fake_scheduler.add_job.assert_called_once()
        kwargs = fake_scheduler.add_job.call_args.kwargs
        assert kwargs["args"] == list(WINDOW)
        assert kwargs["id"] == "resume_sync_2024-01-01_2024-01-14"

    @pytest.mark.asyncio
    async def test_scheduled_sync_uses_window(self, orchestrator, fake_scheduler):
        orchestrator.sync_window.return_value = _outcome(complete=True)

        await scheduler_module.scheduled_sync_job(SyncWindowKind.DAILY)

        date_from, date_to = orchestrator.sync_window.call_args[0]
        assert (date_to - date_from).days == 14


class TestSyncRunMetrics:
    """Tests for the sync run recorded by each job."""

    @pytest.mark.asyncio
    async def test_outcome_is_recorded(self, orchestrator, fake_scheduler, recorder):
        outcome = _outcome(complete=True)
        orchestrator.sync_window.return_value = outcome

        await scheduler_module.scheduled_sync_job(SyncWindowKind.WEEKLY)

        recorder.assert_awaited_once()
        sync_type, date_from, date_to, started_at, execution_ms, recorded, error = recorder.call_args[0]
        assert sync_type == "weekly"
        assert date_from < date_to
        assert execution_ms >= 0
        assert recorded is outcome
        assert error is None

    @pytest.mark.asyncio
    async def test_error_is_recorded(self, orchestrator, fake_scheduler, recorder):
        error = TransientFetchError("HTTP 503")
        orchestrator.sync_window.side_effect = error

        await scheduler_module.sync_window_job(*WINDOW)

        args = recorder.call_args[0]
        assert args[0] == "resume"
        assert args[1:3] == WINDOW
        assert args[5] is None
        assert args[6] is error

    @pytest.mark.asyncio
    async def test_run_is_written_to_database(self, db_session, monkeypatch):
        """record_sync_run stores a row through its own session."""

        class _Session:
            async def __aenter__(self):
                return db_session

            async def __aexit__(self, *exc):
                return False

        monkeypatch.setattr(scheduler_module, "async_session_maker", _Session)

        await scheduler_module.record_sync_run(
            "daily",
            *WINDOW,
            datetime(2024, 1, 1, 2, 0, tzinfo=UTC),
            1500,
            _outcome(complete=False),
            None,
        )

        runs = await SyncRunLog(db_session).recent()
        assert len(runs) == 1
        assert runs[0].sync_type == "daily"
        assert runs[0].success is True
        assert runs[0].complete is False
        assert runs[0].synced_count == 1000

    @pytest.mark.asyncio
    async def test_recording_failure_does_not_fail_job(self, monkeypatch, caplog):
        def _broken_session():
            raise OSError("database unavailable")

        monkeypatch.setattr(scheduler_module, "async_session_maker", _broken_session)

        await scheduler_module.record_sync_run(
            "daily", *WINDOW, datetime(2024, 1, 1, tzinfo=UTC), 0, None, FatalFetchError("HTTP 400")
        )

        assert "Failed to record daily sync run" in caplog.text


class TestSetupScheduler:
    """Tests for scheduler setup."""

    @pytest.mark.asyncio
    async def test_registers_jobs(self):
        sched = scheduler_module.setup_scheduler()
        try:
            assert {job.id for job in sched.get_jobs()} == {
                "sync_reservations_daily",
                "sync_reservations_weekly",
                "sync_reservations_monthly",
                "grant_monthly_tickets",
            }
        finally:
            scheduler_module.shutdown_scheduler()

        assert scheduler_module.scheduler is None
