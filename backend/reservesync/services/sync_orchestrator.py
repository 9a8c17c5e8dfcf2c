"""Budgeted, resumable reservation sync."""

import asyncio
import calendar
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import date, timedelta
from enum import StrEnum

from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.config import Settings, get_settings
from reservesync.exceptions import FatalFetchError, MergeWriteError, TransientFetchError
from reservesync.schemas.sync import Checkpoint, PageResult, SyncOutcome, SyncState
from reservesync.services.batch_merger import BatchMerger
from reservesync.services.checkpoints import CheckpointStore, SqlCheckpointCache, window_key
from reservesync.services.medical_force_client import MedicalForceClient
from reservesync.services.reservation_adapter import row_converter
from reservesync.services.tabular_store import SqlTabularStore

logger = logging.getLogger(__name__)


class SyncWindowKind(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def window_for(kind: SyncWindowKind, today: date) -> tuple[date, date]:
    """
    Date range covered by a scheduled sync.

    - daily: last 7 days through the next 7 days
    - weekly: last 30 days through one month ahead
    - monthly: today through three months ahead
    """
    if kind == SyncWindowKind.DAILY:
        return today - timedelta(days=7), today + timedelta(days=7)
    if kind == SyncWindowKind.WEEKLY:
        return today - timedelta(days=30), add_months(today, 1)
    return today, add_months(today, 3)


class SyncOrchestrator:
    """
    Mirrors one reservation window into the tabular store.

    Features:
    - Streams every page straight into the merger
    - Stops before the wall-clock budget runs out and saves a checkpoint
    - Resumes a suspended window at the saved offset on the next call
    - Waits a fixed delay between pages for the API's rate limit
    """

    def __init__(
        self,
        fetcher: MedicalForceClient,
        merger: BatchMerger,
        checkpoints: CheckpointStore,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        settings = settings or get_settings()
        self.fetcher = fetcher
        self.merger = merger
        self.checkpoints = checkpoints
        self.clinic_id = settings.clinic_id
        self.page_size = max(1, min(settings.sync_page_size, settings.sync_max_page_size))
        self.page_delay = settings.sync_page_delay_ms / 1000
        self.budget_ms = settings.sync_budget_ms
        self.safety_margin_ms = settings.sync_safety_margin_ms
        self._clock = clock
        self._sleep = sleep

    def window_key(self, date_from: date, date_to: date) -> str:
        return window_key(date_from, date_to, self.clinic_id)

    async def get_status(self, date_from: date, date_to: date) -> Checkpoint | None:
        """Saved checkpoint of a window, if a run is pending."""
        return await self.checkpoints.load(self.window_key(date_from, date_to))

    async def reset(self, date_from: date, date_to: date) -> None:
        """Forget a window's progress so the next run starts at offset 0."""
        key = self.window_key(date_from, date_to)
        await self.checkpoints.clear(key)
        logger.info(f"Cleared checkpoint {key}")

    def _deadline(self, started: float, max_budget_ms: int | None) -> float:
        budget_ms = max_budget_ms if max_budget_ms is not None else self.budget_ms
        # The margin never exceeds a quarter of the budget
        margin_ms = min(self.safety_margin_ms, budget_ms // 4)
        return started + (budget_ms - margin_ms) / 1000

    def _is_last_page(self, page: PageResult, checkpoint: Checkpoint) -> bool:
        if page.raw_count < self.page_size:
            return True
        return page.total_count is not None and checkpoint.accumulated_count >= page.total_count

    async def sync_window(
        self,
        date_from: date,
        date_to: date,
        max_budget_ms: int | None = None,
    ) -> SyncOutcome:
        """
        Sync reservations between two dates, resuming any suspended run.

        Args:
            date_from: First day of the window (inclusive)
            date_to: Last day of the window (inclusive)
            max_budget_ms: Wall-clock budget for this invocation

        Returns:
            Outcome with `complete` False if the run was suspended

        Raises:
            TransientFetchError: page fetch failed; checkpoint kept at that page
            FatalFetchError: request rejected; checkpoint discarded
            MergeWriteError: page could not be written; checkpoint kept at that page
        """
        started = self._clock()
        deadline = self._deadline(started, max_budget_ms)
        key = self.window_key(date_from, date_to)

        state = SyncState.START
        checkpoint = await self.checkpoints.load(key)
        if checkpoint is not None and not checkpoint.complete:
            logger.info(
                f"Resuming sync {key} at offset={checkpoint.offset} "
                f"(accumulated={checkpoint.accumulated_count})"
            )
        else:
            checkpoint = Checkpoint(window_key=key, date_from=date_from, date_to=date_to)
            logger.info(f"Starting sync {key}: {date_from}..{date_to}")
        await self.checkpoints.save(checkpoint)

        outcome = SyncOutcome(
            window_key=key,
            state=state,
            complete=False,
            synced_count=checkpoint.accumulated_count,
            offset=checkpoint.offset,
        )

        while True:
            if self._clock() >= deadline:
                state = SyncState.SUSPENDED
                checkpoint.complete = False
                await self.checkpoints.save(checkpoint)
                elapsed_ms = int((self._clock() - started) * 1000)
                logger.warning(
                    f"Suspending sync {key} after {elapsed_ms}ms at offset={checkpoint.offset}"
                )
                break

            state = SyncState.FETCHING
            try:
                page = await self.fetcher.fetch_page(
                    date_from, date_to, limit=self.page_size, offset=checkpoint.offset
                )
            except TransientFetchError as e:
                checkpoint.last_error = str(e)
                await self.checkpoints.save(checkpoint)
                logger.warning(f"Transient fetch error for {key} at offset={checkpoint.offset}: {e}")
                raise
            except FatalFetchError:
                await self.checkpoints.clear(key)
                logger.error(f"Fatal fetch error for {key}; checkpoint discarded")
                raise

            if page.raw_count == 0:
                state = SyncState.DONE
                break

            state = SyncState.MERGING
            try:
                merged = await self.merger.merge(page.records)
            except MergeWriteError as e:
                checkpoint.last_error = str(e)
                await self.checkpoints.save(checkpoint)
                logger.error(f"Merge failed for {key} at offset={checkpoint.offset}: {e}")
                raise

            checkpoint.offset += page.raw_count
            checkpoint.accumulated_count += page.raw_count
            checkpoint.last_error = None
            outcome.fetched_this_run += page.raw_count
            outcome.pages_this_run += 1
            outcome.inserted += merged.inserted
            outcome.updated += merged.updated

            total = page.total_count if page.total_count is not None else "?"
            logger.info(f"Sync {key}: {checkpoint.accumulated_count}/{total} records")

            if self._is_last_page(page, checkpoint):
                state = SyncState.DONE
                break

            await self.checkpoints.save(checkpoint)
            await self._sleep(self.page_delay)

        if state == SyncState.DONE:
            checkpoint.complete = True
            await self.checkpoints.clear(key)
            logger.info(f"Sync {key} complete: {checkpoint.accumulated_count} records")

        outcome.state = state
        outcome.complete = checkpoint.complete
        outcome.synced_count = checkpoint.accumulated_count
        outcome.offset = checkpoint.offset
        return outcome


def build_sync_orchestrator(
    db: AsyncSession,
    settings: Settings | None = None,
    client: MedicalForceClient | None = None,
) -> SyncOrchestrator:
    """Wire an orchestrator to the SQL-backed store and checkpoint cache."""
    settings = settings or get_settings()
    store = SqlTabularStore(db, settings.reservation_sheet_name)
    checkpoints = CheckpointStore(SqlCheckpointCache(db), settings.sync_checkpoint_ttl_seconds)
    return SyncOrchestrator(
        client or MedicalForceClient(settings),
        BatchMerger(store, row_converter(settings.timezone)),
        checkpoints,
        settings,
    )
