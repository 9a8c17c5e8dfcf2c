"""Persistent metrics of scheduled sync runs."""

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.models import SyncRun
from reservesync.schemas.sync import SyncOutcome

logger = logging.getLogger(__name__)


class SyncRunLog:
    """Writes one `sync_runs` row per sync job and reads the latest ones back."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        sync_type: str,
        date_from: date,
        date_to: date,
        started_at: datetime,
        execution_ms: int,
        outcome: SyncOutcome | None = None,
        error: BaseException | None = None,
    ) -> SyncRun:
        """
        Record a finished run from its outcome, or from the error it raised.

        A run without an outcome is recorded as failed even when no error is
        given.
        """
        run = SyncRun(
            sync_type=sync_type,
            date_from=date_from,
            date_to=date_to,
            started_at=started_at,
            execution_ms=execution_ms,
            synced_count=outcome.synced_count if outcome is not None else 0,
            fetched_count=outcome.fetched_this_run if outcome is not None else 0,
            complete=outcome.complete if outcome is not None else False,
            success=outcome is not None and error is None,
            error=f"{type(error).__name__}: {error}" if error is not None else None,
        )
        try:
            self.db.add(run)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

        logger.debug(f"Recorded {sync_type} sync run {date_from}..{date_to} ({execution_ms}ms)")
        return run

    async def recent(self, limit: int = 20, sync_type: str | None = None) -> list[SyncRun]:
        """Latest runs first."""
        query = select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(limit)
        if sync_type:
            query = query.where(SyncRun.sync_type == sync_type)
        result = await self.db.execute(query)
        return list(result.scalars().all())
