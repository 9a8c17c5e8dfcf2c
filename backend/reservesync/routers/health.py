"""Health and sync endpoints."""

from datetime import UTC, date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.config import get_settings
from reservesync.database import get_db
from reservesync.exceptions import FatalFetchError, MergeWriteError, TransientFetchError
from reservesync.models import CacheEntry, SheetRow
from reservesync.schemas.sync import Checkpoint, SyncRunOut
from reservesync.services.checkpoints import CHECKPOINT_PREFIX
from reservesync.services.medical_force_client import MedicalForceClient, get_medical_force_client
from reservesync.services.sync_orchestrator import build_sync_orchestrator
from reservesync.services.sync_runs import SyncRunLog

router = APIRouter(tags=["health"])
settings = get_settings()


class SheetStatus(BaseModel):
    """Status of the mirrored reservation sheet."""

    sheet_name: str
    record_count: int
    pending_checkpoints: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    reservations: SheetStatus


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """
    Health check endpoint with sync status.

    Returns the mirrored row count and the number of windows waiting to resume.
    """
    count_result = await db.execute(
        select(func.count())
        .select_from(SheetRow)
        .where(SheetRow.sheet_name == settings.reservation_sheet_name)
    )
    record_count = count_result.scalar() or 0

    pending_result = await db.execute(
        select(func.count())
        .select_from(CacheEntry)
        .where(
            CacheEntry.key.startswith(f"{CHECKPOINT_PREFIX}:"),
            CacheEntry.expires_at > datetime.now(UTC),
        )
    )
    pending = pending_result.scalar() or 0

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        reservations=SheetStatus(
            sheet_name=settings.reservation_sheet_name,
            record_count=record_count,
            pending_checkpoints=pending,
        ),
    )


class SyncResult(BaseModel):
    """Result of a manual sync operation."""

    window_key: str
    state: str
    complete: bool
    records_synced: int
    fetched_this_run: int
    offset: int
    message: str


@router.post("/sync/reservations", response_model=SyncResult)
async def trigger_reservation_sync(
    db: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[MedicalForceClient, Depends(get_medical_force_client)],
    date_from: date = Query(..., description="First day of the window (YYYY-MM-DD)"),
    date_to: date = Query(..., description="Last day of the window (YYYY-MM-DD)"),
    max_budget_ms: int | None = Query(None, ge=1000, description="Wall-clock budget for this run"),
) -> SyncResult:
    """
    Manually sync reservations for a date window.

    A run that hits its budget returns `complete: false`; call again with the
    same dates to resume from the saved checkpoint.
    """
    if date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")

    orchestrator = build_sync_orchestrator(db, settings, client=client)
    try:
        outcome = await orchestrator.sync_window(date_from, date_to, max_budget_ms=max_budget_ms)
    except FatalFetchError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except (TransientFetchError, MergeWriteError) as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    if outcome.complete:
        message = f"Synced {outcome.synced_count} reservations from {date_from} to {date_to}"
    else:
        message = f"Suspended at offset {outcome.offset}; call again to resume"

    return SyncResult(
        window_key=outcome.window_key,
        state=outcome.state,
        complete=outcome.complete,
        records_synced=outcome.synced_count,
        fetched_this_run=outcome.fetched_this_run,
        offset=outcome.offset,
        message=message,
    )


@router.get("/sync/reservations/checkpoint", response_model=Checkpoint | None)
async def get_reservation_checkpoint(
    db: Annotated[AsyncSession, Depends(get_db)],
    date_from: date = Query(...),
    date_to: date = Query(...),
) -> Checkpoint | None:
    """Saved progress of a window, or null if no run is pending."""
    orchestrator = build_sync_orchestrator(db, settings)
    return await orchestrator.get_status(date_from, date_to)


@router.delete("/sync/reservations/checkpoint")
async def clear_reservation_checkpoint(
    db: Annotated[AsyncSession, Depends(get_db)],
    date_from: date = Query(...),
    date_to: date = Query(...),
) -> dict:
    """
    Clear a window's checkpoint so the next sync starts from the first page.
    """
    orchestrator = build_sync_orchestrator(db, settings)
    existed = await orchestrator.get_status(date_from, date_to) is not None
    await orchestrator.reset(date_from, date_to)

    return {
        "message": "Reservation sync checkpoint cleared",
        "deleted": existed,
    }


@router.get("/sync/reservations/runs", response_model=list[SyncRunOut])
async def list_reservation_sync_runs(
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: int = Query(20, ge=1, le=200),
    sync_type: str | None = Query(None, description="daily, weekly, monthly or resume"),
) -> list[SyncRunOut]:
    """Metrics of the most recent scheduled sync runs, newest first."""
    runs = await SyncRunLog(db).recent(limit=limit, sync_type=sync_type)
    return [SyncRunOut.model_validate(run) for run in runs]


@router.get("/ready")
async def readiness_check() -> dict:
    """Simple readiness probe for container orchestration."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict:
    """Simple liveness probe for container orchestration."""
    return {"status": "alive"}
