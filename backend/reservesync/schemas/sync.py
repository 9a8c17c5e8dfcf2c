"""Pydantic schemas for the reservation sync pipeline."""

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SyncRecord(BaseModel):
    """One external reservation as seen by the sync engine."""

    model_config = ConfigDict(frozen=True)

    key: str
    payload: dict[str, Any]
    window_start: date
    window_end: date


class PageResult(BaseModel):
    """
    One normalized page from the reservations API.

    `total_count` is None when the API answered with a bare array and gave no
    total.
    """

    records: list[SyncRecord]
    total_count: int | None = None
    raw_count: int = 0  # items returned by the API, including skipped ones


class Checkpoint(BaseModel):
    """Durable progress marker for one sync window."""

    window_key: str
    offset: int = 0
    accumulated_count: int = 0
    complete: bool = False
    last_error: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class MergeResult(BaseModel):
    """Outcome of merging one batch into the tabular store."""

    inserted: int = 0
    updated: int = 0

    @property
    def total(self) -> int:
        return self.inserted + self.updated


class SyncState(StrEnum):
    START = "start"
    FETCHING = "fetching"
    MERGING = "merging"
    DONE = "done"
    SUSPENDED = "suspended"


class SyncOutcome(BaseModel):
    """Result of one `sync_window` invocation."""

    window_key: str
    state: SyncState
    complete: bool
    synced_count: int  # records merged for the window so far, across invocations
    fetched_this_run: int = 0
    pages_this_run: int = 0
    offset: int = 0
    inserted: int = 0
    updated: int = 0


class SyncRunOut(BaseModel):
    """Recorded metrics of one scheduled sync run."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    sync_type: str
    date_from: date
    date_to: date
    started_at: datetime
    execution_ms: int
    synced_count: int
    fetched_count: int
    complete: bool
    success: bool
    error: str | None = None
