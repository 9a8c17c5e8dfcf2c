"""SyncRun model recording the outcome of each scheduled reservation sync."""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from reservesync.database import Base


class SyncRun(Base):
    """
    One invocation of a scheduled sync job.

    A suspended run is recorded with `success` True and `complete` False;
    `error` is set only when the run raised.
    """

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # 'daily', 'weekly', 'monthly' or 'resume'
    sync_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    execution_ms: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    synced_count: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    fetched_count: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("idx_sync_runs_started_at", "started_at"),)

    def __repr__(self) -> str:
        status = "ok" if self.success else "error"
        return f"<SyncRun {self.sync_type} {self.date_from}..{self.date_to}: {status}>"
