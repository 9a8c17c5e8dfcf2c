"""Ticket ledger models: per-period balances and the usage history."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from reservesync.database import Base


class LedgerEntry(Base):
    """
    Prepaid ticket allocation for one company, month and ticket type.

    The balance is always derived as granted - used and never stored.
    """

    __tablename__ = "ledger_entries"

    company_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    period_key: Mapped[str] = mapped_column(String(7), primary_key=True)  # YYYY-MM
    resource_type: Mapped[str] = mapped_column(String(50), primary_key=True)
    granted: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    used: Mapped[int] = mapped_column(Integer, server_default="0", nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def balance(self) -> int:
        return self.granted - self.used

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.company_id}/{self.period_key}/{self.resource_type}: "
            f"{self.used}/{self.granted}>"
        )


class LedgerUsage(Base):
    """
    One ticket consumption, keyed by its receipt id.

    `compensated_at` is set when the consumption is reversed; a receipt can be
    compensated at most once.
    """

    __tablename__ = "ledger_usages"

    receipt_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    company_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    period_key: Mapped[str] = mapped_column(String(7), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    consumed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    compensated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    memo: Mapped[str | None] = mapped_column(String(255))

    def __repr__(self) -> str:
        return f"<LedgerUsage {self.receipt_id}: {self.resource_type} x{self.amount}>"
