"""Pydantic schemas for API request/response validation."""

from reservesync.schemas.ledger import (
    CompanyBalancesOut,
    CompanyUsageHistoryOut,
    ConsumptionReceipt,
    CostQuote,
    LedgerBalanceOut,
    LedgerUsageOut,
)
from reservesync.schemas.reservation import ReservationCreatedOut, ReservationRequest
from reservesync.schemas.sync import (
    Checkpoint,
    MergeResult,
    PageResult,
    SyncOutcome,
    SyncRecord,
    SyncRunOut,
    SyncState,
)

__all__ = [
    "Checkpoint",
    "CompanyBalancesOut",
    "CompanyUsageHistoryOut",
    "ConsumptionReceipt",
    "CostQuote",
    "LedgerBalanceOut",
    "LedgerUsageOut",
    "MergeResult",
    "PageResult",
    "ReservationCreatedOut",
    "ReservationRequest",
    "SyncOutcome",
    "SyncRecord",
    "SyncRunOut",
    "SyncState",
]
