"""Database models."""

from reservesync.models.cache_entry import CacheEntry
from reservesync.models.company import Company, CompanyVisitor, MenuTicketType, Plan
from reservesync.models.ledger_entry import LedgerEntry, LedgerUsage
from reservesync.models.sheet_row import SheetRow
from reservesync.models.sync_run import SyncRun

__all__ = [
    "CacheEntry",
    "Company",
    "CompanyVisitor",
    "LedgerEntry",
    "LedgerUsage",
    "MenuTicketType",
    "Plan",
    "SheetRow",
    "SyncRun",
]
