"""Services for reservation sync and ticket ledger coordination."""

from reservesync.services.batch_merger import BatchMerger
from reservesync.services.checkpoints import CheckpointStore, SqlCheckpointCache
from reservesync.services.ledger import LedgerCoordinator
from reservesync.services.ledger_store import SqlLedgerStore
from reservesync.services.medical_force_client import MedicalForceClient
from reservesync.services.reservations import ReservationService
from reservesync.services.sync_orchestrator import SyncOrchestrator
from reservesync.services.sync_runs import SyncRunLog
from reservesync.services.tabular_store import SqlTabularStore

__all__ = [
    "BatchMerger",
    "CheckpointStore",
    "LedgerCoordinator",
    "MedicalForceClient",
    "ReservationService",
    "SqlCheckpointCache",
    "SqlLedgerStore",
    "SqlTabularStore",
    "SyncOrchestrator",
    "SyncRunLog",
]
