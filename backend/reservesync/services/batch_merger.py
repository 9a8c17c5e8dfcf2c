"""Key-based upsert of sync records into a tabular store."""

import logging
from collections.abc import Callable
from typing import Any

from reservesync.exceptions import MergeWriteError
from reservesync.schemas.sync import MergeResult, SyncRecord
from reservesync.services.reservation_adapter import record_to_row
from reservesync.services.tabular_store import TabularStore

logger = logging.getLogger(__name__)


def contiguous_groups(row_numbers: list[int]) -> list[list[int]]:
    """Split row numbers into ascending runs where each step is exactly 1."""
    groups: list[list[int]] = []
    for row_number in sorted(row_numbers):
        if groups and row_number == groups[-1][-1] + 1:
            groups[-1].append(row_number)
        else:
            groups.append([row_number])
    return groups


class BatchMerger:
    """
    Upserts batches of SyncRecords by key.

    Each call reads the key index once, overwrites existing rows with one range
    write per contiguous run, and appends new keys as a single block. Records
    are never patched field by field: the whole row is replaced.
    """

    def __init__(
        self,
        store: TabularStore,
        to_row: Callable[[SyncRecord], list[Any]] = record_to_row,
    ):
        self.store = store
        self.to_row = to_row

    async def merge(self, records: list[SyncRecord]) -> MergeResult:
        """
        Merge a batch of records into the store.

        Raises:
            MergeWriteError: if reading or writing the store fails; the batch
                may be partially written and is safe to merge again
        """
        if not records:
            return MergeResult()

        # Last occurrence of a key wins; new keys keep first-seen order
        latest: dict[str, SyncRecord] = {}
        for record in records:
            latest[record.key] = record

        try:
            key_index = await self.store.read_key_index()
        except Exception as e:
            raise MergeWriteError(f"Failed to read key index: {e}") from e

        updates: dict[int, list[Any]] = {}
        inserts: list[list[Any]] = []
        for key, record in latest.items():
            row = self.to_row(record)
            if key in key_index:
                updates[key_index[key]] = row
            else:
                inserts.append(row)

        try:
            for group in contiguous_groups(list(updates)):
                await self.store.write_range(group[0], [updates[n] for n in group])
            if inserts:
                await self.store.append_rows(inserts)
        except Exception as e:
            raise MergeWriteError(f"Failed to write merged rows: {e}") from e

        result = MergeResult(inserted=len(inserts), updated=len(updates))
        logger.info(f"Merged {len(records)} records: {result.inserted} inserted, {result.updated} updated")
        return result
