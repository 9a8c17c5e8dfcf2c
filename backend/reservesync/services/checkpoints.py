"""Sync checkpoints persisted in a TTL key/value cache."""

import hashlib
import logging
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.models import CacheEntry
from reservesync.schemas.sync import Checkpoint

logger = logging.getLogger(__name__)

CHECKPOINT_PREFIX = "reservation_sync"


class CheckpointCache(Protocol):
    """Process-wide string cache with per-key expiry."""

    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def remove(self, key: str) -> None: ...


class SqlCheckpointCache:
    """CheckpointCache kept in the `cache_entries` table."""

    def __init__(self, db: AsyncSession, now: Callable[[], datetime] | None = None):
        self.db = db
        self._now = now or (lambda: datetime.now(UTC))

    async def get(self, key: str) -> str | None:
        entry = await self.db.get(CacheEntry, key, populate_existing=True)
        if entry is None:
            return None
        expires_at = entry.expires_at
        if expires_at.tzinfo is None:
            # SQLite drops the offset
            expires_at = expires_at.replace(tzinfo=UTC)
        if expires_at <= self._now():
            return None
        return entry.value

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._now() + timedelta(seconds=ttl_seconds)
        entry = await self.db.get(CacheEntry, key, populate_existing=True)
        if entry is None:
            self.db.add(CacheEntry(key=key, value=value, expires_at=expires_at))
        else:
            entry.value = value
            entry.expires_at = expires_at
        await self.db.commit()

    async def remove(self, key: str) -> None:
        await self.db.execute(delete(CacheEntry).where(CacheEntry.key == key))
        await self.db.commit()


def window_key(date_from: date, date_to: date, clinic_id: str = "") -> str:
    """Stable cache key for the query filter of one sync window."""
    digest = hashlib.sha256(
        f"{clinic_id}|{date_from.isoformat()}|{date_to.isoformat()}".encode()
    ).hexdigest()
    return f"{CHECKPOINT_PREFIX}:{digest[:16]}"


class CheckpointStore:
    """Loads and saves `Checkpoint` records through a CheckpointCache."""

    def __init__(self, cache: CheckpointCache, ttl_seconds: int = 3600):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def load(self, key: str) -> Checkpoint | None:
        """Return the live checkpoint for a window, ignoring unreadable values."""
        raw = await self.cache.get(key)
        if raw is None:
            return None
        try:
            return Checkpoint.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Discarding unreadable checkpoint for {key}")
            return None

    async def save(self, checkpoint: Checkpoint) -> None:
        checkpoint.updated_at = datetime.now(UTC)
        await self.cache.put(checkpoint.window_key, checkpoint.model_dump_json(), self.ttl_seconds)
        logger.info(
            f"Checkpoint saved for {checkpoint.window_key}: offset={checkpoint.offset}, "
            f"accumulated={checkpoint.accumulated_count}"
        )

    async def clear(self, key: str) -> None:
        await self.cache.remove(key)
