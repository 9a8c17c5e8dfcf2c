"""Pytest fixtures for ReserveSync backend tests."""

from collections.abc import AsyncGenerator
from datetime import date
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import reservesync.models  # noqa: F401
from reservesync.config import Settings
from reservesync.database import Base, get_db
from reservesync.exceptions import ReserveSyncError
from reservesync.main import app
from reservesync.schemas.sync import PageResult
from reservesync.services.reservation_adapter import to_sync_record


# Test database URL - in-memory SQLite shared by every connection of the engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        medical_force_base_url="https://mf.test",
        medical_force_api_token="test_token",
        clinic_id="clinic-1",
        sync_page_size=500,
        sync_max_page_size=500,
        sync_page_delay_ms=0,
        sync_budget_ms=270_000,
        sync_safety_margin_ms=60_000,
        timezone="Asia/Tokyo",
        ticket_cost_per_reservation=1,
        ticket_low_balance_threshold=1,
        debug=True,
    )


@pytest_asyncio.fixture
async def async_engine():
    """Create async engine with the full schema."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


def make_reservation(index: int, **overrides: Any) -> dict[str, Any]:
    """Raw reservation as returned by the scheduling API."""
    reservation = {
        "id": f"R{index:05d}",
        "visitor": {"id": f"V{index:05d}", "name": f"Visitor {index}"},
        "start_at": "2024-01-05T01:00:00Z",
        "end_at": "2024-01-05T02:00:00Z",
        "menus": [{"id": "M-STEM", "name": "幹細胞点滴"}],
        "operations": [
            {
                "nominated_staff": {"id": "S1", "name": "Dr. Sato"},
                "room": {"id": "RM1", "name": "Room 1"},
            }
        ],
        "status": "reserved",
        "memo": "",
        "created_at": "2023-12-20T03:00:00Z",
        "updated_at": "2023-12-20T03:00:00Z",
    }
    reservation.update(overrides)
    return reservation


class InMemoryTabularStore:
    """TabularStore over a list of rows; records every write call."""

    def __init__(self, rows: list[list[Any]] | None = None):
        self.rows = [list(row) for row in rows or []]
        self.write_calls: list[tuple[int, int]] = []
        self.append_calls: list[int] = []
        self.fail_writes = False

    async def read_key_index(self) -> dict[str, int]:
        index: dict[str, int] = {}
        for row_number, row in enumerate(self.rows, start=1):
            index.setdefault(str(row[0]), row_number)
        return index

    async def read_all(self) -> list[list[Any]]:
        return [list(row) for row in self.rows]

    async def read_range(self, start_row: int, count: int) -> list[list[Any]]:
        return [list(row) for row in self.rows[start_row - 1 : start_row - 1 + count]]

    async def write_range(self, start_row: int, rows: list[list[Any]]) -> None:
        if self.fail_writes:
            raise OSError("store unavailable")
        self.write_calls.append((start_row, len(rows)))
        for i, row in enumerate(rows):
            self.rows[start_row - 1 + i] = list(row)

    async def append_rows(self, rows: list[list[Any]]) -> int:
        if self.fail_writes:
            raise OSError("store unavailable")
        self.append_calls.append(len(rows))
        first_row = len(self.rows) + 1
        self.rows.extend(list(row) for row in rows)
        return first_row

    def keys(self) -> list[str]:
        return [str(row[0]) for row in self.rows]


class InMemoryCheckpointCache:
    """CheckpointCache over a dict, ignoring expiry."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self.values[key] = value
        self.ttls[key] = ttl_seconds

    async def remove(self, key: str) -> None:
        self.values.pop(key, None)
        self.ttls.pop(key, None)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """
    Serves a fixed list of reservations page by page.

    `pages` overrides the served items per offset (for pagination drift);
    `errors` raises an exception when a given offset is requested.
    """

    def __init__(
        self,
        items: list[dict[str, Any]] | None = None,
        with_count: bool = True,
        pages: dict[int, list[dict[str, Any]]] | None = None,
        errors: dict[int, ReserveSyncError] | None = None,
        clock: FakeClock | None = None,
        seconds_per_page: float = 0.0,
    ):
        self.items = items or []
        self.with_count = with_count
        self.pages = pages or {}
        self.errors = dict(errors or {})
        self.clock = clock
        self.seconds_per_page = seconds_per_page
        self.offsets: list[int] = []

    async def fetch_page(self, date_from: date, date_to: date, limit: int, offset: int) -> PageResult:
        self.offsets.append(offset)
        if self.clock is not None:
            self.clock.advance(self.seconds_per_page)
        if offset in self.errors:
            raise self.errors.pop(offset)

        items = self.pages.get(offset, self.items[offset : offset + limit])
        records = [to_sync_record(item, date_from, date_to) for item in items]
        return PageResult(
            records=[record for record in records if record is not None],
            total_count=len(self.items) if self.with_count else None,
            raw_count=len(items),
        )


@pytest.fixture
def tabular_store() -> InMemoryTabularStore:
    return InMemoryTabularStore()


@pytest.fixture
def checkpoint_cache() -> InMemoryCheckpointCache:
    return InMemoryCheckpointCache()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_reservations() -> list[dict[str, Any]]:
    """1200 reservations: pages of 500, 500 and 200."""
    return [make_reservation(i) for i in range(1200)]


@pytest.fixture
def sync_window() -> tuple[date, date]:
    return date(2024, 1, 1), date(2024, 1, 14)
