"""
Adapter between raw Medical Force reservations and reservation sheet rows.

Raw API items are loosely shaped (nested `visitor`, `menus` and `operations`
objects on some endpoints, flat fields on others); everything downstream of
this module works with `SyncRecord` and flat row cells.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime
from functools import partial
from typing import Any
from zoneinfo import ZoneInfo

from reservesync.schemas.sync import SyncRecord

DEFAULT_TIMEZONE = "Asia/Tokyo"

RESERVATION_COLUMNS = [
    "reservation_id",
    "visitor_id",
    "visitor_name",
    "date",
    "start_time",
    "end_time",
    "menu",
    "staff_id",
    "staff_name",
    "status",
    "memo",
    "room_id",
    "room_name",
    "created_at",
    "updated_at",
]

STATUS_LABELS = {
    "reserved": "予約済み",
    "confirmed": "確認済み",
    "arrived": "来院済み",
    "in_treatment": "施術中",
    "completed": "完了",
    "cancelled": "キャンセル",
    "no_show": "無断キャンセル",
}


def reservation_key(item: dict[str, Any]) -> str | None:
    """Return the reservation's identity, or None if the item has none."""
    key = item.get("id") or item.get("reservation_id")
    return str(key) if key else None


def to_sync_record(
    item: dict[str, Any], window_start: date, window_end: date
) -> SyncRecord | None:
    """Wrap a raw API item as a SyncRecord; items without an id are rejected."""
    key = reservation_key(item)
    if not key:
        return None
    return SyncRecord(
        key=key,
        payload=item,
        window_start=window_start,
        window_end=window_end,
    )


def parse_datetime(value: Any) -> datetime | None:
    """Parse an API timestamp; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def status_label(status: str | None) -> str:
    """Display label for an API status code."""
    if not status:
        return STATUS_LABELS["reserved"]
    return STATUS_LABELS.get(status, status)


def _local(value: Any, tz: ZoneInfo) -> datetime | None:
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    return parsed.astimezone(tz)


def _first(items: Any) -> dict[str, Any]:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def record_to_row(record: SyncRecord, timezone: str = DEFAULT_TIMEZONE) -> list[str]:
    """
    Flatten a record into sheet cells, in RESERVATION_COLUMNS order.

    The first cell is always the record key. Times are shown in `timezone`.
    """
    item = record.payload
    visitor = item.get("visitor") or {}
    operation = _first(item.get("operations"))
    staff = operation.get("nominated_staff") or {}
    room = operation.get("room") or {}
    tz = ZoneInfo(timezone)

    start_at = _local(item.get("start_at"), tz)
    end_at = _local(item.get("end_at"), tz)
    created_at = _local(item.get("created_at"), tz)
    updated_at = _local(item.get("updated_at"), tz)

    menu_name = item.get("menu_name") or _first(item.get("menus")).get("name") or ""

    return [
        record.key,
        str(visitor.get("id") or item.get("visitor_id") or ""),
        visitor.get("name") or item.get("visitor_name") or "",
        start_at.strftime("%Y-%m-%d") if start_at else "",
        start_at.strftime("%H:%M") if start_at else "",
        end_at.strftime("%H:%M") if end_at else "",
        menu_name,
        str(staff.get("id") or ""),
        item.get("staff_name") or staff.get("name") or "",
        status_label(item.get("status")),
        item.get("memo") or item.get("note") or "",
        str(room.get("id") or operation.get("room_id") or ""),
        room.get("name") or operation.get("room_name") or "",
        created_at.strftime("%Y-%m-%d %H:%M:%S") if created_at else "",
        updated_at.strftime("%Y-%m-%d %H:%M:%S") if updated_at else "",
    ]


def row_converter(timezone: str) -> Callable[[SyncRecord], list[str]]:
    """`record_to_row` bound to a display timezone."""
    return partial(record_to_row, timezone=timezone)
