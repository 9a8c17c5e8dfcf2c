"""Row-oriented, key-addressable sheet storage."""

import logging
from typing import Any, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservesync.models import SheetRow

logger = logging.getLogger(__name__)


class TabularStore(Protocol):
    """
    A sheet of rows addressed by 1-based row number.

    The first cell of every row is the row's unique key.
    """

    async def read_key_index(self) -> dict[str, int]: ...

    async def read_all(self) -> list[list[Any]]: ...

    async def read_range(self, start_row: int, count: int) -> list[list[Any]]: ...

    async def write_range(self, start_row: int, rows: list[list[Any]]) -> None: ...

    async def append_rows(self, rows: list[list[Any]]) -> int: ...


class SqlTabularStore:
    """TabularStore kept in the `sheet_rows` table, one sheet per `sheet_name`."""

    def __init__(self, db: AsyncSession, sheet_name: str):
        self.db = db
        self.sheet_name = sheet_name

    async def read_key_index(self) -> dict[str, int]:
        """Map every key in the sheet to its row number."""
        result = await self.db.execute(
            select(SheetRow.key, SheetRow.row_number)
            .where(SheetRow.sheet_name == self.sheet_name)
            .order_by(SheetRow.row_number)
        )
        index: dict[str, int] = {}
        for key, row_number in result.all():
            # Keep the first row if a key was duplicated by an outside writer
            index.setdefault(key, row_number)
        return index

    async def read_all(self) -> list[list[Any]]:
        """Read every row, in row order."""
        result = await self.db.execute(
            select(SheetRow.cells)
            .where(SheetRow.sheet_name == self.sheet_name)
            .order_by(SheetRow.row_number)
        )
        return [list(cells) for cells in result.scalars().all()]

    async def read_range(self, start_row: int, count: int) -> list[list[Any]]:
        """Read `count` rows starting at `start_row`."""
        result = await self.db.execute(
            select(SheetRow.cells)
            .where(
                SheetRow.sheet_name == self.sheet_name,
                SheetRow.row_number >= start_row,
                SheetRow.row_number < start_row + count,
            )
            .order_by(SheetRow.row_number)
        )
        return [list(cells) for cells in result.scalars().all()]

    async def row_count(self) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(SheetRow).where(SheetRow.sheet_name == self.sheet_name)
        )
        return result.scalar() or 0

    async def write_range(self, start_row: int, rows: list[list[Any]]) -> None:
        """Overwrite the contiguous rows starting at `start_row`."""
        if not rows:
            return
        values = [
            {
                "sheet_name": self.sheet_name,
                "row_number": start_row + i,
                "key": str(row[0]),
                "cells": row,
            }
            for i, row in enumerate(rows)
        ]
        try:
            await self.db.execute(update(SheetRow), values)
            await self.db.commit()
            logger.debug(f"Wrote rows {start_row}..{start_row + len(rows) - 1} of {self.sheet_name}")
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def append_rows(self, rows: list[list[Any]]) -> int:
        """
        Append rows after the last row.

        Returns:
            Row number of the first appended row
        """
        try:
            result = await self.db.execute(
                select(func.max(SheetRow.row_number)).where(SheetRow.sheet_name == self.sheet_name)
            )
            first_row = (result.scalar() or 0) + 1
            if rows:
                self.db.add_all(
                    SheetRow(
                        sheet_name=self.sheet_name,
                        row_number=first_row + i,
                        key=str(row[0]),
                        cells=row,
                    )
                    for i, row in enumerate(rows)
                )
                await self.db.commit()
                logger.debug(f"Appended {len(rows)} rows to {self.sheet_name} at {first_row}")
            return first_row
        except SQLAlchemyError:
            await self.db.rollback()
            raise
