"""SheetRow model backing the row-oriented reservation mirror."""

from typing import Any

from sqlalchemy import JSON, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from reservesync.database import Base


class SheetRow(Base):
    """
    One row of a named sheet.

    `row_number` is the 1-based position inside the sheet; `cells[0]` always
    equals `key`, the record's unique identity.
    """

    __tablename__ = "sheet_rows"

    sheet_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    row_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    cells: Mapped[list[Any]] = mapped_column(JSON, nullable=False)

    __table_args__ = (Index("idx_sheet_rows_key", "sheet_name", "key"),)

    def __repr__(self) -> str:
        return f"<SheetRow {self.sheet_name}:{self.row_number} {self.key}>"
