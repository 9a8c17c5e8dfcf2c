"""CacheEntry model backing the TTL key/value checkpoint cache."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from reservesync.database import Base


class CacheEntry(Base):
    """
    A cached string value that stops being visible after `expires_at`.

    Used to persist sync checkpoints between scheduled invocations.
    """

    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(250), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<CacheEntry {self.key} until {self.expires_at}>"
