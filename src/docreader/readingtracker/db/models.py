"""SQLAlchemy ORM models for local SQLite database.

Tables:
- reading_events: append-only log of completed section readings
"""

from datetime import datetime, timezone

from sqlalchemy import Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ReadingEventRecord(Base):
    """Reading event row. Rows are inserted and pruned, never updated."""

    __tablename__ = "reading_events"

    # Autoincrement id doubles as insertion order for tie-breaking
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_path: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    section_id: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    started_at_ms: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    ended_at_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[str] = mapped_column(
        String(32), default=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __repr__(self) -> str:
        return (
            f"<ReadingEventRecord(id={self.id}, document_path={self.document_path}, "
            f"section_id={self.section_id})>"
        )
