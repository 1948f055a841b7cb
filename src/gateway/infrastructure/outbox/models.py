"""SQLAlchemy ORM models for the outbox pattern.

This module provides the database model for the outbox table used in
the transactional outbox pattern.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, IsoDateTime
from shared_kernel.outbox.value_objects import OutboxEntry, OutboxStatus


class OutboxEntryModel(Base):
    """ORM model for the outbox table.

    Stores outbound messages until they have been handed to the processing
    queue. Every mutation bumps ``version``; writers compare it to detect
    concurrent updates from other dispatcher instances.
    """

    __tablename__ = "outbox_entries"
    __table_args__ = (Index("idx_outbox_entries_status_created", "status", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    message_type: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(IsoDateTime, nullable=False)
    dispatched_at: Mapped[datetime | None] = mapped_column(IsoDateTime, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correlation_id: Mapped[str] = mapped_column(String(255), nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(IsoDateTime, nullable=True)
    abandoned_at: Mapped[datetime | None] = mapped_column(IsoDateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    def to_value_object(self) -> OutboxEntry:
        """Convert this ORM model to an OutboxEntry value object.

        Returns:
            An immutable OutboxEntry with all fields copied from this model.
        """
        return OutboxEntry(
            id=self.id,
            message_type=self.message_type,
            payload=self.payload,
            status=OutboxStatus(self.status),
            created_at=self.created_at,
            correlation_id=self.correlation_id,
            retry_count=self.retry_count,
            version=self.version,
            dispatched_at=self.dispatched_at,
            last_error=self.last_error,
            next_retry_at=self.next_retry_at,
            abandoned_at=self.abandoned_at,
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<OutboxEntryModel("
            f"id={self.id}, "
            f"message_type={self.message_type}, "
            f"status={self.status}, "
            f"retry_count={self.retry_count}, "
            f"version={self.version}"
            f")>"
        )
