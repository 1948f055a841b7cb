"""SQLAlchemy ORM models for the Delivery bounded context."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from delivery.domain.value_objects import IdempotencyRecord, ProcessingOutcome
from infrastructure.database.models import Base, IsoDateTime


class IdempotencyRecordModel(Base):
    """ORM model for the idempotency_records table.

    Keyed by ``(subject_key, content_hash)``. Rows are overwritten on every
    ``mark_processed`` and are never deleted by reads.
    """

    __tablename__ = "idempotency_records"

    subject_key: Mapped[str] = mapped_column(String(512), primary_key=True)
    content_hash: Mapped[str] = mapped_column(String(128), primary_key=True)
    processed_at: Mapped[datetime] = mapped_column(IsoDateTime, nullable=False)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)

    def to_value_object(self) -> IdempotencyRecord:
        """Convert this ORM model to an IdempotencyRecord value object."""
        return IdempotencyRecord(
            subject_key=self.subject_key,
            content_hash=self.content_hash,
            processed_at=self.processed_at,
            outcome=ProcessingOutcome(self.outcome),
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<IdempotencyRecordModel("
            f"subject_key={self.subject_key}, "
            f"content_hash={self.content_hash}, "
            f"outcome={self.outcome}"
            f")>"
        )
