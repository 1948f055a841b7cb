"""JSON wire format for delivery envelopes.

Queue bodies are validated with pydantic so a malformed body is rejected
as a whole instead of producing a half-populated envelope.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from delivery.domain.value_objects import DeadLetterRecord, RetryableMessage
from delivery.ports.exceptions import MalformedMessageError


class RetryableMessageSchema(BaseModel):
    """Wire schema of a retry/processing queue body."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    payload: str
    correlation_id: str = Field(min_length=1)
    retry_count: int = Field(ge=0)
    created_at: datetime
    subject_key: str

    def to_domain(self) -> RetryableMessage:
        return RetryableMessage(
            payload=self.payload,
            correlation_id=self.correlation_id,
            retry_count=self.retry_count,
            created_at=self.created_at,
            subject_key=self.subject_key,
        )


class DeadLetterRecordSchema(RetryableMessageSchema):
    """Wire schema of a dead-letter queue body."""

    correlation_id: str
    failure_reason: str
    last_attempt_at: datetime

    def to_domain(self) -> DeadLetterRecord:
        return DeadLetterRecord(
            payload=self.payload,
            correlation_id=self.correlation_id,
            retry_count=self.retry_count,
            created_at=self.created_at,
            subject_key=self.subject_key,
            failure_reason=self.failure_reason,
            last_attempt_at=self.last_attempt_at,
        )


class JsonEnvelopeSerializer:
    """Serializes envelopes to and from JSON queue bodies."""

    def serialize(self, message: RetryableMessage) -> str:
        return RetryableMessageSchema(
            payload=message.payload,
            correlation_id=message.correlation_id,
            retry_count=message.retry_count,
            created_at=message.created_at,
            subject_key=message.subject_key,
        ).model_dump_json()

    def deserialize(self, body: str) -> RetryableMessage:
        """Parse a queue body.

        Raises:
            MalformedMessageError: If the body is not a valid envelope
        """
        try:
            return RetryableMessageSchema.model_validate_json(body).to_domain()
        except ValidationError as e:
            raise MalformedMessageError(
                f"Invalid envelope ({e.error_count()} errors)"
            ) from e

    def serialize_dead_letter(self, record: DeadLetterRecord) -> str:
        return DeadLetterRecordSchema(
            payload=record.payload,
            correlation_id=record.correlation_id,
            retry_count=record.retry_count,
            created_at=record.created_at,
            subject_key=record.subject_key,
            failure_reason=record.failure_reason,
            last_attempt_at=record.last_attempt_at,
        ).model_dump_json()

    def deserialize_dead_letter(self, body: str) -> DeadLetterRecord:
        """Parse a dead-letter body.

        Raises:
            MalformedMessageError: If the body is not a valid record
        """
        try:
            return DeadLetterRecordSchema.model_validate_json(body).to_domain()
        except ValidationError as e:
            raise MalformedMessageError(
                f"Invalid dead-letter record ({e.error_count()} errors)"
            ) from e
