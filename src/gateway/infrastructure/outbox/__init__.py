"""Infrastructure layer for the outbox pattern.

Contains the SQLAlchemy model, the store implementation, and the dispatcher
that moves entries onto the processing queue.
"""

from infrastructure.outbox.dispatcher import OutboxDispatcher
from infrastructure.outbox.models import OutboxEntryModel
from infrastructure.outbox.repository import OutboxStore

__all__ = ["OutboxDispatcher", "OutboxEntryModel", "OutboxStore"]
