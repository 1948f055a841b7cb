"""Exceptions for the Delivery bounded context.

Per-message failures are reported as values (``TransportResult``,
``DeliveryResult``, ``MessageProcessingResult``). The exceptions below mark
conditions a caller cannot handle message by message.
"""


class MalformedMessageError(Exception):
    """Raised when a queue body is not a valid delivery envelope.

    Malformed bodies never become valid, so they are dead-lettered
    immediately instead of retried.
    """

    pass


class TransientTransportError(Exception):
    """Raised when a queue could not be read for the current sweep.

    The next sweep tries again; no lease was taken.
    """

    def __init__(self, queue: str, message: str):
        super().__init__(f"Transport error on queue '{queue}': {message}")
        self.queue = queue


class TransportSetupError(Exception):
    """Raised when a queue cannot be created or reached at sweep start."""

    def __init__(self, queue: str, message: str):
        super().__init__(f"Queue '{queue}' is unavailable: {message}")
        self.queue = queue
