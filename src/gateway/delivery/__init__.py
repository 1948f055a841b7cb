"""Delivery bounded context.

Moves messages from the outbox through the processing and retry queues to
the downstream delivery sink with at-least-once guarantees.
"""
