"""Application layer for the Delivery bounded context."""
