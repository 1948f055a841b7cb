"""Periodic sweep scheduling for background jobs."""

from infrastructure.scheduling.observability import (
    DefaultSweepRunnerProbe,
    SweepRunnerProbe,
)
from infrastructure.scheduling.runner import SweepRunner

__all__ = ["DefaultSweepRunnerProbe", "SweepRunner", "SweepRunnerProbe"]
