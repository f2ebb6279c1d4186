"""
Task work protocol and result type.

Contract:
    ``TaskWork.execute()`` performs ONE attempt of one task and returns a
    ``TaskOutcome``, or raises.  The scheduler owns everything around it:
    dispatch, classification of raised errors, retry, timeout, cancellation.

Non-goals:
    - Work does NOT retry and does NOT catch its own failures.
    - Work is not preempted; a timed-out attempt keeps running until it
      returns, and its result is then ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sitemap_batch.domain.types import Task
from sitemap_config.schema import BatchConfiguration
from sitemap_ingestion.domain.types import ConversionStatistics


@dataclass(frozen=True)
class TaskOutcome:
    """Result returned by ``TaskWork.execute()``."""

    result_ref: str  # URL record set id
    statistics: ConversionStatistics


@runtime_checkable
class TaskWork(Protocol):
    """The unit of scheduled work: convert one file."""

    def execute(self, task: Task, config: BatchConfiguration) -> TaskOutcome:
        ...
