"""
Pure domain layer for the kernel.

Holds the clock abstraction; no ORM, database or filesystem dependencies.
"""

from sitemap_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SequentialClock,
    SystemClock,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SequentialClock",
    "SystemClock",
]
