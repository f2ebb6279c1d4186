"""Database layer: declarative base and engine/session construction."""

from sitemap_kernel.db.base import Base, TrackedBase
from sitemap_kernel.db.engine import (
    create_tables,
    engine_for_url,
    session_factory_for,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "create_tables",
    "engine_for_url",
    "session_factory_for",
    "session_scope",
]
