"""
Module: sitemap_kernel.db.base
Responsibility: Declarative bases for the ORM models behind SqlBlobStore.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; MUST NOT import from models/ or services/.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Uuid, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Declarative base: uuid4 primary key, timezone-aware datetimes, 64-bit ints.

    ``Uuid(as_uuid=True)`` is a native UUID column on PostgreSQL and CHAR(32)
    on SQLite.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: Uuid(as_uuid=True),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Abstract base adding server-side ``created_at`` / ``updated_at``."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
    )
