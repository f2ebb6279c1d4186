"""
Module: sitemap_kernel.models.blob
Responsibility: ORM persistence for blob store entries (uploaded files,
    URL record sets, rendered sitemap documents, batch metadata).
Architecture position: Kernel > Models.  Imports only from db/base.py.
"""

from sqlalchemy import Index, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from sitemap_kernel.db.base import TrackedBase


class BlobModel(TrackedBase):
    """One stored blob addressed by a slash-separated key."""

    __tablename__ = "sitemap_blobs"

    __table_args__ = (
        Index("idx_sitemap_blob_key", "key", unique=True),
    )

    key: Mapped[str] = mapped_column(String(512), nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<BlobModel {self.key} ({self.size} bytes)>"
