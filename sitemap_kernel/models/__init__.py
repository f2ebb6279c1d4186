"""ORM models for the kernel."""

from sitemap_kernel.models.blob import BlobModel

__all__ = ["BlobModel"]
