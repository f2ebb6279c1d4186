"""
Sitemap Kernel - shared infrastructure for the sitemap pipeline.

Provides:
- Structured JSON logging with batch/task context propagation
- Typed exception hierarchy with machine-readable codes and error categories
- Injectable clock abstraction
- Blob store collaborators (in-memory, filesystem, SQLAlchemy)
"""

__version__ = "0.1.0"
