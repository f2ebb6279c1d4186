"""
Blob store collaborators.

Contract:
    ``save(key, data)`` stores bytes, replacing any previous value, and
    raises StorageError on failure.  ``load(key)`` returns the bytes or
    raises BlobNotFoundError.  ``delete(key)`` returns True if something was
    removed.  ``list(prefix)`` returns the sorted keys starting with
    ``prefix`` (pass a batch id to enumerate one batch).

Implementations:
    InMemoryBlobStore   -- thread-safe dict; default for tests and previews.
    FileSystemBlobStore -- keys map to paths below a root directory.
    SqlBlobStore        -- rows in the ``sitemap_blobs`` table via SQLAlchemy.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from sitemap_kernel.db.engine import (
    create_tables,
    engine_for_url,
    session_factory_for,
    session_scope,
)
from sitemap_kernel.exceptions import BlobNotFoundError, StorageError
from sitemap_kernel.logging_config import get_logger
from sitemap_kernel.models.blob import BlobModel

logger = get_logger("services.blob_store")


@runtime_checkable
class BlobStore(Protocol):
    """Durable storage for uploads, record sets and sitemap documents."""

    def save(self, key: str, data: bytes) -> None: ...

    def load(self, key: str) -> bytes: ...

    def delete(self, key: str) -> bool: ...

    def list(self, prefix: str) -> list[str]: ...

    def exists(self, key: str) -> bool: ...


def _check_key(key: str) -> str:
    if not key or key.startswith("/") or ".." in key.split("/"):
        raise StorageError(key, "invalid blob key")
    return key


# =============================================================================
# In-memory
# =============================================================================


class InMemoryBlobStore:
    """Blob store backed by a dict guarded by a lock."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def save(self, key: str, data: bytes) -> None:
        _check_key(key)
        with self._lock:
            self._blobs[key] = bytes(data)

    def load(self, key: str) -> bytes:
        with self._lock:
            try:
                return self._blobs[key]
            except KeyError:
                raise BlobNotFoundError(key) from None

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._blobs.pop(key, None) is not None

    def list(self, prefix: str) -> list[str]:
        prefix = str(prefix)
        with self._lock:
            return sorted(k for k in self._blobs if k.startswith(prefix))

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._blobs


# =============================================================================
# Filesystem
# =============================================================================


class FileSystemBlobStore:
    """Blob store that writes each key as a file below ``root``."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        _check_key(key)
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise StorageError(key, "key escapes store root")
        return path

    def save(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as exc:
            raise StorageError(key, str(exc)) from exc

    def load(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFoundError(key) from None
        except OSError as exc:
            raise StorageError(key, str(exc)) from exc

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(key, str(exc)) from exc
        return True

    def list(self, prefix: str) -> list[str]:
        prefix = str(prefix)
        keys = []
        for path in self._root.rglob("*"):
            if path.is_file() and not path.name.endswith(".tmp"):
                key = path.relative_to(self._root).as_posix()
                if key.startswith(prefix):
                    keys.append(key)
        return sorted(keys)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()


# =============================================================================
# SQLAlchemy
# =============================================================================


class SqlBlobStore:
    """Blob store persisted in the ``sitemap_blobs`` table."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, database_url: str, create: bool = True) -> SqlBlobStore:
        """Open a store on ``database_url``, creating the blob table unless ``create`` is False."""
        engine = engine_for_url(database_url)
        if create:
            create_tables(engine)
        return cls(session_factory_for(engine))

    def save(self, key: str, data: bytes) -> None:
        _check_key(key)
        try:
            with session_scope(self._session_factory) as session:
                row = session.execute(
                    select(BlobModel).where(BlobModel.key == key)
                ).scalar_one_or_none()
                if row is None:
                    session.add(BlobModel(key=key, content=bytes(data), size=len(data)))
                else:
                    row.content = bytes(data)
                    row.size = len(data)
        except SQLAlchemyError as exc:
            raise StorageError(key, str(exc)) from exc

    def load(self, key: str) -> bytes:
        try:
            with session_scope(self._session_factory) as session:
                content = session.execute(
                    select(BlobModel.content).where(BlobModel.key == key)
                ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StorageError(key, str(exc)) from exc
        if content is None:
            raise BlobNotFoundError(key)
        return content

    def delete(self, key: str) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(delete(BlobModel).where(BlobModel.key == key))
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            raise StorageError(key, str(exc)) from exc

    def list(self, prefix: str) -> list[str]:
        prefix = str(prefix)
        try:
            with session_scope(self._session_factory) as session:
                keys = session.execute(
                    select(BlobModel.key)
                    .where(BlobModel.key.startswith(prefix, autoescape=True))
                    .order_by(BlobModel.key)
                ).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError(prefix, str(exc)) from exc
        return list(keys)

    def exists(self, key: str) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                found = session.execute(
                    select(BlobModel.id).where(BlobModel.key == key)
                ).first()
        except SQLAlchemyError as exc:
            raise StorageError(key, str(exc)) from exc
        return found is not None
