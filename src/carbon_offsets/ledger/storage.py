"""Key-value persistence backends for the offset ledger.

The ledger mirrors its state into three named buckets. Stores raise
:class:`~carbon_offsets.errors.PersistenceUnavailable` on I/O failure; the
ledger treats persistence as best-effort and keeps serving from memory.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Final, Protocol, runtime_checkable

import portalocker

from carbon_offsets.errors import PersistenceUnavailable

logger = logging.getLogger(__name__)

__all__ = [
    "BUCKET_AUTO_OFFSET",
    "BUCKET_HISTORY",
    "BUCKET_STATS",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
]

BUCKET_STATS: Final[str] = "carbonStats"
BUCKET_HISTORY: Final[str] = "recentOffsets"
BUCKET_AUTO_OFFSET: Final[str] = "autoOffsetEnabled"


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal named-bucket store used by the ledger."""

    def get(self, bucket: str, default: object = None) -> object:
        """Return the value stored in ``bucket`` or ``default``."""

    def set(self, bucket: str, value: object) -> None:
        """Replace the value stored in ``bucket``."""

    def update(self, values: Mapping[str, object]) -> None:
        """Replace several buckets in one write."""


class MemoryStore:
    """In-process store; values are deep-copied on the way in and out."""

    def __init__(self, initial: dict[str, object] | None = None) -> None:
        self._data: dict[str, object] = copy.deepcopy(initial) if initial else {}

    def get(self, bucket: str, default: object = None) -> object:
        if bucket not in self._data:
            return default
        return copy.deepcopy(self._data[bucket])

    def set(self, bucket: str, value: object) -> None:
        self._data[bucket] = copy.deepcopy(value)

    def update(self, values: Mapping[str, object]) -> None:
        self._data.update(copy.deepcopy(dict(values)))


class _CorruptDocument(PersistenceUnavailable):
    """The store document exists but does not hold a JSON object."""


def _fsync_directory(path: Path) -> None:
    """Durably flush directory metadata when supported by the platform."""
    if os.name == "nt":  # pragma: no cover - Windows does not need dir fsync
        return
    flags = getattr(os, "O_DIRECTORY", None)
    if flags is None:  # pragma: no cover - platform without O_DIRECTORY
        return
    fd = os.open(str(path), flags)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


@contextmanager
def _acquire_store_lock(store_path: Path) -> Iterator[IO[bytes]]:
    """Hold an exclusive cross-process lock for a store rewrite."""
    lock_path = store_path.with_name(store_path.name + ".lock")
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_fp = lock_path.open("a+b")
    except OSError as exc:
        raise PersistenceUnavailable(f"Failed to open {lock_path}: {exc}") from exc
    with lock_fp:
        try:
            portalocker.lock(lock_fp, portalocker.LOCK_EX)
        except (portalocker.LockException, OSError) as exc:
            raise PersistenceUnavailable(f"Failed to lock {lock_path}: {exc}") from exc
        try:
            yield lock_fp
        finally:
            try:
                portalocker.unlock(lock_fp)
            except (portalocker.LockException, OSError) as exc:
                logger.warning(
                    "Failed to unlock store",
                    extra={"lock_path": str(lock_path), "error": str(exc)},
                )


class JsonFileStore:
    """Store every bucket in a single JSON document on disk.

    Writes go to a temporary file in the same directory followed by
    ``os.replace`` so readers never observe a partially written document.
    Rewrites hold an exclusive lock on ``<path>.lock`` so separate
    processes sharing the document do not lose each other's updates.

    A document that is not a JSON object makes :meth:`get` raise. The next
    write moves it aside to ``<path>.corrupt`` and starts a fresh document.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def lock_path(self) -> Path:
        return self._path.with_name(self._path.name + ".lock")

    @property
    def quarantine_path(self) -> Path:
        return self._path.with_name(self._path.name + ".corrupt")

    def get(self, bucket: str, default: object = None) -> object:
        with self._lock:
            document = self._read_document()
        return document.get(bucket, default)

    def set(self, bucket: str, value: object) -> None:
        self.update({bucket: value})

    def update(self, values: Mapping[str, object]) -> None:
        with self._lock, _acquire_store_lock(self._path):
            try:
                document = self._read_document()
            except _CorruptDocument as exc:
                document = self._quarantine(exc)
            document.update(values)
            self._write_document(document)

    def _quarantine(self, error: _CorruptDocument) -> dict[str, object]:
        try:
            os.replace(self._path, self.quarantine_path)
        except OSError as exc:
            raise PersistenceUnavailable(
                f"Failed to move aside corrupt store {self._path}: {exc}"
            ) from exc
        logger.warning(
            "Corrupt store document moved aside",
            extra={
                "path": str(self._path),
                "quarantine_path": str(self.quarantine_path),
                "error": str(error),
            },
        )
        return {}

    def _read_document(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceUnavailable(f"Failed to read {self._path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise _CorruptDocument(f"Store document {self._path} is not UTF-8") from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise _CorruptDocument(
                f"Store document {self._path} is not valid JSON"
            ) from exc
        if not isinstance(data, dict):
            raise _CorruptDocument(
                f"Store document {self._path} must be a JSON object"
            )
        return data

    def _write_document(self, document: dict[str, object]) -> None:
        temp_path: Path | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=str(self._path.parent), delete=False
            ) as tmp:
                temp_path = Path(tmp.name)
                json.dump(document, tmp, separators=(",", ":"))
                tmp.flush()
                try:
                    os.fsync(tmp.fileno())
                except OSError as exc:
                    logger.warning(
                        "Failed to fsync store temp file",
                        extra={"error": str(exc)},
                    )
            os.replace(temp_path, self._path)
        except (OSError, TypeError, ValueError) as exc:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink(missing_ok=True)
            raise PersistenceUnavailable(
                f"Failed to write {self._path}: {exc}"
            ) from exc

        try:
            _fsync_directory(self._path.parent)
        except OSError as exc:
            logger.warning(
                "Failed to fsync store directory",
                extra={"error": str(exc)},
            )
