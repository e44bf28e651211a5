"""File-backed persistence engine.

The engine holds the authoritative in-memory copy of every collection of one
store and is the only writer of its backing files.

File Format:
    - One ``<collection>.json`` file per collection in the data directory,
      holding the JSON array of that collection's documents in stored order.
    - Legacy layout: a single ``protodb.json`` object mapping collection name
      to document array. It is split into per-collection files on the first
      load and then deleted.

Write Ordering:
    Every write (flush or file removal) is a request on one asyncio queue,
    consumed by a single writer task. Requests are applied strictly in
    submission order, and a caller's ``flush()`` returns once its request
    and every request ahead of it have completed. A flush snapshots every
    dirty collection on the event loop, so in-memory mutations made before
    the call are always included, and performs the file I/O in a worker
    thread.

Crash Safety:
    Each collection file is replaced atomically: the new content goes to a
    temporary file in the same directory which is flushed, optionally
    fsync'ed, and renamed over the target. Readers only ever see a complete
    old or a complete new version.

Concurrency:
    Single process only. Concurrent external writers to the same data
    directory are not detected and will corrupt state.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import os
import re
import tempfile
import time
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from protodb.domain.errors import ProtoDBError
from protodb.domain.value_objects import Document, to_iso
from protodb.infrastructure.logging import get_logger
from protodb.infrastructure.metrics import MetricsRegistry, get_metrics
from protodb.infrastructure.tracing import trace_span

logger = get_logger(__name__, component="file_engine")


LEGACY_FILE_NAME = "protodb.json"
COLLECTION_SUFFIX = ".json"

# Collection names double as file names
_COLLECTION_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


class _WriteKind(Enum):
    """Kinds of request handled by the writer task."""

    FLUSH = "flush"
    REMOVE = "remove"


@dataclass
class _WriteRequest:
    """A queued write, completed through its future."""

    kind: _WriteKind
    future: asyncio.Future[None]
    collection: str | None = None


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def validate_collection_name(name: str) -> None:
    """Reject names that cannot be used as a collection file name.

    Raises:
        ProtoDBError: If the name is empty, hidden, or has path characters.
    """
    if not isinstance(name, str) or not _COLLECTION_NAME.match(name):
        raise ProtoDBError(f"Invalid collection name: {name!r}")
    if name + COLLECTION_SUFFIX == LEGACY_FILE_NAME:
        raise ProtoDBError(f"Collection name {name!r} is reserved")


class FileEngine:
    """In-memory collections persisted as one JSON file per collection.

    Attributes:
        data_dir: Directory holding the collection files.
        fsync: Whether files are fsync'ed before being renamed into place.
    """

    def __init__(
        self,
        data_dir: str | Path,
        fsync: bool = True,
        indent: int | None = 2,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            data_dir: Directory for collection files (created on load).
            fsync: fsync files (and the directory) on every write.
            indent: JSON indentation, None for compact output.
            metrics: Metrics registry (defaults to the global one).
        """
        self._data_dir = Path(data_dir).resolve()
        self._fsync = fsync
        self._indent = indent
        self._metrics = metrics or get_metrics()

        self._collections: dict[str, list[Document]] = {}
        self._dirty: set[str] = set()

        # Single-writer state (created lazily on the running loop)
        self._queue: asyncio.Queue[_WriteRequest] | None = None
        self._writer: asyncio.Task[None] | None = None

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def dirty_collections(self) -> frozenset[str]:
        """Collections with changes not yet handed to the writer."""
        return frozenset(self._dirty)

    def collection_path(self, name: str) -> Path:
        return self._data_dir / f"{name}{COLLECTION_SUFFIX}"

    # -- Loading ---------------------------------------------------------

    async def load(self) -> None:
        """Read every collection file into memory.

        Migrates the legacy single-file layout first when present. A file
        that disappears between listing and reading is treated as an empty
        collection and written back immediately. Any other read or decode
        error propagates.
        """
        await asyncio.to_thread(self._data_dir.mkdir, parents=True, exist_ok=True)

        legacy_path = self._data_dir / LEGACY_FILE_NAME
        if await asyncio.to_thread(legacy_path.is_file):
            await self._migrate_legacy(legacy_path)

        missing: list[str] = []
        for name in await asyncio.to_thread(self._list_collection_files):
            if name in self._collections:
                continue
            try:
                docs = await asyncio.to_thread(self._read_collection, name)
            except FileNotFoundError:
                docs = []
                missing.append(name)
            self._collections[name] = docs

        if missing:
            logger.warning("collection_files_missing", collections=missing)
            self._dirty.update(missing)
            await self.flush()

        logger.info(
            "store_loaded",
            data_dir=str(self._data_dir),
            collections=len(self._collections),
            documents=sum(len(docs) for docs in self._collections.values()),
        )

    def _list_collection_files(self) -> list[str]:
        names = []
        for path in sorted(self._data_dir.glob(f"*{COLLECTION_SUFFIX}")):
            if path.name.startswith(".") or path.name == LEGACY_FILE_NAME:
                continue
            names.append(path.stem)
        return names

    def _read_collection(self, name: str) -> list[Document]:
        path = self.collection_path(name)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ProtoDBError(f"Collection file {path} does not hold a JSON array")
        return data

    async def _migrate_legacy(self, legacy_path: Path) -> None:
        """Split a legacy single-file store into per-collection files."""

        def read_legacy() -> Any:
            with open(legacy_path, "r", encoding="utf-8") as f:
                return json.load(f)

        data = await asyncio.to_thread(read_legacy)
        if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
            raise ProtoDBError(f"Legacy store {legacy_path} is not a collection mapping")

        existing = set(await asyncio.to_thread(self._list_collection_files))
        migrated = []
        for name, docs in data.items():
            validate_collection_name(name)
            if name in existing:
                logger.warning("legacy_collection_skipped", collection=name)
                continue
            self._collections[name] = docs
            self._dirty.add(name)
            migrated.append(name)

        await self.flush()
        await asyncio.to_thread(legacy_path.unlink)
        logger.info("legacy_store_migrated", path=str(legacy_path), collections=migrated)

    # -- Collections -----------------------------------------------------

    def has_collection(self, name: str) -> bool:
        return name in self._collections

    def get_collection(self, name: str) -> list[Document]:
        """The live document list of a collection (KeyError if absent)."""
        return self._collections[name]

    def list_collections(self) -> list[str]:
        return list(self._collections)

    def create_collection(self, name: str) -> list[Document]:
        """Create an empty collection unless it already exists."""
        if name not in self._collections:
            validate_collection_name(name)
            self._collections[name] = []
            self._dirty.add(name)
        return self._collections[name]

    async def drop_collection(self, name: str) -> None:
        """Forget a collection and remove its file through the write queue."""
        self._collections.pop(name, None)
        self._dirty.discard(name)
        await self._submit(_WriteKind.REMOVE, name)

    def mark_dirty(self, name: str) -> None:
        self._dirty.add(name)

    # -- Writing ---------------------------------------------------------

    async def flush(self) -> None:
        """Persist every dirty collection.

        Returns after this flush and all writes queued before it are done.
        """
        await self._submit(_WriteKind.FLUSH)

    async def flush_if_dirty(self) -> None:
        """Flush only when something changed since the last snapshot."""
        if self._dirty:
            await self.flush()

    async def close(self) -> None:
        """Wait for queued writes, then stop the writer task."""
        writer, queue = self._writer, self._queue
        self._writer = None
        self._queue = None
        if writer is None or writer.done() or queue is None:
            return
        await queue.join()
        writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await writer

    async def _submit(self, kind: _WriteKind, collection: str | None = None) -> None:
        loop = asyncio.get_running_loop()
        if self._writer is None or self._writer.done() or self._writer.get_loop() is not loop:
            self._queue = asyncio.Queue()
            self._writer = loop.create_task(self._write_loop(self._queue))

        future: asyncio.Future[None] = loop.create_future()
        assert self._queue is not None
        self._queue.put_nowait(_WriteRequest(kind=kind, future=future, collection=collection))
        await future

    async def _write_loop(self, queue: asyncio.Queue[_WriteRequest]) -> None:
        while True:
            request = await queue.get()
            try:
                if request.kind is _WriteKind.FLUSH:
                    await self._write_dirty()
                else:
                    assert request.collection is not None
                    await asyncio.to_thread(self._remove_file, request.collection)
            except Exception as e:
                logger.error(
                    "write_failed",
                    kind=request.kind.value,
                    collection=request.collection,
                    error=str(e),
                )
                if not request.future.done():
                    request.future.set_exception(e)
            else:
                if not request.future.done():
                    request.future.set_result(None)
            finally:
                queue.task_done()

    async def _write_dirty(self) -> None:
        """Snapshot and write every dirty collection."""
        if not self._dirty:
            return

        start = time.perf_counter()
        names = sorted(name for name in self._dirty if name in self._collections)
        with trace_span("protodb.flush", {"collections": len(names)}):
            snapshots = {name: self._serialize(self._collections[name]) for name in names}
            self._dirty.clear()
            try:
                written = await asyncio.to_thread(self._write_files, snapshots)
            except Exception:
                self._dirty.update(name for name in snapshots if name in self._collections)
                self._metrics.flushes_total.labels(status="error").inc()
                raise

        elapsed = time.perf_counter() - start
        self._metrics.flushes_total.labels(status="success").inc()
        self._metrics.flush_latency_seconds.observe(elapsed)
        self._metrics.bytes_written_total.inc(written)
        logger.debug("flush_completed", collections=names, bytes=written, seconds=elapsed)

    def _serialize(self, docs: list[Document]) -> str:
        return json.dumps(docs, indent=self._indent, ensure_ascii=False, default=_json_default) + "\n"

    def _write_files(self, snapshots: dict[str, str]) -> int:
        written = 0
        for name, text in snapshots.items():
            written += self._atomic_write(self.collection_path(name), text)
        if snapshots and self._fsync:
            self._sync_directory()
        return written

    def _atomic_write(self, path: Path, text: str) -> int:
        """Write ``text`` to ``path`` via a temporary file and rename."""
        data = text.encode("utf-8")
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                if self._fsync:
                    os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise
        return len(data)

    def _remove_file(self, name: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self.collection_path(name).unlink()
        if self._fsync:
            self._sync_directory()
        logger.debug("collection_file_removed", collection=name)

    def _sync_directory(self) -> None:
        # Directory fsync makes renames durable; not available on Windows
        if os.name != "posix":
            return
        fd = os.open(self._data_dir, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
