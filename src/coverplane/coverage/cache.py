"""Instrumentation cache persisted across runs.

One JSON document per FileKey under ``<cache_directory>/coverage/``. The
document name is derived from the FileKey, never from file content: two
byte-identical files at different paths get two independent entries.

A lookup only succeeds when the stored fingerprint equals the current
content fingerprint. Stale and corrupt entries are discarded and the
caller instruments fresh; the cache can cost speed but never correctness.
"""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import tempfile
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from coverplane.config.constants import CACHE_FORMAT_VERSION
from coverplane.core.errors import InstrumentationError
from coverplane.coverage.instrument import Instrumenter, fingerprint_file
from coverplane.coverage.models import (
    CoverageRecord,
    FileKey,
    InstrumentationMap,
)

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CachedEntry:
    """Persisted instrumentation (and last-run counts) of one file."""

    key: FileKey
    fingerprint: str
    imap: InstrumentationMap
    record: CoverageRecord | None = None

    def placeholder(self) -> CoverageRecord:
        """Zero-coverage record seeded from the cached map."""
        return CoverageRecord.placeholder(self.key, self.imap)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": CACHE_FORMAT_VERSION,
            "key": self.key,
            "fingerprint": self.fingerprint,
            "imap": self.imap.to_dict(),
            "record": self.record.to_dict() if self.record is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CachedEntry:
        if data.get("version") != CACHE_FORMAT_VERSION:
            raise ValueError(f"Unsupported cache entry version: {data.get('version')!r}")
        raw_record = data.get("record")
        return cls(
            key=str(data["key"]),
            fingerprint=str(data["fingerprint"]),
            imap=InstrumentationMap.from_dict(data["imap"]),
            record=CoverageRecord.from_dict(raw_record) if raw_record is not None else None,
        )


class RunCache:
    """Directory-backed cache of CachedEntry documents keyed by FileKey."""

    SUBDIR = "coverage"

    def __init__(self, directory: Path, *, enabled: bool = True) -> None:
        self.directory = directory / self.SUBDIR
        self.enabled = enabled
        self._locks: dict[FileKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _path_for(self, key: FileKey) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def _lock_for(self, key: FileKey) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _discard(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("cache_discard_failed", path=str(path), error=str(e))

    def lookup(self, key: FileKey, fingerprint: str) -> CachedEntry | None:
        """Return the entry for ``key`` if it matches ``fingerprint``.

        Stale (fingerprint changed) and unreadable entries are removed and
        reported as a miss.
        """
        if not self.enabled:
            return None

        path = self._path_for(key)
        if not path.exists():
            log.debug("cache_miss", key=key)
            return None

        try:
            entry = CachedEntry.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            log.warning("cache_corrupt_discarded", key=key, error=str(e))
            self._discard(path)
            return None

        if entry.key != key:
            log.warning("cache_key_collision_discarded", key=key, stored_key=entry.key)
            self._discard(path)
            return None

        if entry.fingerprint != fingerprint or entry.imap.fingerprint != fingerprint:
            log.info("cache_stale_discarded", key=key)
            self._discard(path)
            return None

        log.debug("cache_hit", key=key)
        return entry

    def store(self, entry: CachedEntry) -> None:
        """Atomically write ``entry``, replacing any previous entry for its key."""
        if not self.enabled:
            return

        path = self._path_for(entry.key)
        with self._lock_for(entry.key):
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(entry.to_dict(), f)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        log.debug("cache_stored", key=entry.key)

    def clear(self) -> bool:
        """Remove every entry. Returns False when there was nothing to remove."""
        if not self.directory.exists():
            return False
        shutil.rmtree(self.directory)
        return True


class InstrumentationProvider:
    """InstrumentationMaps from the cache, falling back to fresh instrumentation.

    ``flush`` writes the final store back once the run is complete, which
    replaces stale or mismatched entries.
    """

    def __init__(self, instrumenter: Instrumenter, cache: RunCache) -> None:
        self.instrumenter = instrumenter
        self.cache = cache
        self.cache_hits = 0
        self.instrumented = 0

    def map_for(self, key: FileKey) -> InstrumentationMap:
        """Instrumentation map of the file at ``key``.

        Raises:
            InstrumentationError: The file cannot be read or instrumented.
        """
        path = Path(key)
        try:
            fingerprint = fingerprint_file(path)
        except OSError as e:
            raise InstrumentationError.failed(key, str(e)) from e

        entry = self.cache.lookup(key, fingerprint)
        if entry is not None:
            self.cache_hits += 1
            return entry.imap

        return self.fresh_map_for(key)

    def fresh_map_for(self, key: FileKey) -> InstrumentationMap:
        """Instrument ``key`` without consulting the cache."""
        imap = self.instrumenter.instrument(Path(key))
        self.instrumented += 1
        return imap

    def flush(self, records: Iterable[CoverageRecord]) -> int:
        """Write a CachedEntry for every record. Returns the number written."""
        if not self.cache.enabled:
            return 0
        written = 0
        for record in records:
            try:
                self.cache.store(
                    CachedEntry(
                        key=record.key,
                        fingerprint=record.fingerprint,
                        imap=record.imap,
                        record=record,
                    )
                )
                written += 1
            except OSError as e:
                log.warning("cache_write_failed", key=record.key, error=str(e))
        return written
