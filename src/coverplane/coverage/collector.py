"""Per-worker coverage collection and the partial wire format.

Each execution context owns one CoverageCollector. Collectors are never
shared: a worker accumulates into its own local store and hands a
snapshot (the partial) to the aggregator when it finishes.

Partial document (JSON):
{
    "format_version": 1,
    "worker": "worker-3",          # optional, for diagnostics
    "files": [<CoverageRecord.to_dict()>, ...]
}
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from coverplane.config.constants import PARTIAL_FORMAT_VERSION
from coverplane.core.errors import CoverageDataError
from coverplane.coverage.models import (
    CoverageRecord,
    CoverageStore,
    FileKey,
    InstrumentationMap,
    normalize_key,
)


class CoverageCollector:
    """Local hit accumulation for one worker."""

    def __init__(self, worker_id: str | None = None, *, root: Path | None = None) -> None:
        self.worker_id = worker_id
        self.root = root
        self._store = CoverageStore()

    def register(self, path: str | Path, imap: InstrumentationMap) -> FileKey:
        """Start tracking a loaded file. Re-registering the same version is a no-op."""
        key = normalize_key(path, self.root)
        existing = self._store.get(key)
        if existing is not None and existing.fingerprint != imap.fingerprint:
            raise CoverageDataError.malformed_partial(
                self.worker_id or "collector",
                f"{key} registered twice with different instrumentation",
            )
        self._store.insert_placeholder(key, imap)
        return key

    def _record(self, key: FileKey) -> CoverageRecord:
        record = self._store.get(key)
        if record is None:
            raise KeyError(f"File not registered with collector: {key}")
        return record

    def hit_statement(self, key: FileKey, statement_id: str, count: int = 1) -> None:
        self._record(key).accumulate("statements", statement_id, count)

    def hit_branch(self, key: FileKey, branch_id: str, arm: int, count: int = 1) -> None:
        self._record(key).accumulate("branches", branch_id, count, arm=arm)

    def hit_function(self, key: FileKey, function_id: str, count: int = 1) -> None:
        self._record(key).accumulate("functions", function_id, count)

    def hit_line(self, key: FileKey, line: int, count: int = 1) -> None:
        self._record(key).accumulate("lines", line, count)

    def partial(self) -> CoverageStore:
        """Snapshot of everything collected so far."""
        return self._store.copy()


def dump_partial(store: CoverageStore, *, worker: str | None = None) -> dict[str, Any]:
    """Serialize a partial store; FileKeys and counts are preserved exactly."""
    doc: dict[str, Any] = {
        "format_version": PARTIAL_FORMAT_VERSION,
        "files": [record.to_dict() for record in store],
    }
    if worker is not None:
        doc["worker"] = worker
    return doc


def load_partial(doc: Mapping[str, Any], *, source: str = "<partial>") -> CoverageStore:
    """Rebuild a partial store from ``dump_partial`` output.

    Raises:
        CoverageDataError: Unsupported version, malformed record, or a
            FileKey listed twice.
    """
    if not isinstance(doc, Mapping):
        raise CoverageDataError.malformed_partial(source, "document is not an object")
    version = doc.get("format_version")
    if version != PARTIAL_FORMAT_VERSION:
        raise CoverageDataError.malformed_partial(
            source, f"unsupported format_version {version!r}"
        )

    files = doc.get("files")
    if not isinstance(files, list):
        raise CoverageDataError.malformed_partial(source, "'files' must be a list")

    try:
        records = [CoverageRecord.from_dict(item) for item in files]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CoverageDataError.malformed_partial(source, f"bad record: {e}") from e

    try:
        return CoverageStore(records)
    except ValueError as e:
        raise CoverageDataError.malformed_partial(source, str(e)) from e


def write_partial(store: CoverageStore, path: Path, *, worker: str | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(dump_partial(store, worker=worker)), encoding="utf-8")


def read_partial(path: Path) -> CoverageStore:
    """Load a partial document from disk.

    Raises:
        CoverageDataError: The file is unreadable or malformed.
    """
    try:
        doc = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CoverageDataError.malformed_partial(str(path), str(e)) from e
    return load_partial(doc, source=str(path))
