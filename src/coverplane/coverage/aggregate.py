"""Aggregation of per-worker partials into the final coverage store.

The aggregator is the single synchronization point of a run. It runs
once, after every worker has delivered its partial:

1. start from an empty store;
2. insert a zero-coverage placeholder for every declared in-scope file,
   using the cached or freshly instrumented map;
3. merge every partial in (summing, order-independent);
4. flag each record in or out of scope.

A partial that disagrees with a placeholder's map (stale cache, or an
external instrumenter) replaces the placeholder: the placeholder carried
no hits, and the worker saw the real source.

Two partials that disagree with each other cannot be summed. The file is
re-instrumented from disk and only counts matching the current content
survive; when neither side matches, the file falls back to a fresh
zero-coverage record. Either way it is listed in ``failed`` and left out
of threshold evaluation. Other files are unaffected.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from coverplane.core.errors import FingerprintMismatch, InstrumentationError
from coverplane.coverage.cache import InstrumentationProvider
from coverplane.coverage.collector import load_partial
from coverplane.coverage.merge import merge_records
from coverplane.coverage.models import CoverageRecord, CoverageStore, FileKey
from coverplane.coverage.scope import ScopeResolver

log = structlog.get_logger(__name__)

PartialInput = CoverageStore | Mapping[str, Any]


@dataclass
class AggregationResult:
    """Final store plus bookkeeping about how it was produced."""

    store: CoverageStore
    partials: int = 0
    placeholders: list[FileKey] = field(default_factory=list)
    recovered: list[FileKey] = field(default_factory=list)
    # files whose coverage could not be trusted, with the reason
    failed: dict[FileKey, str] = field(default_factory=dict)


class Aggregator:
    """Merges worker partials with the declared scope into one final store."""

    def __init__(
        self,
        scope: ScopeResolver,
        provider: InstrumentationProvider,
        *,
        drop_excluded: bool = True,
    ) -> None:
        self.scope = scope
        self.provider = provider
        self.drop_excluded = drop_excluded

    def aggregate(self, partials: Iterable[PartialInput]) -> AggregationResult:
        """Build the final store.

        Args:
            partials: CoverageStores or partial documents, one per worker.
                Each must be passed exactly once.

        Raises:
            CoverageDataError: A partial document is malformed.
        """
        store = CoverageStore()
        result = AggregationResult(store=store)
        untouched: set[FileKey] = set()
        conflicted: dict[FileKey, str | None] = {}

        for key in self.scope.declared():
            if self._insert_placeholder(store, key, result):
                untouched.add(key)

        for index, partial in enumerate(partials):
            if not isinstance(partial, CoverageStore):
                partial = load_partial(partial, source=f"partial[{index}]")
            self._merge_partial(store, partial, untouched, conflicted, result)
            result.partials += 1

        for record in store:
            record.in_scope = self.scope.is_in_scope(record.key, executed=True)

        log.info(
            "aggregate_done",
            files=len(store),
            partials=result.partials,
            placeholders=len(result.placeholders),
            recovered=len(result.recovered),
            failed=len(result.failed),
        )
        return result

    def _insert_placeholder(
        self, store: CoverageStore, key: FileKey, result: AggregationResult
    ) -> bool:
        if key in store:
            return False
        try:
            imap = self.provider.map_for(key)
        except InstrumentationError as e:
            log.warning("placeholder_instrument_failed", key=key, error=e.message)
            result.failed[key] = e.message
            return False
        store.insert_placeholder(key, imap)
        result.placeholders.append(key)
        return True

    def _merge_partial(
        self,
        store: CoverageStore,
        partial: CoverageStore,
        untouched: set[FileKey],
        conflicted: dict[FileKey, str | None],
        result: AggregationResult,
    ) -> None:
        for record in partial:
            key = record.key

            if self.scope.is_substitute(key):
                original = self.scope.canonical(key)
                log.debug("substitute_skipped", key=key, original=original)
                if (
                    original not in store
                    and Path(original).is_file()
                    and self.scope.is_in_scope(original, executed=True)
                    and self._insert_placeholder(store, original, result)
                ):
                    untouched.add(original)
                continue

            if self.drop_excluded and self.scope.is_excluded(key):
                log.debug("excluded_dropped", key=key)
                continue

            existing = store.get(key)
            if key in conflicted:
                pinned = conflicted[key]
                if pinned is not None and record.fingerprint == pinned:
                    if existing is None:
                        store.put(record.copy())
                    else:
                        store.put(merge_records(existing, record))
                continue

            if existing is None:
                store.put(record.copy())
                continue

            try:
                store.put(merge_records(existing, record))
            except FingerprintMismatch as e:
                if key in untouched:
                    log.warning(
                        "fingerprint_mismatch_recovered",
                        key=key,
                        cached=existing.fingerprint[:12],
                        executed=record.fingerprint[:12],
                    )
                    store.put(record.copy())
                    result.recovered.append(key)
                else:
                    conflicted[key] = self._resolve_conflict(store, existing, record, result, e)
            untouched.discard(key)

    def _resolve_conflict(
        self,
        store: CoverageStore,
        existing: CoverageRecord,
        record: CoverageRecord,
        result: AggregationResult,
        error: FingerprintMismatch,
    ) -> str | None:
        """Keep whichever side matches the file on disk.

        Returns the fingerprint later partials must carry to still count,
        or None when the file's coverage is dropped altogether.
        """
        key = record.key
        result.failed[key] = error.message
        try:
            current = self.provider.map_for(key)
        except InstrumentationError as e:
            log.error("fingerprint_mismatch_dropped", key=key, error=e.message)
            store.discard(key)
            return None

        if existing.fingerprint == current.fingerprint:
            kept = "previous"
        elif record.fingerprint == current.fingerprint:
            store.put(record.copy())
            kept = "incoming"
        else:
            store.put(CoverageRecord.placeholder(key, current))
            kept = "fresh"
        log.error(
            "fingerprint_mismatch",
            key=key,
            kept=kept,
            current=current.fingerprint[:12],
        )
        return current.fingerprint
