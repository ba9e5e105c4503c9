"""Coverage store merging with summing semantics.

Merging adds hit counts construct by construct:

- statement[i] = sum(statement[i] across inputs)
- branch[j][arm] = sum(branch[j][arm] across inputs)
- function[k] = sum(function[k] across inputs)
- line[n] = sum(line[n] across inputs)

The operation is commutative and associative, so partial stores from
parallel workers can be folded in any order. It is NOT idempotent for
overlapping keys: merging the same partial twice double-counts, so every
partial must be merged exactly once.

Records for one FileKey must share an instrumentation fingerprint. A
mismatch means the two producers saw different source and is raised as
FingerprintMismatch instead of being resolved silently.
"""

from collections.abc import Iterable

from coverplane.core.errors import FingerprintMismatch
from coverplane.coverage.models import CoverageRecord, CoverageStore


def _check_compatible(a: CoverageRecord, b: CoverageRecord) -> None:
    if a.key != b.key:
        raise ValueError(f"Cannot merge records of different files: {a.key} / {b.key}")
    if a.fingerprint != b.fingerprint:
        raise FingerprintMismatch.for_key(a.key, a.fingerprint, b.fingerprint)


def _add_into(target: CoverageRecord, source: CoverageRecord) -> None:
    for sid, hits in source.statement_hits.items():
        target.statement_hits[sid] = target.statement_hits.get(sid, 0) + hits
    for bid, arms in source.branch_hits.items():
        existing = target.branch_hits.setdefault(bid, [0] * len(arms))
        if len(existing) < len(arms):
            existing.extend([0] * (len(arms) - len(existing)))
        for i, hits in enumerate(arms):
            existing[i] += hits
    for fid, hits in source.function_hits.items():
        target.function_hits[fid] = target.function_hits.get(fid, 0) + hits
    for line, hits in source.line_hits.items():
        target.line_hits[line] = target.line_hits.get(line, 0) + hits
    target.in_scope = target.in_scope or source.in_scope


def merge_records(a: CoverageRecord, b: CoverageRecord) -> CoverageRecord:
    """Sum two records of the same file into a new record.

    Args:
        a: First record.
        b: Second record (same key and fingerprint as ``a``).

    Returns:
        New CoverageRecord; inputs are not modified.

    Raises:
        FingerprintMismatch: The records were produced from different source.
    """
    _check_compatible(a, b)
    result = a.copy()
    _add_into(result, b)
    return result


def merge_into(target: CoverageStore, source: CoverageStore) -> CoverageStore:
    """Fold ``source`` into ``target`` in place and return ``target``.

    ``source`` is not modified; records copied into ``target`` are copies.
    Fingerprints are validated for every overlapping key before anything
    is written, so a mismatch leaves ``target`` untouched.
    """
    for record in source:
        existing = target.get(record.key)
        if existing is not None:
            _check_compatible(existing, record)

    for record in source:
        existing = target.get(record.key)
        if existing is None:
            target.put(record.copy())
        else:
            _add_into(existing, record)
    return target


def merge_stores(stores: Iterable[CoverageStore]) -> CoverageStore:
    """Merge any number of stores into a new store.

    Files present in several inputs are summed; files present in only one
    are copied as-is; files present in none are absent from the result.
    """
    result = CoverageStore()
    for store in stores:
        merge_into(result, store)
    return result


def merge(*stores: CoverageStore) -> CoverageStore:
    """Convenience function to merge stores as varargs."""
    return merge_stores(stores)
