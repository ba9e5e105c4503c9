"""Coverage scoping, collection, merging, caching and thresholds.

This package provides:
- File-centric coverage model (FileKey -> CoverageRecord)
- Summing merge across worker partials
- Scope resolution (declared, explicit, or execution-derived)
- Instrumentation cache keyed by FileKey
- Threshold evaluation

Usage:
    from coverplane.coverage import Aggregator, evaluate_thresholds, merge

    merged = merge(partial_a, partial_b)
    result = Aggregator(scope, provider).aggregate([partial_a, partial_b])
    outcome = evaluate_thresholds(result.store, spec, root=root)
"""

from coverplane.coverage.aggregate import AggregationResult, Aggregator
from coverplane.coverage.cache import CachedEntry, InstrumentationProvider, RunCache
from coverplane.coverage.collector import (
    CoverageCollector,
    dump_partial,
    load_partial,
    read_partial,
    write_partial,
)
from coverplane.coverage.instrument import (
    AstInstrumenter,
    DefaultInstrumenter,
    Instrumenter,
    LineInstrumenter,
    fingerprint_bytes,
    fingerprint_file,
)
from coverplane.coverage.merge import merge, merge_into, merge_records, merge_stores
from coverplane.coverage.models import (
    BranchInfo,
    CoverageRecord,
    CoverageStat,
    CoverageStore,
    CoverageSummary,
    FileKey,
    FunctionInfo,
    InstrumentationMap,
    normalize_key,
)
from coverplane.coverage.scope import ScopeOptions, ScopeResolver
from coverplane.coverage.thresholds import (
    ThresholdResult,
    ThresholdViolation,
    check_selectors,
    evaluate_thresholds,
    parse_threshold_spec,
)

__all__ = [
    # Models
    "BranchInfo",
    "CoverageRecord",
    "CoverageStat",
    "CoverageStore",
    "CoverageSummary",
    "FileKey",
    "FunctionInfo",
    "InstrumentationMap",
    "normalize_key",
    # Merge
    "merge",
    "merge_into",
    "merge_records",
    "merge_stores",
    # Scope
    "ScopeOptions",
    "ScopeResolver",
    # Instrumentation & cache
    "AstInstrumenter",
    "DefaultInstrumenter",
    "Instrumenter",
    "LineInstrumenter",
    "fingerprint_bytes",
    "fingerprint_file",
    "CachedEntry",
    "InstrumentationProvider",
    "RunCache",
    # Workers
    "CoverageCollector",
    "dump_partial",
    "load_partial",
    "read_partial",
    "write_partial",
    # Aggregation & thresholds
    "AggregationResult",
    "Aggregator",
    "ThresholdResult",
    "ThresholdViolation",
    "check_selectors",
    "evaluate_thresholds",
    "parse_threshold_spec",
]
