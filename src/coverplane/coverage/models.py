"""Coverage data model.

File-centric model: every source file is addressed by a FileKey and owns
exactly one CoverageRecord. A record pairs the file's static
InstrumentationMap (which constructs exist) with hit counters (how often
each construct ran).

Construct ids are strings so that records survive a JSON round trip
unchanged; line numbers are 1-based ints.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from coverplane.core.errors import CoverageDataError

FileKey = str
"""Normalized absolute POSIX path identifying one source file."""

Category = Literal["statements", "branches", "functions", "lines"]

CASE_INSENSITIVE_FS = sys.platform in ("win32", "darwin")


def normalize_key(path: str | Path, root: Path | None = None) -> FileKey:
    """Normalize a path into a FileKey.

    Relative paths are resolved against ``root`` (or the cwd). ``..`` and
    ``.`` segments are collapsed without following symlinks, separators
    become ``/``, and case is folded on case-insensitive filesystems.
    """
    p = Path(path)
    if not p.is_absolute():
        p = (root or Path.cwd()) / p
    key = Path(os.path.normpath(p)).as_posix()
    if CASE_INSENSITIVE_FS:
        key = key.casefold()
    return key


@dataclass(frozen=True, slots=True)
class BranchInfo:
    """A branch point and the number of arms it can take."""

    line: int
    arms: int


@dataclass(frozen=True, slots=True)
class FunctionInfo:
    """A function (or lambda) declaration."""

    name: str
    line: int


@dataclass(frozen=True, slots=True)
class InstrumentationMap:
    """Static set of countable constructs for one version of one file.

    Immutable once produced. Two maps for the same file version carry the
    same fingerprint; a different fingerprint means different source.
    """

    fingerprint: str
    statements: Mapping[str, int] = field(default_factory=dict)  # id -> line
    branches: Mapping[str, BranchInfo] = field(default_factory=dict)
    functions: Mapping[str, FunctionInfo] = field(default_factory=dict)
    lines: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "fingerprint": self.fingerprint,
            "statements": dict(self.statements),
            "branches": {
                bid: {"line": b.line, "arms": b.arms} for bid, b in self.branches.items()
            },
            "functions": {
                fid: {"name": f.name, "line": f.line} for fid, f in self.functions.items()
            },
            "lines": list(self.lines),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> InstrumentationMap:
        """Rebuild a map from ``to_dict`` output. Raises KeyError/TypeError/ValueError."""
        return cls(
            fingerprint=str(data["fingerprint"]),
            statements={str(k): int(v) for k, v in data.get("statements", {}).items()},
            branches={
                str(k): BranchInfo(line=int(v["line"]), arms=int(v["arms"]))
                for k, v in data.get("branches", {}).items()
            },
            functions={
                str(k): FunctionInfo(name=str(v["name"]), line=int(v["line"]))
                for k, v in data.get("functions", {}).items()
            },
            lines=tuple(sorted(int(x) for x in data.get("lines", []))),
        )


@dataclass(frozen=True, slots=True)
class CoverageStat:
    """Covered vs. total constructs of one category."""

    covered: int = 0
    total: int = 0

    @property
    def uncovered(self) -> int:
        return self.total - self.covered

    @property
    def percent(self) -> float:
        """Percentage covered. A category with no constructs counts as 100%."""
        if self.total == 0:
            return 100.0
        return self.covered / self.total * 100.0

    def __add__(self, other: CoverageStat) -> CoverageStat:
        return CoverageStat(self.covered + other.covered, self.total + other.total)


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Aggregate statistics over a set of records."""

    statements: CoverageStat = CoverageStat()
    branches: CoverageStat = CoverageStat()
    functions: CoverageStat = CoverageStat()
    lines: CoverageStat = CoverageStat()

    def for_category(self, category: str) -> CoverageStat:
        stat: CoverageStat = getattr(self, category)
        return stat

    def __add__(self, other: CoverageSummary) -> CoverageSummary:
        return CoverageSummary(
            statements=self.statements + other.statements,
            branches=self.branches + other.branches,
            functions=self.functions + other.functions,
            lines=self.lines + other.lines,
        )

    @classmethod
    def from_records(cls, records: Iterable[CoverageRecord]) -> CoverageSummary:
        total = cls()
        for record in records:
            total = total + record.summary()
        return total


@dataclass(slots=True)
class CoverageRecord:
    """Hit counters for every construct of one file.

    Counters only ever grow. ``in_scope`` marks whether the file counts
    towards thresholds and human-facing reports.
    """

    key: FileKey
    imap: InstrumentationMap
    statement_hits: dict[str, int] = field(default_factory=dict)
    branch_hits: dict[str, list[int]] = field(default_factory=dict)
    function_hits: dict[str, int] = field(default_factory=dict)
    line_hits: dict[int, int] = field(default_factory=dict)
    in_scope: bool = True

    @classmethod
    def placeholder(
        cls, key: FileKey, imap: InstrumentationMap, *, in_scope: bool = True
    ) -> CoverageRecord:
        """Zero-coverage record: every construct present, every count 0."""
        return cls(
            key=key,
            imap=imap,
            statement_hits=dict.fromkeys(imap.statements, 0),
            branch_hits={bid: [0] * info.arms for bid, info in imap.branches.items()},
            function_hits=dict.fromkeys(imap.functions, 0),
            line_hits=dict.fromkeys(imap.lines, 0),
            in_scope=in_scope,
        )

    @property
    def fingerprint(self) -> str:
        return self.imap.fingerprint

    def accumulate(
        self,
        category: Category,
        construct_id: str | int,
        delta: int = 1,
        *,
        arm: int | None = None,
    ) -> None:
        """Add ``delta`` hits to one construct.

        Raises:
            ValueError: delta is negative.
            CoverageDataError: the construct is not part of the map.
        """
        if delta < 0:
            raise ValueError(f"Coverage counts never decrease (delta={delta})")
        if category == "statements":
            self._bump(self.statement_hits, str(construct_id), delta, category)
        elif category == "functions":
            self._bump(self.function_hits, str(construct_id), delta, category)
        elif category == "lines":
            self._bump(self.line_hits, int(construct_id), delta, category)
        elif category == "branches":
            arms = self.branch_hits.get(str(construct_id))
            if arms is None or arm is None or not 0 <= arm < len(arms):
                raise CoverageDataError.unknown_construct(
                    self.key, category, f"{construct_id}[{arm}]"
                )
            arms[arm] += delta
        else:
            raise ValueError(f"Unknown construct category: {category!r}")

    def _bump(self, counters: dict[Any, int], cid: Any, delta: int, category: str) -> None:
        if cid not in counters:
            raise CoverageDataError.unknown_construct(self.key, category, str(cid))
        counters[cid] += delta

    def copy(self) -> CoverageRecord:
        return CoverageRecord(
            key=self.key,
            imap=self.imap,
            statement_hits=dict(self.statement_hits),
            branch_hits={bid: list(arms) for bid, arms in self.branch_hits.items()},
            function_hits=dict(self.function_hits),
            line_hits=dict(self.line_hits),
            in_scope=self.in_scope,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible form. Line numbers become string keys."""
        return {
            "key": self.key,
            "inScope": self.in_scope,
            "imap": self.imap.to_dict(),
            "s": dict(self.statement_hits),
            "b": {bid: list(arms) for bid, arms in self.branch_hits.items()},
            "f": dict(self.function_hits),
            "l": {str(line): hits for line, hits in self.line_hits.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CoverageRecord:
        """Rebuild a record from ``to_dict`` output.

        Raises:
            KeyError, TypeError, ValueError: The document is malformed.
        """
        record = cls(
            key=str(data["key"]),
            imap=InstrumentationMap.from_dict(data["imap"]),
            statement_hits={str(k): int(v) for k, v in data.get("s", {}).items()},
            branch_hits={str(k): [int(h) for h in v] for k, v in data.get("b", {}).items()},
            function_hits={str(k): int(v) for k, v in data.get("f", {}).items()},
            line_hits={int(k): int(v) for k, v in data.get("l", {}).items()},
            in_scope=bool(data.get("inScope", True)),
        )
        counters: list[int] = [
            *record.statement_hits.values(),
            *record.function_hits.values(),
            *record.line_hits.values(),
            *(h for arms in record.branch_hits.values() for h in arms),
        ]
        if any(h < 0 for h in counters):
            raise ValueError(f"Negative hit count in record for {record.key}")
        return record

    def summary(self) -> CoverageSummary:
        return CoverageSummary(
            statements=_stat(self.statement_hits.values()),
            branches=_stat(h for arms in self.branch_hits.values() for h in arms),
            functions=_stat(self.function_hits.values()),
            lines=_stat(self.line_hits.values()),
        )

    @property
    def uncovered_lines(self) -> list[int]:
        """Sorted line numbers with zero hits."""
        return sorted(line for line, hits in self.line_hits.items() if hits == 0)

    @property
    def is_empty(self) -> bool:
        """True when the file has no countable constructs at all."""
        return not (
            self.statement_hits or self.branch_hits or self.function_hits or self.line_hits
        )


def _stat(hits: Iterable[int]) -> CoverageStat:
    covered = total = 0
    for h in hits:
        total += 1
        if h > 0:
            covered += 1
    return CoverageStat(covered=covered, total=total)


class CoverageStore:
    """Mapping of FileKey to CoverageRecord.

    Every key has exactly one record. Iteration is in sorted key order so
    that reports and serializations are deterministic.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[CoverageRecord] = ()) -> None:
        self._records: dict[FileKey, CoverageRecord] = {}
        for record in records:
            if record.key in self._records:
                raise ValueError(f"Duplicate record for {record.key}")
            self._records[record.key] = record

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[CoverageRecord]:
        for key in sorted(self._records):
            yield self._records[key]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CoverageStore):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"CoverageStore({len(self._records)} files)"

    def keys(self) -> list[FileKey]:
        return sorted(self._records)

    def get(self, key: FileKey) -> CoverageRecord | None:
        return self._records.get(key)

    def __getitem__(self, key: FileKey) -> CoverageRecord:
        return self._records[key]

    def put(self, record: CoverageRecord) -> None:
        """Set the record for its key, replacing any existing one.

        Use coverplane.coverage.merge for accumulation; this is a raw write.
        """
        self._records[record.key] = record

    def discard(self, key: FileKey) -> CoverageRecord | None:
        return self._records.pop(key, None)

    def insert_placeholder(
        self, key: FileKey, imap: InstrumentationMap, *, in_scope: bool = True
    ) -> CoverageRecord:
        """Insert a zero-coverage record unless the key is already present."""
        existing = self._records.get(key)
        if existing is not None:
            return existing
        record = CoverageRecord.placeholder(key, imap, in_scope=in_scope)
        self._records[key] = record
        return record

    def in_scope(self) -> CoverageStore:
        """View of the records that count towards thresholds and reports."""
        return CoverageStore(r for r in self._records.values() if r.in_scope)

    def copy(self) -> CoverageStore:
        return CoverageStore(r.copy() for r in self._records.values())

    def summary(self) -> CoverageSummary:
        return CoverageSummary.from_records(self._records.values())
