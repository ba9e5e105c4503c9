"""Coverage scope resolution.

Decides which files count for coverage, independent of which files the
tests happened to load. Three modes, most specific first:

- explicit: ``only_from`` lists the exact files to collect from. Files
  outside it are out of scope even when executed; files in it that never
  ran are simply absent.
- declared: ``collect_from`` globs are authoritative. Every matching file
  is in scope and surfaces as a zero-coverage record when no test loads
  it; non-matching files are out of scope even when loaded as a
  dependency.
- executed: neither option is set; every executed file is in scope.

``ignore_patterns`` (and ``!``-negated collect_from entries) always win.

Scope is keyed by declared source identity: a file replaced by a test
double at runtime is still found by the walker and still counted, and
the double's own key is mapped back to the original via ``substitutes``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from functools import cached_property
from pathlib import Path
from typing import Any, Literal

import structlog

from coverplane.config.models import CoverageConfig
from coverplane.core.errors import ConfigError
from coverplane.core.excludes import is_default_prunable, is_hardcoded_dir
from coverplane.coverage.models import CASE_INSENSITIVE_FS, FileKey, normalize_key

log = structlog.get_logger(__name__)

ScopeMode = Literal["explicit", "declared", "executed"]

_GLOB_CHARS = frozenset("*?[{")


def translate_glob(pattern: str) -> str:
    """Translate a glob into a regex body.

    Supports ``*`` (within one segment), ``**`` (any number of segments),
    ``?``, ``[...]`` / ``[!...]`` classes and ``{a,b}`` alternation. A
    trailing ``/`` matches everything below the directory.

    Raises:
        ValueError: Unbalanced ``[`` or ``{``.
    """
    if pattern.endswith("/"):
        pattern += "**"
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**/", i):
                out.append("(?:.*/)?")
                i += 3
                continue
            if pattern.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            j = pattern.find("]", i + 2 if pattern.startswith("[!", i) else i + 1)
            if j == -1:
                raise ValueError("unbalanced '['")
            body = pattern[i + 1 : j]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append("[" + body.replace("\\", "\\\\") + "]")
            i = j + 1
            continue
        elif c == "{":
            j = pattern.find("}", i + 1)
            if j == -1:
                raise ValueError("unbalanced '{'")
            alternatives = pattern[i + 1 : j].split(",")
            out.append("(?:" + "|".join(translate_glob(a) for a in alternatives) + ")")
            i = j + 1
            continue
        else:
            out.append(re.escape(c))
        i += 1
    return "".join(out)


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob for full-path matching. Raises ConfigError when invalid."""
    try:
        body = translate_glob(pattern)
        flags = re.IGNORECASE if CASE_INSENSITIVE_FS else 0
        return re.compile(body, flags)
    except (ValueError, re.error) as e:
        raise ConfigError.invalid_glob(pattern, str(e)) from e


def accumulate(values: Iterable[str]) -> tuple[str, ...]:
    """Order-preserving de-duplication for repeatable options."""
    return tuple(dict.fromkeys(values))


@dataclass(frozen=True)
class ScopeOptions:
    """Inputs of the scope resolver.

    Repeated occurrences of one option within a layer accumulate (see
    ``accumulate``); a later layer that sets an option replaces it.
    """

    collect_from: tuple[str, ...] = ()
    only_from: tuple[str, ...] = ()
    ignore_patterns: tuple[str, ...] = ()
    substitutes: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_config(
        cls, config: CoverageConfig, *, substitutes: Mapping[str, str] | None = None
    ) -> ScopeOptions:
        return cls(
            collect_from=accumulate(config.collect_from),
            only_from=accumulate(config.only_from),
            ignore_patterns=accumulate(config.ignore_patterns),
            substitutes=dict(substitutes or {}),
        )

    def with_override(self, **changes: Any) -> ScopeOptions:
        """Return options where each given option replaces the current value.

        ``None`` leaves an option untouched; an empty sequence clears it.
        """
        updates: dict[str, Any] = {}
        for name, value in changes.items():
            if value is None:
                continue
            if name == "substitutes":
                updates[name] = dict(value)
            else:
                updates[name] = accumulate(value)
        return replace(self, **updates)


class ScopeResolver:
    """Computes the authoritative set of files eligible for coverage."""

    def __init__(self, root: Path, options: ScopeOptions | None = None) -> None:
        self.root = root.resolve()
        self.options = options or ScopeOptions()
        self._root_key = normalize_key(self.root)

        includes: list[str] = []
        negated: list[str] = []
        for pattern in self.options.collect_from:
            if pattern.startswith("!"):
                negated.append(self._relative_pattern(pattern[1:]))
            else:
                includes.append(self._relative_pattern(pattern))
        self._include_patterns = tuple(includes)
        self._includes = tuple(compile_glob(p) for p in includes)
        self._excludes = tuple(
            compile_glob(self._relative_pattern(p))
            for p in (*self.options.ignore_patterns, *negated)
        )
        self._only = frozenset(normalize_key(p, self.root) for p in self.options.only_from)
        self._substitutes = {
            normalize_key(double, self.root): normalize_key(original, self.root)
            for double, original in self.options.substitutes.items()
        }

    @property
    def mode(self) -> ScopeMode:
        if self._only:
            return "explicit"
        if self._includes:
            return "declared"
        return "executed"

    def _relative_pattern(self, pattern: str) -> str:
        if pattern.startswith("./"):
            pattern = pattern[2:]
        if os.path.isabs(pattern):
            key = normalize_key(pattern)
            if key.startswith(self._root_key + "/"):
                return key[len(self._root_key) + 1 :]
            return key
        return pattern

    def relative(self, key: FileKey) -> str:
        """Path of ``key`` relative to the root, or the key itself when outside it."""
        if key.startswith(self._root_key + "/"):
            return key[len(self._root_key) + 1 :]
        return key

    def _matches(self, patterns: Iterable[re.Pattern[str]], key: FileKey) -> bool:
        rel = self.relative(key)
        return any(p.fullmatch(rel) or p.fullmatch(key) for p in patterns)

    def is_excluded(self, key: FileKey) -> bool:
        """True when an ignore pattern (or negated collect_from entry) matches."""
        return self._matches(self._excludes, key)

    def canonical(self, key: FileKey) -> FileKey:
        """Resolve a test-double key to the original module's key."""
        return self._substitutes.get(key, key)

    def is_substitute(self, key: FileKey) -> bool:
        return key in self._substitutes

    def is_in_scope(self, key: FileKey, *, executed: bool = True) -> bool:
        """Whether ``key`` counts towards thresholds and reports."""
        key = self.canonical(key)
        if self.is_excluded(key):
            return False
        if self.mode == "explicit":
            return key in self._only
        if self.mode == "declared":
            return self._matches(self._includes, key)
        return executed

    def declared(self) -> tuple[FileKey, ...]:
        """FileKeys that must appear in the final store even if never executed."""
        return self._declared

    @cached_property
    def _declared(self) -> tuple[FileKey, ...]:
        if self.mode != "declared":
            return ()

        found: set[FileKey] = set()
        walk_patterns: list[re.Pattern[str]] = []
        for raw, compiled in zip(self._include_patterns, self._includes, strict=True):
            if _GLOB_CHARS.isdisjoint(raw):
                # Literal path: no need to walk for it
                candidate = Path(raw) if os.path.isabs(raw) else self.root / raw
                if candidate.is_file():
                    found.add(normalize_key(candidate))
            else:
                walk_patterns.append(compiled)

        if walk_patterns:
            found.update(self._walk(walk_patterns))

        declared = tuple(sorted(k for k in found if not self.is_excluded(k)))
        log.debug("scope_declared", root=str(self.root), files=len(declared))
        return declared

    def _opted_in(self, dirname: str) -> bool:
        return any(
            dirname in pattern.split("/") for pattern in self._include_patterns
        )

    def _walk(self, patterns: list[re.Pattern[str]]) -> set[FileKey]:
        matched: set[FileKey] = set()
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not is_hardcoded_dir(d) and (not is_default_prunable(d) or self._opted_in(d))
            )
            for name in filenames:
                key = normalize_key(Path(dirpath) / name)
                rel = self.relative(key)
                if any(p.fullmatch(rel) for p in patterns):
                    matched.add(key)
        return matched
