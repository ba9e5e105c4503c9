"""Coverage threshold evaluation.

A threshold spec maps selectors to per-category minimums:

    {
        "global": {"lines": 90, "branches": 80},
        "src/core/": {"statements": 95},        # path: everything below it
        "src/**/*.py": {"functions": -3},       # glob: at most 3 uncovered
    }

Each selector aggregates the in-scope records it matches. A positive
threshold is a minimum percentage (compared with >=); a negative one is
the maximum number of uncovered constructs. A selector that matches no
file is itself a violation.

Violations are results, not exceptions: the engine turns them into the
process exit code.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from coverplane.config.constants import CATEGORIES
from coverplane.config.models import CategoryThresholds
from coverplane.core.errors import ConfigError
from coverplane.coverage.models import CoverageStore, CoverageSummary, FileKey, normalize_key
from coverplane.coverage.scope import compile_glob

GLOBAL_SELECTOR = "global"

_SPEC_ADAPTER = TypeAdapter(dict[str, CategoryThresholds])


@dataclass(frozen=True, slots=True)
class ThresholdViolation:
    """One unmet threshold."""

    selector: str
    category: str | None  # None when the selector matched no files
    required: float
    actual: float

    @property
    def message(self) -> str:
        if self.category is None:
            return f'Coverage data for "{self.selector}" was not found.'
        if self.required < 0:
            return (
                f'Uncovered count for {self.category} ({int(self.actual)}) '
                f'exceeds "{self.selector}" threshold ({int(-self.required)})'
            )
        return (
            f'Coverage threshold for {self.category} ({self.required:g}%) '
            f'not met for "{self.selector}": {self.actual:.2f}%'
        )


@dataclass(frozen=True, slots=True)
class SelectorResult:
    """Aggregate coverage of the records matched by one selector."""

    selector: str
    files: tuple[FileKey, ...]
    summary: CoverageSummary


@dataclass(frozen=True, slots=True)
class ThresholdResult:
    """Outcome of evaluating a whole threshold spec."""

    selectors: tuple[SelectorResult, ...] = ()
    violations: tuple[ThresholdViolation, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.violations


def _is_glob(selector: str) -> bool:
    return any(ch in selector for ch in "*?[{")


def _selector_pattern(selector: str) -> re.Pattern[str]:
    return compile_glob(selector[2:] if selector.startswith("./") else selector)


def check_selectors(spec: Mapping[str, CategoryThresholds]) -> None:
    """Compile every glob selector of ``spec``.

    Raises:
        ConfigError: A selector is not a valid glob.
    """
    for selector in spec:
        if selector != GLOBAL_SELECTOR and _is_glob(selector):
            try:
                _selector_pattern(selector)
            except ConfigError as e:
                raise ConfigError.invalid_threshold(selector, e.details["reason"]) from e


def parse_threshold_spec(raw: str | Mapping[str, Any]) -> dict[str, CategoryThresholds]:
    """Validate a raw threshold spec (JSON text or mapping).

    Raises:
        ConfigError: Malformed JSON, unknown category, percentage > 100, or
            an invalid glob selector.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigError.invalid_threshold("<spec>", f"invalid JSON: {e}") from e
    if not isinstance(raw, Mapping):
        raise ConfigError.invalid_threshold("<spec>", "must be an object of selectors")
    try:
        spec = _SPEC_ADAPTER.validate_python(dict(raw))
    except ValidationError as e:
        err = e.errors()[0]
        selector = str(err["loc"][0]) if err["loc"] else "<spec>"
        raise ConfigError.invalid_threshold(selector, err["msg"]) from e
    check_selectors(spec)
    return spec


def _select(store: CoverageStore, selector: str, root: Path) -> list[FileKey]:
    if selector == GLOBAL_SELECTOR:
        return store.keys()

    root_key = normalize_key(root)
    if _is_glob(selector):
        pattern = _selector_pattern(selector)
        matched = []
        for key in store.keys():
            rel = key[len(root_key) + 1 :] if key.startswith(root_key + "/") else key
            if pattern.fullmatch(rel) or pattern.fullmatch(key):
                matched.append(key)
        return matched

    target = normalize_key(selector, root)
    return [k for k in store.keys() if k == target or k.startswith(target + "/")]


def evaluate_thresholds(
    store: CoverageStore,
    spec: Mapping[str, CategoryThresholds],
    *,
    root: Path | None = None,
    skip: Iterable[FileKey] = (),
) -> ThresholdResult:
    """Evaluate ``spec`` against the in-scope records of ``store``.

    Records listed in ``skip`` (coverage that could not be trusted) are
    left out. Never mutates the store.
    """
    root = root or Path.cwd()
    skipped = set(skip)
    scoped = CoverageStore(r for r in store.in_scope() if r.key not in skipped)

    selectors: list[SelectorResult] = []
    violations: list[ThresholdViolation] = []

    for selector, thresholds in spec.items():
        keys = _select(scoped, selector, root)
        if not keys and selector != GLOBAL_SELECTOR:
            violations.append(
                ThresholdViolation(selector=selector, category=None, required=0, actual=0)
            )
            continue

        summary = CoverageSummary.from_records(scoped[k] for k in keys)
        selectors.append(SelectorResult(selector=selector, files=tuple(keys), summary=summary))

        for category in CATEGORIES:
            required = getattr(thresholds, category)
            if required is None:
                continue
            stat = summary.for_category(category)
            if required < 0:
                if stat.uncovered > -required:
                    violations.append(
                        ThresholdViolation(selector, category, required, stat.uncovered)
                    )
            elif not stat.percent >= required:
                violations.append(ThresholdViolation(selector, category, required, stat.percent))

    return ThresholdResult(selectors=tuple(selectors), violations=tuple(violations))
