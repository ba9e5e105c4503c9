"""Tests for coverage/thresholds.py."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from coverplane.config.models import CategoryThresholds
from coverplane.core.errors import ConfigError, ErrorCode
from coverplane.coverage.models import CoverageStore, InstrumentationMap, normalize_key
from coverplane.coverage.thresholds import (
    ThresholdViolation,
    check_selectors,
    evaluate_thresholds,
    parse_threshold_spec,
)

MakeImap = Callable[..., InstrumentationMap]


@pytest.fixture
def store(tmp_path: Path, make_imap: MakeImap) -> CoverageStore:
    """core/a.py fully covered lines, core/b.py 1/3 lines, dep.py out of scope."""
    store = CoverageStore()
    a = store.insert_placeholder(normalize_key("src/core/a.py", tmp_path), make_imap("a"))
    for line in (1, 2, 3):
        a.accumulate("lines", line)
    b = store.insert_placeholder(normalize_key("src/core/b.py", tmp_path), make_imap("b"))
    b.accumulate("lines", 1)
    store.insert_placeholder(normalize_key("lib/dep.py", tmp_path), make_imap("d"), in_scope=False)
    return store


class TestParseThresholdSpec:
    def test_json_text(self) -> None:
        spec = parse_threshold_spec('{"global": {"lines": 90, "branches": -2}}')
        assert spec["global"].lines == 90
        assert spec["global"].branches == -2
        assert spec["global"].statements is None

    def test_percent_above_100_rejected(self) -> None:
        with pytest.raises(ConfigError, match="global"):
            parse_threshold_spec({"global": {"lines": 101}})

    def test_unknown_category_rejected(self) -> None:
        with pytest.raises(ConfigError):
            parse_threshold_spec({"global": {"mutations": 50}})

    def test_invalid_json(self) -> None:
        with pytest.raises(ConfigError, match="invalid JSON"):
            parse_threshold_spec("{global")

    def test_non_object_rejected(self) -> None:
        with pytest.raises(ConfigError):
            parse_threshold_spec("[1, 2]")

    def test_invalid_glob_selector_rejected(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            parse_threshold_spec({"src/[abc": {"lines": 10}})

        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_THRESHOLD
        assert exc_info.value.details["selector"] == "src/[abc"
        assert "unbalanced" in exc_info.value.details["reason"]


class TestCheckSelectors:
    def test_valid_selectors_pass(self) -> None:
        check_selectors(
            {
                "global": CategoryThresholds(lines=1),
                "src/core/": CategoryThresholds(lines=1),
                "./src/{a,b}.py": CategoryThresholds(lines=1),
            }
        )

    def test_unbalanced_brace_rejected(self) -> None:
        with pytest.raises(ConfigError, match=r"src/\{a,b"):
            check_selectors({"src/{a,b": CategoryThresholds(lines=1)})


class TestEvaluateThresholds:
    def test_global_passes_above_threshold(self, store: CoverageStore, tmp_path: Path) -> None:
        # 4 of 6 in-scope lines covered
        spec = {"global": CategoryThresholds(lines=66)}
        result = evaluate_thresholds(store, spec, root=tmp_path)
        assert result.passed

    def test_global_fails_below_threshold(self, store: CoverageStore, tmp_path: Path) -> None:
        spec = {"global": CategoryThresholds(lines=100)}
        result = evaluate_thresholds(store, spec, root=tmp_path)

        assert not result.passed
        (violation,) = result.violations
        assert violation.category == "lines"
        assert violation.actual == pytest.approx(200 / 3)
        assert 'not met for "global"' in violation.message

    def test_out_of_scope_records_ignored(self, store: CoverageStore, tmp_path: Path) -> None:
        spec = {"global": CategoryThresholds(lines=50)}
        result = evaluate_thresholds(store, spec, root=tmp_path)
        (selector,) = result.selectors
        assert len(selector.files) == 2

    def test_path_selector_aggregates_subtree(self, store: CoverageStore, tmp_path: Path) -> None:
        result = evaluate_thresholds(
            store, {"src/core/a.py": CategoryThresholds(lines=100)}, root=tmp_path
        )
        assert result.passed

    def test_glob_selector_aggregates_matches(self, store: CoverageStore, tmp_path: Path) -> None:
        result = evaluate_thresholds(
            store, {"src/**/b.py": CategoryThresholds(lines=50)}, root=tmp_path
        )
        assert not result.passed
        assert result.violations[0].selector == "src/**/b.py"

    def test_selector_without_files_is_violation(
        self, store: CoverageStore, tmp_path: Path
    ) -> None:
        result = evaluate_thresholds(
            store, {"src/missing/": CategoryThresholds(lines=0)}, root=tmp_path
        )
        (violation,) = result.violations
        assert violation.category is None
        assert "was not found" in violation.message

    def test_negative_threshold_is_max_uncovered(
        self, store: CoverageStore, tmp_path: Path
    ) -> None:
        ok = evaluate_thresholds(store, {"global": CategoryThresholds(lines=-2)}, root=tmp_path)
        bad = evaluate_thresholds(store, {"global": CategoryThresholds(lines=-1)}, root=tmp_path)

        assert ok.passed
        (violation,) = bad.violations
        assert violation.actual == 2
        assert "exceeds" in violation.message

    def test_empty_category_counts_as_full(self, store: CoverageStore, tmp_path: Path) -> None:
        for record in store:
            record.function_hits.clear()
        result = evaluate_thresholds(
            store, {"global": CategoryThresholds(functions=100)}, root=tmp_path
        )
        assert result.passed

    def test_store_not_mutated(self, store: CoverageStore, tmp_path: Path) -> None:
        before = store.copy()
        evaluate_thresholds(store, {"global": CategoryThresholds(lines=100)}, root=tmp_path)
        assert store == before

    def test_skipped_records_left_out(self, store: CoverageStore, tmp_path: Path) -> None:
        b = normalize_key("src/core/b.py", tmp_path)
        spec = {"global": CategoryThresholds(lines=100)}

        result = evaluate_thresholds(store, spec, root=tmp_path, skip=[b])

        assert result.passed
        (selector,) = result.selectors
        assert selector.files == (normalize_key("src/core/a.py", tmp_path),)


class TestThresholdViolation:
    def test_is_a_value(self) -> None:
        a = ThresholdViolation("global", "lines", 90, 80)
        assert a == ThresholdViolation("global", "lines", 90, 80)
        assert not isinstance(a, Exception)
