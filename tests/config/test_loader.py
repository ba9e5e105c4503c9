"""Tests for config/loader.py module.

Covers:
- _load_yaml() function
- _deep_merge() function
- load_config() layer precedence
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from coverplane.config.loader import (
    GLOBAL_CONFIG_PATH,
    _deep_merge,
    _load_yaml,
    load_config,
)
from coverplane.core.errors import ConfigError, ErrorCode


@pytest.fixture
def no_global_config(tmp_path: Path):
    with patch("coverplane.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "none.yaml"):
        yield


def _write_repo_config(root: Path, text: str) -> None:
    config_dir = root / ".coverplane"
    config_dir.mkdir(exist_ok=True)
    (config_dir / "config.yaml").write_text(text)


class TestLoadYaml:
    """Tests for _load_yaml function."""

    def test_returns_empty_dict_for_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_loads_valid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("coverage:\n  reporters: [text]\n")

        assert _load_yaml(yaml_file) == {"coverage": {"reporters": ["text"]}}

    def test_returns_empty_for_yaml_null(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "null.yaml"
        yaml_file.write_text("null\n")

        assert _load_yaml(yaml_file) == {}

    def test_raises_config_error_for_invalid_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("coverage:\n  reporters:\n    - invalid: [unclosed")

        with pytest.raises(ConfigError) as exc_info:
            _load_yaml(yaml_file)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_rejects_non_mapping(self, tmp_path: Path) -> None:
        """A top-level list is not a config document."""
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            _load_yaml(yaml_file)


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_nested_merge(self) -> None:
        base = {"coverage": {"directory": "out", "cache": True}}
        override = {"coverage": {"cache": False}}

        assert _deep_merge(base, override) == {"coverage": {"directory": "out", "cache": False}}

    def test_lists_are_replaced_not_extended(self) -> None:
        base = {"coverage": {"collect_from": ["src/**"]}}
        override = {"coverage": {"collect_from": ["lib/**"]}}

        assert _deep_merge(base, override)["coverage"]["collect_from"] == ["lib/**"]

    def test_override_replaces_non_dict(self) -> None:
        base: dict[str, Any] = {"a": {"nested": 1}}
        override: dict[str, Any] = {"a": "simple"}
        assert _deep_merge(base, override) == {"a": "simple"}

    def test_does_not_mutate_base(self) -> None:
        base = {"a": 1}
        _deep_merge(base, {"b": 2})
        assert base == {"a": 1}


@pytest.mark.usefixtures("no_global_config")
class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)

        assert config.logging.level == "WARNING"
        assert config.coverage.reporters == ["json", "text", "lcov"]
        assert config.coverage.directory == "coverage"
        assert config.coverage.cache is True
        assert config.coverage.collect_from == []

    def test_root_dir_defaults_to_project_root(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.coverage.resolved_root() == tmp_path.resolve()

    def test_loads_repo_config(self, tmp_path: Path) -> None:
        _write_repo_config(
            tmp_path,
            "coverage:\n"
            "  collect_from: ['src/**/*.py']\n"
            "  reporters:\n"
            "    - text\n"
            "    - [html, {subdir: site}]\n"
            "  threshold:\n"
            "    global: {lines: 80}\n",
        )

        config = load_config(tmp_path)

        assert config.coverage.collect_from == ["src/**/*.py"]
        requests = config.coverage.report_requests()
        assert [r.name for r in requests] == ["text", "html"]
        assert requests[1].options == {"subdir": "site"}
        assert config.coverage.threshold["global"].lines == 80

    def test_global_config_is_overridden_by_repo(self, tmp_path: Path) -> None:
        global_yaml = tmp_path / "global.yaml"
        global_yaml.write_text("coverage:\n  directory: global-out\n  cache: false\n")
        _write_repo_config(tmp_path, "coverage:\n  directory: repo-out\n")

        with patch("coverplane.config.loader.GLOBAL_CONFIG_PATH", global_yaml):
            config = load_config(tmp_path)

        assert config.coverage.directory == "repo-out"
        assert config.coverage.cache is False

    def test_env_vars_override_yaml(self, tmp_path: Path) -> None:
        _write_repo_config(tmp_path, "logging:\n  level: INFO\n")

        with patch.dict(os.environ, {"COVERPLANE__LOGGING__LEVEL": "ERROR"}):
            config = load_config(tmp_path)

        assert config.logging.level == "ERROR"

    def test_env_var_for_coverage_section(self, tmp_path: Path) -> None:
        with patch.dict(os.environ, {"COVERPLANE__COVERAGE__DIRECTORY": "env-out"}):
            config = load_config(tmp_path)

        assert config.coverage.directory == "env-out"

    def test_kwargs_override_all(self, tmp_path: Path) -> None:
        """Command-line values replace configured lists."""
        _write_repo_config(tmp_path, "coverage:\n  collect_from: ['src/**']\n  directory: out\n")

        config = load_config(tmp_path, coverage={"collect_from": ["lib/a.py"]})

        assert config.coverage.collect_from == ["lib/a.py"]
        assert config.coverage.directory == "out"

    def test_invalid_threshold_raises_config_error(self, tmp_path: Path) -> None:
        _write_repo_config(tmp_path, "coverage:\n  threshold:\n    global: {lines: 101}\n")

        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID_VALUE

    def test_unknown_threshold_category_raises(self, tmp_path: Path) -> None:
        _write_repo_config(tmp_path, "coverage:\n  threshold:\n    global: {blocks: 50}\n")

        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_invalid_report_workers(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path, coverage={"report_workers": 0})

    def test_relative_log_file_destination_rejected(self, tmp_path: Path) -> None:
        _write_repo_config(
            tmp_path, "logging:\n  outputs:\n    - destination: logs/run.log\n"
        )

        with pytest.raises(ConfigError):
            load_config(tmp_path)


class TestGlobalConfigPath:
    def test_is_in_user_config(self) -> None:
        assert isinstance(GLOBAL_CONFIG_PATH, Path)
        assert "coverplane" in str(GLOBAL_CONFIG_PATH)
