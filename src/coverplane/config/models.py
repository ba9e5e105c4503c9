"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config() (CLI flags land here)
2. Environment variables (COVERPLANE__SECTION__KEY)
3. Repo YAML (.coverplane/config.yaml)
4. Global YAML (~/.config/coverplane/config.yaml)
5. Built-in defaults (this file)

A higher layer that sets an option replaces the lower layer's value
outright. List options are never unioned across layers.

Environment Variable Format:
    COVERPLANE__<SECTION>__<KEY>=<VALUE>

Examples:
    COVERPLANE__LOGGING__LEVEL=DEBUG
    COVERPLANE__COVERAGE__DIRECTORY=out/coverage
    COVERPLANE__COVERAGE__CACHE=false
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coverplane.config.constants import (
    DEFAULT_CACHE_DIRECTORY,
    DEFAULT_COVERAGE_DIRECTORY,
    DEFAULT_IGNORE_PATTERNS,
    DEFAULT_REPORTERS,
)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        COVERPLANE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="WARNING",
        description="Root log level. Logs go to stderr; stdout belongs to reporters.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class ReportRequest(BaseModel):
    """One selected reporter plus its per-format options.

    Options every reporter accepts:
        directory: output directory for this reporter, relative to the
            project root (defaults to the coverage directory)
        summary: also write the one-line aggregate summary to stdout
        skip_empty: hide files without any constructs

    Per-format options:
        file: output file name (json, json-summary, lcov)
        stdout: write to standard output instead of a file (json)
        subdir: sub-directory of the coverage directory (html)
        skip_full: hide fully covered files (text)
        max_cols: table width limit, 0 for unlimited (text)

    Options are validated by the reporter; unknown or mistyped ones are
    configuration errors.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    options: dict[str, Any] = Field(default_factory=dict)


class CategoryThresholds(BaseModel):
    """Minimum coverage per construct category for one selector.

    Positive values are minimum percentages. Negative values are the
    maximum number of uncovered constructs allowed.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    statements: float | None = None
    branches: float | None = None
    functions: float | None = None
    lines: float | None = None

    @field_validator("statements", "branches", "functions", "lines")
    @classmethod
    def validate_percent(cls, v: float | None) -> float | None:
        if v is not None and v > 100:
            raise ValueError(f"Percentage threshold must be <= 100, got {v}")
        return v


class CoverageConfig(BaseModel):
    """Coverage collection and reporting configuration.

    Env vars:
        COVERPLANE__COVERAGE__DIRECTORY: Output directory for file reporters
        COVERPLANE__COVERAGE__CACHE: Enable the instrumentation cache
        COVERPLANE__COVERAGE__CACHE_DIRECTORY: Cache location
    """

    root_dir: str | None = Field(
        default=None,
        description="Project root that patterns are resolved against. Default: cwd.",
    )
    collect_from: list[str] = Field(
        default_factory=list,
        description="Glob patterns or paths of files to collect coverage from. "
        "When set, matching files are reported even if no test loads them.",
    )
    only_from: list[str] = Field(
        default_factory=list,
        description="Explicit files to collect coverage from. Overrides collect_from. "
        "Files that are never executed are not synthesized.",
    )
    ignore_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS),
        description="Glob patterns excluded from coverage.",
    )
    drop_excluded: bool = Field(
        default=True,
        description="Drop excluded files from the final store entirely. "
        "When false they are kept but never counted towards thresholds.",
    )
    reporters: list[str | ReportRequest | tuple[str, dict[str, Any]]] = Field(
        default_factory=lambda: list(DEFAULT_REPORTERS),
        description="Reporters to run, in order. Entries are names or [name, options].",
    )
    threshold: dict[str, CategoryThresholds] = Field(
        default_factory=dict,
        description="Minimum coverage per selector (global, glob, or path).",
    )
    directory: str = Field(
        default=DEFAULT_COVERAGE_DIRECTORY,
        description="Output directory for file-based reporters.",
    )
    cache: bool = Field(
        default=True,
        description="Reuse instrumentation maps of unchanged files between runs.",
    )
    cache_directory: str = Field(
        default=DEFAULT_CACHE_DIRECTORY,
        description="Instrumentation cache location (relative to root_dir).",
    )
    report_workers: int = Field(
        default=4,
        description="Max reporters rendering concurrently.",
    )

    @field_validator("report_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"report_workers must be >= 1, got {v}")
        return v

    def report_requests(self) -> list[ReportRequest]:
        """Normalize configured reporters into ReportRequests, preserving order."""
        requests: list[ReportRequest] = []
        for entry in self.reporters:
            if isinstance(entry, ReportRequest):
                requests.append(entry)
            elif isinstance(entry, str):
                requests.append(ReportRequest(name=entry))
            else:
                name, options = entry
                requests.append(ReportRequest(name=name, options=dict(options)))
        return requests

    def resolved_root(self) -> Path:
        return Path(self.root_dir).resolve() if self.root_dir else Path.cwd().resolve()


class CoverplaneConfig(BaseModel):
    """Root configuration for Coverplane."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    coverage: CoverageConfig = Field(default_factory=CoverageConfig)
