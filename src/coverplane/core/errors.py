"""Coverplane error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Coverage data (merge, cache, instrumentation)
- 4xxx: Report output

Threshold violations are not errors: they are evaluator results
(see coverplane.coverage.thresholds).
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_UNKNOWN_REPORTER = 2005
    CONFIG_INVALID_GLOB = 2006
    CONFIG_INVALID_THRESHOLD = 2007

    # Coverage data (3xxx)
    COVERAGE_FINGERPRINT_MISMATCH = 3001
    COVERAGE_MALFORMED_PARTIAL = 3002
    COVERAGE_UNKNOWN_CONSTRUCT = 3003
    COVERAGE_INSTRUMENTATION_FAILED = 3004

    # Report output (4xxx)
    REPORT_WRITE_FAILED = 4001
    REPORT_RENDER_FAILED = 4002


@dataclass(frozen=True, slots=True)
class CoverplaneError(Exception):
    """Base error with structured context for CLI and JSON output."""

    code: ErrorCode
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'CONFIG_PARSE_ERROR')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(CoverplaneError):
    """Configuration-related errors. Fatal before any coverage work starts."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def unknown_reporter(cls, name: str, known: list[str]) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_UNKNOWN_REPORTER,
            message=f"Unknown coverage reporter {name!r}. Valid reporters: {', '.join(known)}",
            details={"reporter": name, "known": known},
        )

    @classmethod
    def invalid_glob(cls, pattern: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_GLOB,
            message=f"Invalid coverage pattern {pattern!r}: {reason}",
            details={"pattern": pattern, "reason": reason},
        )

    @classmethod
    def invalid_threshold(cls, selector: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_THRESHOLD,
            message=f"Invalid coverage threshold for {selector!r}: {reason}",
            details={"selector": selector, "reason": reason},
        )


class CoverageDataError(CoverplaneError):
    """Coverage data could not be merged, loaded, or accumulated."""

    @classmethod
    def malformed_partial(cls, source: str, reason: str) -> "CoverageDataError":
        return cls(
            code=ErrorCode.COVERAGE_MALFORMED_PARTIAL,
            message=f"Malformed partial coverage from {source}: {reason}",
            details={"source": source, "reason": reason},
        )

    @classmethod
    def unknown_construct(cls, key: str, category: str, construct_id: str) -> "CoverageDataError":
        return cls(
            code=ErrorCode.COVERAGE_UNKNOWN_CONSTRUCT,
            message=f"Unknown {category} construct {construct_id!r} for {key}",
            details={"key": key, "category": category, "construct_id": construct_id},
        )


class FingerprintMismatch(CoverageDataError):
    """Two producers disagree on the instrumentation of one file.

    Raised when records for the same FileKey carry different
    InstrumentationMap fingerprints (source changed between producers,
    or a stale cache entry).
    """

    @classmethod
    def for_key(cls, key: str, expected: str, actual: str) -> "FingerprintMismatch":
        return cls(
            code=ErrorCode.COVERAGE_FINGERPRINT_MISMATCH,
            message=(
                f"Instrumentation fingerprint mismatch for {key}: "
                f"{expected[:12]} != {actual[:12]}"
            ),
            details={"key": key, "expected": expected, "actual": actual},
        )


class InstrumentationError(CoverplaneError):
    """A source file could not be instrumented."""

    @classmethod
    def failed(cls, path: str, reason: str) -> "InstrumentationError":
        return cls(
            code=ErrorCode.COVERAGE_INSTRUMENTATION_FAILED,
            message=f"Failed to instrument {path}: {reason}",
            details={"path": path, "reason": reason},
        )


class ReportWriteError(CoverplaneError):
    """A reporter could not write its output. Non-fatal for other reporters."""

    @classmethod
    def unwritable(cls, reporter: str, path: str, reason: str) -> "ReportWriteError":
        return cls(
            code=ErrorCode.REPORT_WRITE_FAILED,
            message=f"Reporter {reporter!r} could not write {path}: {reason}",
            details={"reporter": reporter, "path": path, "reason": reason},
        )

    @classmethod
    def render_failed(cls, reporter: str, reason: str) -> "ReportWriteError":
        return cls(
            code=ErrorCode.REPORT_RENDER_FAILED,
            message=f"Reporter {reporter!r} failed to render: {reason}",
            details={"reporter": reporter, "reason": reason},
        )

