"""Tests for error types and codes."""

import pytest

from coverplane.core.errors import (
    ConfigError,
    CoverageDataError,
    CoverplaneError,
    ErrorCode,
    FingerprintMismatch,
    ReportWriteError,
)


class TestErrorCode:
    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_UNKNOWN_REPORTER, 2000),
            (ErrorCode.COVERAGE_FINGERPRINT_MISMATCH, 3000),
            (ErrorCode.REPORT_WRITE_FAILED, 4000),
            (ErrorCode.REPORT_RENDER_FAILED, 4000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        assert expected_range <= code.value < expected_range + 1000


class TestCoverplaneError:
    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        # Given
        error = CoverplaneError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_includes_code_and_message(self) -> None:
        error = ConfigError.parse_error("/repo/.coverplane/config.yaml", "bad indent")

        assert str(error) == (
            "[2001] CONFIG_PARSE_ERROR: Failed to parse config at "
            "/repo/.coverplane/config.yaml: bad indent"
        )

    def test_given_error_when_raised_then_is_exception(self) -> None:
        with pytest.raises(CoverplaneError):
            raise ConfigError.unknown_reporter("xml", ["text"])


class TestConfigError:
    def test_unknown_reporter_lists_known_reporters(self) -> None:
        error = ConfigError.unknown_reporter("xml", ["html", "text"])

        assert error.code == ErrorCode.CONFIG_UNKNOWN_REPORTER
        assert "Unknown coverage reporter 'xml'" in error.message
        assert "html, text" in error.message
        assert error.details["known"] == ["html", "text"]

    def test_invalid_threshold_names_selector(self) -> None:
        error = ConfigError.invalid_threshold("src/**", "bad")

        assert error.details == {"selector": "src/**", "reason": "bad"}
        assert "'src/**'" in error.message


class TestCoverageDataErrors:
    def test_fingerprint_mismatch_is_coverage_data_error(self) -> None:
        # Given
        error = FingerprintMismatch.for_key("/p/a.py", "a" * 40, "b" * 40)

        # Then
        assert isinstance(error, CoverageDataError)
        assert error.code == ErrorCode.COVERAGE_FINGERPRINT_MISMATCH
        assert error.details["expected"] == "a" * 40
        # Fingerprints are shortened in the message only
        assert "a" * 12 + " != " + "b" * 12 in error.message

    def test_unknown_construct(self) -> None:
        error = CoverageDataError.unknown_construct("/p/a.py", "branches", "b9")

        assert error.code == ErrorCode.COVERAGE_UNKNOWN_CONSTRUCT
        assert error.details["construct_id"] == "b9"

    def test_report_write_error_is_not_config_error(self) -> None:
        error = ReportWriteError.unwritable("html", "/ro/index.html", "Permission denied")

        assert not isinstance(error, ConfigError)
        assert error.details["reporter"] == "html"

    def test_render_failed_names_reporter_and_reason(self) -> None:
        error = ReportWriteError.render_failed("text", "ValueError: bad width")

        assert error.code == ErrorCode.REPORT_RENDER_FAILED
        assert error.details == {"reporter": "text", "reason": "ValueError: bad width"}
        assert error.message == "Reporter 'text' failed to render: ValueError: bad width"
