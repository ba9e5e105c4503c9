"""Tests for structured logging."""

import json
import logging
import threading
from pathlib import Path

import pytest

from coverplane.config.models import LoggingConfig, LogOutputConfig
from coverplane.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    set_run_id,
)
from coverplane.core.progress import suppress_console_logs


class TestRunIdCorrelation:
    def setup_method(self) -> None:
        clear_run_id()

    def test_given_run_id_when_set_then_can_retrieve(self) -> None:
        # When
        result = set_run_id("run-123")

        # Then
        assert result == "run-123"
        assert get_run_id() == "run-123"

    def test_given_no_id_when_set_then_generates_one(self) -> None:
        rid = set_run_id()

        assert len(rid) == 12  # uuid4().hex[:12]

    def test_given_set_id_when_clear_then_removes_id(self) -> None:
        # Given
        set_run_id("to-clear")

        # When
        clear_run_id()

        # Then
        assert get_run_id() is None


class TestConfigureLogging:
    def setup_method(self) -> None:
        clear_run_id()

    def test_given_json_file_output_when_logging_then_writes_run_id(self, tmp_path: Path) -> None:
        # Given
        log_file = tmp_path / "logs" / "run.log"
        configure_logging(
            config=LoggingConfig(
                level="INFO",
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )
        set_run_id("abc123")

        # When
        get_logger("engine").info("run_done", files=3)

        # Then
        record = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert record["event"] == "run_done"
        assert record["files"] == 3
        assert record["run_id"] == "abc123"
        assert record["logger"] == "engine"
        assert record["level"] == "info"

    def test_given_warning_level_when_info_logged_then_filtered(self, tmp_path: Path) -> None:
        log_file = tmp_path / "run.log"
        configure_logging(
            config=LoggingConfig(
                level="WARNING",
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )

        get_logger().info("hidden")
        get_logger().warning("shown")

        lines = log_file.read_text().strip().splitlines()
        assert [json.loads(line)["event"] for line in lines] == ["shown"]

    def test_given_per_output_level_when_configured_then_applied(self, tmp_path: Path) -> None:
        log_file = tmp_path / "debug.log"
        configure_logging(
            config=LoggingConfig(
                level="DEBUG",
                outputs=[
                    LogOutputConfig(destination="stderr", level="ERROR"),
                    LogOutputConfig(format="json", destination=str(log_file)),
                ],
            )
        )

        handlers = logging.getLogger().handlers
        assert [h.level for h in handlers] == [logging.ERROR, logging.DEBUG]

    def test_given_simple_params_when_configured_then_single_console_handler(self) -> None:
        configure_logging(level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_given_suppressed_console_when_logging_then_stderr_silent(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        # Given
        configure_logging(level="INFO")

        # When
        with suppress_console_logs():
            get_logger().warning("while_suppressed")
        get_logger().warning("after_suppressed")

        # Then
        err = capsys.readouterr().err
        assert "while_suppressed" not in err
        assert "after_suppressed" in err

    def test_given_suppressed_console_when_worker_thread_logs_then_stderr_silent(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        # Given
        configure_logging(level="INFO")

        # When
        with suppress_console_logs():
            worker = threading.Thread(target=lambda: get_logger().warning("from_worker"))
            worker.start()
            worker.join()

        # Then
        assert "from_worker" not in capsys.readouterr().err
