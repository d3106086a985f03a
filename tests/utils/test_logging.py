# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the structured JSON logger.

We verify:
  - output is valid JSON
  - all mandatory fields are present (ts, level, module, msg)
  - log levels filter correctly
  - extra context fields get merged into the JSON
  - exceptions stay inside the JSON line
"""

import json
import logging
from pathlib import Path

import pytest

from hippo_release.logging.logger import configure_package_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_loggers() -> None:
    """
    Clear all logger handlers between tests so get_logger's handler-stacking
    guard doesn't interfere with test isolation.
    """
    yield  # type: ignore[misc]
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("hippo_release.test"):
            logger = logging.getLogger(name)
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()


class TestJsonOutput:
    def test_output_is_valid_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("hippo_release.test.json", log_level="INFO")
        logger.info("hello")
        captured = capsys.readouterr()

        parsed = json.loads(captured.out.strip())
        assert isinstance(parsed, dict)

    def test_mandatory_fields_are_present(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("hippo_release.test.fields", log_level="INFO")
        logger.info("test message")
        captured = capsys.readouterr()

        parsed = json.loads(captured.out.strip())
        assert "ts" in parsed
        assert parsed["level"] == "INFO"
        assert parsed["module"] == "hippo_release.test.fields"
        assert parsed["msg"] == "test message"

    def test_extra_fields_are_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("hippo_release.test.extra", log_level="DEBUG")
        logger.info(
            "Archive created",
            extra={"platform": "linux-amd64", "size_bytes": 1234, "files": ["README.md"]},
        )
        captured = capsys.readouterr()

        parsed = json.loads(captured.out.strip())
        assert parsed["platform"] == "linux-amd64"
        assert parsed["size_bytes"] == 1234
        assert parsed["files"] == ["README.md"]

    def test_exception_stays_on_one_line(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("hippo_release.test.exc", log_level="INFO")
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            logger.error("failed", exc_info=True)
        captured = capsys.readouterr()

        lines = captured.out.strip().splitlines()
        assert len(lines) == 1
        assert "kaboom" in json.loads(lines[0])["exc"]


class TestLogLevelFiltering:
    def test_debug_messages_hidden_at_info_level(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        logger = get_logger("hippo_release.test.level_filter", log_level="INFO")
        logger.debug("this should not appear")
        captured = capsys.readouterr()
        assert captured.out.strip() == ""

    def test_info_messages_shown_at_info_level(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        logger = get_logger("hippo_release.test.level_show", log_level="INFO")
        logger.info("this should appear")
        captured = capsys.readouterr()
        assert "this should appear" in captured.out

    def test_second_call_updates_level_without_stacking(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        get_logger("hippo_release.test.relevel", log_level="INFO")
        logger = get_logger("hippo_release.test.relevel", log_level="DEBUG")
        logger.debug("now visible")
        captured = capsys.readouterr()

        assert len(logger.handlers) == 1
        assert "now visible" in captured.out


class TestFileOutput:
    def test_logs_are_written_to_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "test.log"
        logger = get_logger("hippo_release.test.file_output", log_level="INFO", log_file=log_file)
        logger.info("file log test")

        content = log_file.read_text(encoding="utf-8")
        parsed = json.loads(content.strip())
        assert parsed["msg"] == "file log test"


class TestConfigurePackageLogging:
    def test_level_reaches_existing_loggers(self) -> None:
        logger = get_logger("hippo_release.test.package", log_level="INFO")
        configure_package_logging("WARNING")
        try:
            assert logger.level == logging.WARNING
        finally:
            configure_package_logging("INFO")


class TestInvalidLogLevel:
    def test_invalid_level_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("hippo_release.test.invalid", log_level="INVALID")
