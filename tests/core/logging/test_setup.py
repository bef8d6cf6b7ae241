"""Tests for logging setup and configuration."""

import io
import json
import logging
import re
from unittest.mock import patch

import pytest

from core.logging.context import clear_log_context, get_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import (
    DEFAULT_CONSOLE_LEVEL,
    NOISY_LOGGERS,
    generate_operation_id,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    clear_log_context()
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    clear_log_context()


class TestSetupLogging:

    def test_default_console_level_is_warning(self):
        setup_logging(stream=io.StringIO())

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].level == DEFAULT_CONSOLE_LEVEL == logging.WARNING

    def test_console_formatter_by_default(self):
        setup_logging(stream=io.StringIO(), json_format=False)

        assert isinstance(logging.getLogger().handlers[0].formatter, ConsoleFormatter)

    def test_json_format_flag(self):
        stream = io.StringIO()
        setup_logging(stream=stream, json_format=True, console_level=logging.INFO)

        logging.getLogger("cencli.test").info("hello")

        entry = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert entry["message"] == "hello"

    def test_json_format_from_env(self):
        with patch.dict("os.environ", {"LOG_FORMAT": "json"}):
            setup_logging(stream=io.StringIO())

        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)

    def test_replaces_existing_handlers(self):
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())

        assert len(logging.getLogger().handlers) == 1

    def test_sets_log_context(self):
        setup_logging(stream=io.StringIO(), command="search", operation_id="op-x")

        ctx = get_log_context()
        assert ctx["command"] == "search"
        assert ctx["operation_id"] == "op-x"

    def test_debug_level_shows_debug(self):
        stream = io.StringIO()
        setup_logging(stream=stream, console_level=logging.DEBUG)

        logging.getLogger("cencli.test").debug("details")

        assert "details" in stream.getvalue()

    def test_warning_level_hides_info(self):
        stream = io.StringIO()
        setup_logging(stream=stream)

        logging.getLogger("cencli.test").info("chatty")

        assert "chatty" not in stream.getvalue()

    def test_log_file_receives_json(self, tmp_path):
        log_file = tmp_path / "logs" / "cencli.log"
        setup_logging(stream=io.StringIO(), log_file=log_file)

        logging.getLogger("cencli.test").debug("to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").strip().splitlines()
        assert any(json.loads(line)["message"] == "to file" for line in lines)

    def test_suppresses_noisy_loggers(self):
        setup_logging(stream=io.StringIO())

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


class TestHelpers:

    def test_get_logger(self):
        assert get_logger("cencli.x") is logging.getLogger("cencli.x")

    def test_generate_operation_id_format(self):
        op_id = generate_operation_id()

        assert re.fullmatch(r"op-\d{8}-\d{6}-[0-9a-f]{4}", op_id)

    def test_generate_operation_id_unique(self):
        assert len({generate_operation_id() for _ in range(20)}) > 1
