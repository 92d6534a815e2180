# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for docdetect.logging_config — structlog + stdlib bridge."""

from __future__ import annotations

import json
import logging
import sys

import pytest
import structlog

from docdetect.logging_config import configure


@pytest.fixture(autouse=True)
def _reset_logging():
    """Ensure clean logging state before/after each test."""
    root = logging.getLogger()
    old_handlers = root.handlers[:]
    old_level = root.level
    noisy = {name: logging.getLogger(name).level for name in ("httpx", "httpcore", "openai")}
    yield
    root.handlers = old_handlers
    root.setLevel(old_level)
    for name, lvl in noisy.items():
        logging.getLogger(name).setLevel(lvl)
    structlog.reset_defaults()


class TestConsoleRenderer:
    """Terminal mode: ConsoleRenderer (human-readable)."""

    def test_configure_console_mode(self):
        configure(json_output=False)
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.handlers[0].stream is sys.stderr

    def test_console_output_is_human_readable(self, capsys):
        configure(json_output=False, level="INFO")
        logging.getLogger("test.console").info("hello world")
        captured = capsys.readouterr()
        assert "hello world" in captured.err
        assert not captured.err.strip().startswith("{")
        assert captured.out == ""

    def test_console_includes_log_level(self, capsys):
        configure(json_output=False)
        logging.getLogger("test.level").warning("test warn")
        captured = capsys.readouterr()
        assert "warn" in captured.err.lower()


class TestJSONRenderer:
    """Batch mode: JSONRenderer (machine-parseable)."""

    def test_json_output_is_valid_json(self, capsys):
        configure(json_output=True, level="INFO")
        logging.getLogger("docdetect.engine").info("Classified %s", "https://example.com/")
        parsed = json.loads(capsys.readouterr().err.strip())
        assert parsed["event"] == "Classified https://example.com/"
        assert parsed["logger"] == "docdetect.engine"
        assert parsed["level"] == "info"
        assert "timestamp" in parsed

    def test_exception_rendered(self, capsys):
        configure(json_output=True)
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            logging.getLogger("test.exc").exception("failed")
        parsed = json.loads(capsys.readouterr().err.strip())
        assert "kaboom" in parsed["exception"]


class TestContextVars:
    def test_contextvars_in_json_output(self, capsys):
        configure(json_output=True, level="INFO")
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(url="https://docs.python.org/3/")
        try:
            structlog.get_logger("test.ctx").info("ctx test")
            parsed = json.loads(capsys.readouterr().err.strip())
            assert parsed["url"] == "https://docs.python.org/3/"
        finally:
            structlog.contextvars.clear_contextvars()


class TestLogLevel:
    def test_default_level_is_warning(self, capsys):
        configure()
        assert logging.getLogger().level == logging.WARNING
        logging.getLogger("test.quiet").info("hidden")
        assert "hidden" not in capsys.readouterr().err

    def test_custom_level(self):
        configure(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("DOCDETECT_LOG_LEVEL", "INFO")
        configure()
        assert logging.getLogger().level == logging.INFO

    def test_explicit_level_beats_env(self, monkeypatch):
        monkeypatch.setenv("DOCDETECT_LOG_LEVEL", "INFO")
        configure(level="ERROR")
        assert logging.getLogger().level == logging.ERROR

    def test_invalid_level_falls_back_to_warning(self):
        configure(level="NONEXISTENT")
        assert logging.getLogger().level == logging.WARNING

    def test_noisy_loggers_quieted(self):
        configure(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING


class TestMultipleConfigure:
    def test_no_handler_stacking(self):
        configure(json_output=False)
        configure(json_output=True)
        configure(json_output=False)
        assert len(logging.getLogger().handlers) == 1


class TestClassificationContext:
    """Records emitted while classifying carry the URL being classified."""

    @pytest.mark.asyncio
    async def test_url_bound_to_engine_records(self, capsys):
        from docdetect.engine import DocumentationDetector
        from tests._fakes import FakeFetcher

        configure(json_output=True, level="INFO")
        detector = DocumentationDetector(fetcher=FakeFetcher())
        await detector.classify("https://docs.python.org/3/")
        await detector.aclose()

        records = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line.strip()]
        classified = [r for r in records if r["event"].startswith("Classified")]
        assert len(classified) == 1
        assert classified[0]["url"] == "https://docs.python.org/3/"
        assert classified[0]["logger"] == "docdetect.engine"

    @pytest.mark.asyncio
    async def test_url_unbound_after_call(self, capsys):
        from docdetect.engine import DocumentationDetector
        from tests._fakes import FakeFetcher

        configure(json_output=True, level="INFO")
        detector = DocumentationDetector(fetcher=FakeFetcher())
        await detector.classify("https://docs.python.org/3/")
        capsys.readouterr()

        logging.getLogger("test.after").warning("after")
        parsed = json.loads(capsys.readouterr().err.strip())
        assert "url" not in parsed
