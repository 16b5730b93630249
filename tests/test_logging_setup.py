"""Tests for the JSONL logging bootstrap."""

import json
import logging
import sys

import pytest

from grab_app.logging_setup import JsonlHandler
from grab_app.logging_setup import init_json_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def read_lines(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestJsonlHandler:
    def test_writes_one_line_per_record(self, tmp_path):
        handler = JsonlHandler(str(tmp_path / "nested" / "log.jsonl"))
        logger = logging.getLogger("grab.test.jsonl")
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        try:
            logger.info("Downloaded %s", "org.foo:bar:1.0", extra={"repository": "central"})
            logger.warning({"event": "checksum", "url": "https://x"})
        finally:
            logger.removeHandler(handler)

        first, second = read_lines(handler.path)
        assert first["lvl"] == "INFO"
        assert first["message"] == "Downloaded org.foo:bar:1.0"
        assert first["repository"] == "central"
        assert first["schema"]["name"] == "grab.log"
        assert second["url"] == "https://x"
        assert second["event"] == "checksum"

    def test_exception_included(self, tmp_path):
        handler = JsonlHandler(str(tmp_path / "log.jsonl"))
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.getLogger("x").makeRecord("x", logging.ERROR, "f.py", 1, "failed", (), sys.exc_info())
        payload = handler.format_payload(record)
        assert "RuntimeError: boom" in payload["exc"]


class TestInitJsonLogging:
    def test_replaces_previous_handler(self, tmp_path, restore_root_logger):
        first = init_json_logging(str(tmp_path / "a.jsonl"), "debug")
        second = init_json_logging(str(tmp_path / "b.jsonl"), "warning")

        handlers = [h for h in restore_root_logger.handlers if isinstance(h, JsonlHandler)]
        assert handlers == [second]
        assert first not in restore_root_logger.handlers
        assert restore_root_logger.level == logging.WARNING
