"""Tests for logging configuration."""

import json
import logging
from datetime import timedelta

from tokengate.core.logging import (
    REDACTED,
    JSONFormatter,
    TokenRedactionFilter,
    get_logger,
    redact_tokens,
    setup_logging,
)
from tokengate.services.token_codec import SigningKey, TokenCodec, TokenType


def _record(message: str, *args, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="tokengate.test",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=args,
        exc_info=exc_info,
    )


class TestJSONFormatter:
    def test_fields(self):
        entry = json.loads(JSONFormatter().format(_record("Rejected token: %s", "revoked")))

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "tokengate.test"
        assert entry["message"] == "Rejected token: revoked"
        assert "timestamp" in entry

    def test_special_characters_stay_on_one_line(self):
        line = JSONFormatter().format(_record('quote " backslash \\ newline \n end'))

        assert "\n" not in line
        assert json.loads(line)["message"] == 'quote " backslash \\ newline \n end'

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys

            record = _record("failed", exc_info=sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


def test_get_logger_prefix():
    assert get_logger("main").name == "tokengate.main"


def _token() -> str:
    codec = TokenCodec(SigningKey.generate())
    return codec.issue("alice", TokenType.ACCESS, timedelta(minutes=3))


class TestTokenRedaction:
    """Token values never reach the log output."""

    def test_jwt_is_masked(self):
        token = _token()
        text = redact_tokens(f"refresh failed for {token} at step 2")

        assert token not in text
        assert text == f"refresh failed for {REDACTED} at step 2"

    def test_bearer_header_is_masked(self):
        text = redact_tokens("header was Authorization: Bearer abc123-opaque")
        assert text == f"header was Authorization: Bearer {REDACTED}"

    def test_plain_text_untouched(self):
        assert redact_tokens("Rejected token: revoked") == "Rejected token: revoked"

    def test_filter_rewrites_args(self):
        token = _token()
        record = _record("Logout skipped %s", token)

        assert TokenRedactionFilter().filter(record) is True
        assert token not in record.getMessage()
        assert REDACTED in record.getMessage()

    def test_json_formatter_masks_traceback(self):
        token = _token()
        try:
            raise ValueError(f"bad token {token}")
        except ValueError:
            import sys

            record = _record("failed", exc_info=sys.exc_info())

        line = JSONFormatter().format(record)
        assert token not in line

    def test_setup_logging_installs_filter(self, capsys):
        token = _token()
        saved_handlers, saved_level = logging.root.handlers[:], logging.root.level
        try:
            setup_logging("INFO", "structured")
            logging.getLogger("tokengate.test").warning("leaked %s", token)
        finally:
            logging.root.handlers = saved_handlers
            logging.root.setLevel(saved_level)

        out = capsys.readouterr().out
        assert token not in out
        assert REDACTED in out
