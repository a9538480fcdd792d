"""Tests for JSON log lines and key redaction."""

import json
import logging

from docnex.core.logging_config import JsonLineFormatter, RedactingFilter, redact_secrets, request_id_var


def _record(msg, *args, **extra):
    record = logging.LogRecord("docnex.test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedaction:

    def test_gemini_key(self):
        key = "AIza" + "x" * 35
        assert redact_secrets(f"calling with {key}") == "calling with ***REDACTED***"

    def test_key_value_pairs_keep_the_name(self):
        assert redact_secrets("api_key=abcdef123456 ok") == "api_key=***REDACTED*** ok"

    def test_plain_text_untouched(self):
        assert redact_secrets("Snapshot created for 3 blocks") == "Snapshot created for 3 blocks"

    def test_filter_rewrites_args(self):
        record = _record("key is %s", "AIza" + "y" * 35)
        RedactingFilter().filter(record)
        assert record.getMessage() == "key is ***REDACTED***"


class TestJsonLineFormatter:

    def test_extra_fields_and_request_id(self):
        token = request_id_var.set("abc123")
        try:
            line = JsonLineFormatter().format(_record("Snapshot %s", "created", document_id="doc-1"))
        finally:
            request_id_var.reset(token)

        entry = json.loads(line)
        assert entry["message"] == "Snapshot created"
        assert entry["level"] == "INFO"
        assert entry["document_id"] == "doc-1"
        assert entry["request_id"] == "abc123"

    def test_no_request_id_outside_requests(self):
        entry = json.loads(JsonLineFormatter().format(_record("idle")))
        assert "request_id" not in entry
