"""Tests for logging helpers and request ID handling."""
import uuid

from tutor_relay.middleware.request_id import resolve_request_id
from tutor_relay.utils.logger import REDACTED, redact_sensitive


class TestRedactSensitive:
    """Tests for the redaction processor."""

    def test_masks_sensitive_keys(self):
        event = redact_sensitive(None, "info", {"event": "x", "authorization": "Bearer abc", "content": "hi"})
        assert event == {"event": "x", "authorization": REDACTED, "content": REDACTED}

    def test_leaves_other_keys(self):
        event = {"event": "relay_started", "messages_count": 3}
        assert redact_sensitive(None, "info", dict(event)) == event


class TestResolveRequestId:
    """Tests for resolve_request_id()."""

    def test_reuses_well_formed_id(self):
        assert resolve_request_id("req-123_abc.def:9") == "req-123_abc.def:9"

    def test_replaces_missing_or_malformed(self):
        for value in (None, "", "has space", "x" * 129, "line\nbreak"):
            generated = resolve_request_id(value)
            assert generated != value
            uuid.UUID(generated)

    def test_malformed_header_replaced_on_response(self, client):
        response = client.get("/health", headers={"X-Request-ID": "<script>"})
        assert response.headers["X-Request-ID"] != "<script>"
        uuid.UUID(response.headers["X-Request-ID"])
