"""
Tests for the health check endpoint.
"""

import json
import re
from datetime import datetime


class TestHealthEndpoint:
    """Tests for GET /health endpoint."""

    def test_returns_200(self):
        """Health endpoint should return 200."""
        from api.health import handler

        result = handler({}, {})

        assert result["statusCode"] == 200

    def test_returns_ok_status(self):
        from api.health import handler

        body = json.loads(handler({}, {})["body"])

        assert body["status"] == "ok"

    def test_response_has_exactly_three_fields(self):
        """Health endpoint body should have exactly status, version, timestamp."""
        from api.health import handler

        body = json.loads(handler({}, {})["body"])

        assert set(body.keys()) == {"status", "version", "timestamp"}

    def test_version_is_semver_format(self):
        from api.health import handler

        body = json.loads(handler({}, {})["body"])

        assert re.match(r"^\d+\.\d+\.\d+", body["version"])

    def test_timestamp_is_iso_format(self):
        from api.health import handler

        body = json.loads(handler({}, {})["body"])

        # Should not raise ValueError
        assert datetime.fromisoformat(body["timestamp"]) is not None

    def test_headers(self):
        """Health endpoint is JSON, uncached and carries security headers."""
        from api.health import handler

        headers = handler({}, {})["headers"]

        assert headers["Content-Type"] == "application/json"
        assert headers["Cache-Control"] == "no-cache"
        assert headers["X-Content-Type-Options"] == "nosniff"

    def test_handles_event_with_request_context(self, api_gateway_event):
        from api.health import handler

        api_gateway_event["httpMethod"] = "GET"

        assert handler(api_gateway_event, {})["statusCode"] == 200
