"""
Tests for the /health endpoint.
"""

import os
import sys
import unittest
from datetime import datetime

# Set environment before imports
os.environ["ENVIRONMENT"] = "development"
os.environ["LOG_LEVEL"] = "WARNING"

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from fastapi.testclient import TestClient


class TestHealthEndpoint(unittest.TestCase):
    """Tests for GET /health."""

    def setUp(self):
        """Set up test client."""
        from server import app
        self.client = TestClient(app)

    def test_health_returns_200(self):
        """Health endpoint should return 200 status code."""
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)

    def test_health_status_ok(self):
        """Health response should report ok."""
        data = self.client.get("/health").json()
        self.assertEqual(data["status"], "ok")

    def test_health_timestamp_is_utc_iso(self):
        """Timestamp should be an ISO-8601 UTC instant."""
        timestamp = self.client.get("/health").json()["timestamp"]

        self.assertTrue(timestamp.endswith("Z"))
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        self.assertIsNotNone(parsed.tzinfo)

    def test_health_requires_no_api_key(self):
        """Health should not require the X-API-Key header."""
        response = self.client.get("/health", headers={"X-API-Key": "wrong"})
        self.assertEqual(response.status_code, 200)

    def test_health_has_request_id(self):
        """Health responses carry an X-Request-ID header."""
        response = self.client.get("/health")
        self.assertTrue(response.headers.get("X-Request-ID"))


if __name__ == "__main__":
    unittest.main()
