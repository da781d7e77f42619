"""
Unit tests for dashboard/app.py
"""

import json
import os
import tempfile
import unittest
from unittest.mock import patch

from dashboard.app import app

CONNECTIONS = [
    {"timestamp": "2024-01-01T00:00:00+00:00", "pid": 100, "name": "chrome",
     "local_address": "10.0.0.5:51000", "remote_address": "142.250.72.206:443",
     "remote_ip": "142.250.72.206", "remote_port": 443},
    {"timestamp": "2024-01-01T00:00:02+00:00", "pid": 200, "name": "code",
     "local_address": "10.0.0.5:51010", "remote_address": "13.107.42.14:443",
     "remote_ip": "13.107.42.14", "remote_port": 443},
    {"timestamp": "2024-01-01T00:00:04+00:00", "pid": 100, "name": "chrome",
     "local_address": "10.0.0.5:51020", "remote_address": "142.250.72.206:443",
     "remote_ip": "142.250.72.206", "remote_port": 443},
]


class TestDashboardRoutes(unittest.TestCase):
    """HTTP-level tests for the Flask dashboard."""

    def setUp(self):
        app.config["TESTING"] = True
        self.client = app.test_client()
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            json.dump(CONNECTIONS, f)
            self.tmp_path = f.name

    def tearDown(self):
        os.unlink(self.tmp_path)

    def test_api_connections_returns_json(self):
        with patch("agent.event_log.CONNECTIONS_FILE", self.tmp_path):
            resp = self.client.get("/api/connections")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), CONNECTIONS)

    def test_api_connections_empty_when_no_file(self):
        with patch("agent.event_log.CONNECTIONS_FILE", "/nonexistent/connections.json"):
            resp = self.client.get("/api/connections")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), [])

    def test_api_connections_filters_by_name(self):
        with patch("agent.event_log.CONNECTIONS_FILE", self.tmp_path):
            resp = self.client.get("/api/connections?name=Chrome")
        self.assertEqual([c["pid"] for c in resp.get_json()], [100, 100])

    def test_api_connections_filters_by_pid(self):
        with patch("agent.event_log.CONNECTIONS_FILE", self.tmp_path):
            resp = self.client.get("/api/connections?pid=200")
        self.assertEqual([c["name"] for c in resp.get_json()], ["code"])

    def test_api_stats(self):
        with patch("agent.event_log.CONNECTIONS_FILE", self.tmp_path):
            resp = self.client.get("/api/stats")
        payload = resp.get_json()
        self.assertEqual(payload["total"], 3)
        self.assertEqual(payload["processes"], {"chrome": 2, "code": 1})
        self.assertEqual(payload["unique_remote_ips"], 2)
        self.assertEqual(payload["last_timestamp"], "2024-01-01T00:00:04+00:00")

    def test_api_status(self):
        status = {"reachable": True, "last_tick": None, "ticks": 7,
                  "new_connections": 3, "network_changed": None,
                  "interval": 0.5}
        with patch("agent.event_log.current_status", return_value=status):
            resp = self.client.get("/api/status")
        payload = resp.get_json()
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(payload["reachable"])
        self.assertEqual(payload["ticks"], 7)
        self.assertEqual(payload["interval"], 0.5)


if __name__ == "__main__":
    unittest.main()
