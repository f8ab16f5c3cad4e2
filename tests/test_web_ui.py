"""Tests for the status page."""
from __future__ import annotations

import json
import sys
import tempfile
import unittest
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1] / "ev_supervisor" / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import web_ui  # noqa: E402


class StatusPageTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.ui_state = Path(self._tmp.name) / "ui_state.json"
        self._previous = web_ui.app.config["UI_STATE_PATH"]
        web_ui.app.config["UI_STATE_PATH"] = self.ui_state
        self.client = web_ui.app.test_client()

    def tearDown(self):
        web_ui.app.config["UI_STATE_PATH"] = self._previous
        self._tmp.cleanup()

    def test_missing_file_serves_fallback(self):
        response = self.client.get("/api/status")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["state"], "UNKNOWN")

    def test_empty_or_invalid_file_serves_fallback(self):
        for content in ("", "{not json"):
            with self.subTest(content=content):
                self.ui_state.write_text(content, encoding="utf-8")
                self.assertEqual(self.client.get("/api/status").get_json()["state"], "UNKNOWN")

    def test_snapshot_is_served(self):
        snapshot = {
            "appliance_id": "F-TEST",
            "state": "CHARGING",
            "on": True,
            "vehicle_connected": True,
            "history": [{"ts": "2024-01-01T00:00:00+00:00", "from": "VEHICLE_CONNECTED", "to": "CHARGING"}],
        }
        self.ui_state.write_text(json.dumps(snapshot), encoding="utf-8")
        self.assertEqual(self.client.get("/api/status").get_json(), snapshot)

        page = self.client.get("/").get_data(as_text=True)
        self.assertIn("CHARGING", page)
        self.assertIn("Control: ON", page)
        self.assertIn("F-TEST", page)


if __name__ == "__main__":
    unittest.main(verbosity=2)
