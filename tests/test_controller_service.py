"""Service-level tests against the mock Home Assistant API."""
from __future__ import annotations

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

ROOT_DIR = Path(__file__).resolve().parents[1]
APP_DIR = ROOT_DIR / "ev_supervisor" / "app"
for path in (str(ROOT_DIR), str(APP_DIR)):
    if path not in sys.path:
        sys.path.insert(0, path)

from controller_config import parse_runtime_config  # noqa: E402
import controller_service  # noqa: E402
from controller_service import ControlService  # noqa: E402
from ev_control import ConfigurationError  # noqa: E402
from simulation.mock_ha_api import MockHomeAssistantAPI  # noqa: E402
from simulation.run_session import SimulatedClock, run_session  # noqa: E402
from state_machine import State  # noqa: E402


class ControlServiceTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.ui_state = Path(self._tmp.name) / "ui_state.json"
        self.api = MockHomeAssistantAPI()
        self.clock = SimulatedClock(1_000_000)

    def tearDown(self):
        self._tmp.cleanup()

    def make_service(self, **options):
        data = {
            "start_charging_state_detection_delay": 30,
            "ui_state_path": str(self.ui_state),
            "entities": {"charge_request": "input_boolean.charge_now"},
        }
        data.update(options)
        service = ControlService(parse_runtime_config(data), api=self.api, clock=self.clock)
        service.start(start_poller=False)
        self.addCleanup(service.shutdown)
        return service

    def tick(self, service, times=1):
        for _ in range(times):
            service.run_tick()
            self.clock.advance(5)

    def test_tick_publishes_state_and_control(self):
        service = self.make_service()
        self.api.plug_in()
        self.tick(service, 2)
        self.assertEqual(service.charger.get_state(), State.VEHICLE_CONNECTED)
        self.assertEqual(self.api.get_state("sensor.ev_supervisor_state"), "VEHICLE_CONNECTED")
        self.assertEqual(self.api.get_state("binary_sensor.ev_supervisor_control"), "off")
        self.assertEqual(len(service.state_history), 1)

    def test_publishing_can_be_disabled(self):
        service = self.make_service(publish_entities=False)
        self.tick(service)
        self.assertIsNone(self.api.get_state("sensor.ev_supervisor_state"))

    def test_charge_request_edges_drive_the_charger(self):
        service = self.make_service()
        self.api.set_state("input_boolean.charge_now", "off")
        self.api.plug_in()
        self.tick(service, 2)

        self.api.set_state("input_boolean.charge_now", "on")
        self.tick(service)
        self.assertEqual(service.charger.get_state(), State.CHARGING)
        self.assertEqual(self.api.get_state("binary_sensor.ev_supervisor_control"), "on")

        # Level without an edge must not re-issue the command
        self.tick(service, 2)
        turn_on_calls = [c for c in self.api.get_service_calls() if c["service"] == "turn_on"]
        self.assertEqual(len(turn_on_calls), 1)

        self.api.set_state("input_boolean.charge_now", "off")
        self.tick(service)
        self.assertEqual(service.charger.get_state(), State.VEHICLE_CONNECTED)
        self.assertEqual(self.api.get_state("switch.ev_charger"), "off")

    def test_initial_charge_request_is_only_a_baseline(self):
        service = self.make_service()
        self.api.set_state("input_boolean.charge_now", "on")
        self.api.plug_in()
        self.tick(service, 2)
        self.assertEqual(self.api.get_service_calls(), [])

    def test_ui_state_is_persisted(self):
        service = self.make_service(appliance_id="F-TEST")
        self.api.plug_in()
        self.tick(service, 2)
        payload = json.loads(self.ui_state.read_text(encoding="utf-8"))
        self.assertEqual(payload["appliance_id"], "F-TEST")
        self.assertEqual(payload["state"], "VEHICLE_CONNECTED")
        self.assertFalse(payload["on"])
        self.assertTrue(payload["settled"])
        self.assertEqual(payload["visited"], ["VEHICLE_CONNECTED", "VEHICLE_NOT_CONNECTED"])
        self.assertEqual(payload["history"][0]["to"], "VEHICLE_CONNECTED")

    def test_fault_and_recovery(self):
        service = self.make_service()
        self.api.plug_in()
        self.tick(service, 2)
        self.api.fault()
        self.tick(service)
        self.assertEqual(service.charger.get_state(), State.ERROR)
        self.api.clear_fault("connected")
        self.tick(service)
        self.assertEqual(service.charger.get_state(), State.VEHICLE_CONNECTED)

    def test_invalid_status_values_fail_startup(self):
        data = {
            "ui_state_path": str(self.ui_state),
            "status_values": {"error": "fault,charging"},
        }
        service = ControlService(parse_runtime_config(data), api=self.api, clock=self.clock)
        with self.assertRaises(ConfigurationError):
            service.start(start_poller=False)


class MainTests(unittest.TestCase):
    def assertExitsWithError(self, side_effect):
        with mock.patch("controller_service.load_runtime_config", side_effect=side_effect):
            with self.assertLogs(level="ERROR"):
                with self.assertRaises(SystemExit) as ctx:
                    controller_service.main()
        self.assertEqual(ctx.exception.code, 1)

    def test_missing_configuration_exits(self):
        self.assertExitsWithError(FileNotFoundError("/data/options.json"))

    def test_malformed_configuration_exits(self):
        self.assertExitsWithError(json.JSONDecodeError("Expecting value", "{", 1))

    def test_invalid_configuration_exits(self):
        self.assertExitsWithError(ConfigurationError("entities must be a mapping"))


class SimulatedSessionTests(unittest.TestCase):
    def test_session_reaches_every_phase(self):
        samples = run_session(delay_s=30, tick_s=5)
        states = [state for _, state, _ in samples]
        self.assertEqual(states[0], "VEHICLE_NOT_CONNECTED")
        for expected in ("VEHICLE_CONNECTED", "CHARGING", "CHARGING_COMPLETED"):
            self.assertIn(expected, states)
        self.assertEqual(states[-1], "VEHICLE_NOT_CONNECTED")
        self.assertTrue(all(on for _, state, on in samples if state == "CHARGING"))

    def test_unresponsive_charger_times_out(self):
        samples = run_session(delay_s=30, tick_s=5, lazy_hardware=True)
        states = [state for _, state, _ in samples]
        self.assertNotIn("CHARGING", states)
        on_flags = [on for _, state, on in samples if state == "VEHICLE_CONNECTED"]
        self.assertIn(True, on_flags)
        self.assertFalse(on_flags[-1])


if __name__ == "__main__":
    unittest.main(verbosity=2)
