#!/usr/bin/env python3
"""Charger supervisor service entrypoint."""
from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from charger_supervisor import ElectricVehicleCharger, current_millis
from controller_config import RuntimeConfig, load_runtime_config
from ev_control import ConfigurationError
from ha_api import EntityPublisher, HomeAssistantAPI
from ha_ev_control import HomeAssistantEVControl
from state_machine import State

HISTORY_LIMIT = 180


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        stream=sys.stdout,
    )


class ControlService:
    """Owns the supervisor tick loop and UI persistence."""

    def __init__(self, runtime_config: Optional[RuntimeConfig] = None, api=None, clock=current_millis):
        self.runtime_config = runtime_config or load_runtime_config()
        configure_logging(self.runtime_config.log_level)
        self.logger = logging.getLogger("ev.supervisor")
        self.api = api if api is not None else HomeAssistantAPI()
        self.clock = clock
        self.ev_control = HomeAssistantEVControl(
            self.api,
            self.runtime_config.entities,
            self.runtime_config.status_values,
            poll_interval_s=self.runtime_config.supervisor.vehicle_status_poll_interval,
        )
        self.charger = ElectricVehicleCharger(
            self.ev_control,
            self.runtime_config.supervisor.start_charging_state_detection_delay,
            clock=clock,
        )
        self.charger.set_appliance_id(self.runtime_config.appliance_id)
        self.charger.add_control_state_changed_listener(self._on_control_state_changed)
        self.publisher = EntityPublisher(self.api) if self.runtime_config.publish_entities else None
        self.tick_seconds = self.runtime_config.tick_seconds
        self.charge_requested: Optional[bool] = None
        self.settled = True
        self.state_history: List[Dict[str, object]] = []
        self.is_running = False

    def start(self, start_poller: bool = True) -> None:
        self.charger.init(start_poller=start_poller)
        if self.charger.poller is not None and self.publisher is not None:
            self.charger.poller.subscribe(self.publisher.publish_vehicle_connected)
        self.logger.info(
            "%s: Supervisor online (tick=%ss, start detection delay=%ss)",
            self.runtime_config.appliance_id,
            self.tick_seconds,
            self.charger.start_charging_state_detection_delay,
        )

    def run_forever(self) -> None:
        self.is_running = True
        try:
            while self.is_running:
                tick_start = time.monotonic()
                try:
                    self.run_tick()
                except Exception:  # noqa: BLE001
                    self.logger.exception("Supervisor tick failed")
                elapsed = time.monotonic() - tick_start
                time.sleep(max(0.0, self.tick_seconds - elapsed))
        except KeyboardInterrupt:
            self.logger.info("Shutdown requested")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.is_running = False
        self.charger.shutdown()
        self.logger.info("Shutdown complete")

    def run_tick(self, now: Optional[int] = None) -> bool:
        now = self.clock() if now is None else now
        self._follow_charge_request(now)
        prev_state = self.charger.get_state()
        self.settled = self.charger.update_state(now)
        state = self.charger.get_state()
        is_on = self.charger.is_on(now)
        if state != prev_state:
            self._log_transition(prev_state, state, is_on)
        if self.publisher is not None:
            self.publisher.publish_state(state.value, self.runtime_config.appliance_id)
            self.publisher.publish_control(is_on, self.settled)
        self._persist_ui_state(now, state, is_on)
        return self.settled

    def _follow_charge_request(self, now: int) -> None:
        entity_id = self.runtime_config.entities.charge_request
        if not entity_id:
            return
        raw = self.api.get_state(entity_id)
        if raw is None:
            return
        requested = str(raw).strip().lower() in {"on", "true", "1", "enabled"}
        previous = self.charge_requested
        self.charge_requested = requested
        if previous is None or previous == requested:
            return
        self.logger.info("%s -> %s", entity_id, "on" if requested else "off")
        self.charger.on(now, requested)

    def _on_control_state_changed(self, now: int, on: bool) -> None:
        self.logger.info("%s: control output %s", self.runtime_config.appliance_id, "ON" if on else "OFF")

    # ------------------------------------------------------------------
    # Logging & persistence helpers
    # ------------------------------------------------------------------
    def _log_transition(self, prev_state: State, state: State, is_on: bool) -> None:
        self.logger.info(
            "%s: %s→%s | on=%s | settled=%s",
            self.runtime_config.appliance_id,
            prev_state.value,
            state.value,
            is_on,
            self.settled,
        )
        self.state_history.append(
            {
                "ts": datetime.now(timezone.utc).isoformat(),
                "from": prev_state.value,
                "to": state.value,
            }
        )
        if len(self.state_history) > HISTORY_LIMIT:
            self.state_history = self.state_history[-HISTORY_LIMIT:]

    def _persist_ui_state(self, now: int, state: State, is_on: bool) -> None:
        poller = self.charger.poller
        payload = {
            "appliance_id": self.runtime_config.appliance_id,
            "state": state.value,
            "on": is_on,
            "settled": self.settled,
            "charging_attempt_started_at": self.charger.charging_attempt_started_at,
            "vehicle_connected": poller.last_vehicle_connected if poller else None,
            "visited": sorted(s.value for s in self.charger.visits.visited),
            "updated_at": now,
            "history": list(self.state_history),
        }
        path = self.runtime_config.ui_state_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, separators=(",", ":"))
        except OSError:
            self.logger.exception("Unable to write UI state")


def main() -> None:
    try:
        service = ControlService()
        service.start()
    except FileNotFoundError:
        logging.error("Configuration file not found")
        sys.exit(1)
    except json.JSONDecodeError as exc:
        logging.error("Configuration file is not valid JSON: %s", exc)
        sys.exit(1)
    except ConfigurationError as exc:
        logging.getLogger("ev.supervisor").error("Invalid configuration: %s", exc)
        sys.exit(1)
    service.run_forever()


if __name__ == "__main__":
    main()
