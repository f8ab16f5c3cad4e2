"""Home Assistant backed charge point signal source."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from controller_config import EntityConfig, StatusValues
from ev_control import ConfigurationError, EVControl


@dataclass(frozen=True)
class StatusSnapshot:
    """Charger status read once and classified against the status values."""

    status: str
    status_values: StatusValues

    def is_vehicle_connected(self) -> bool:
        return self.status in self.status_values.connected

    def is_vehicle_not_connected(self) -> bool:
        return self.status in self.status_values.not_connected

    def is_charging(self) -> bool:
        return self.status in self.status_values.charging

    def is_charging_completed(self) -> bool:
        return self.status in self.status_values.completed

    def is_in_error_state(self) -> bool:
        return self.status in self.status_values.error


class HomeAssistantEVControl(EVControl):
    """Derives charge point signals from a charger status entity.

    Every query reads the status entity once and classifies the lower-cased
    value. An unreadable status satisfies no predicate. ``sample()`` freezes a
    single reading so one evaluation sees one status.
    """

    def __init__(
        self,
        api,
        entity_config: EntityConfig,
        status_values: Optional[StatusValues] = None,
        poll_interval_s: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.api = api
        self.entities = entity_config
        self.status_values = status_values or StatusValues()
        self.poll_interval_s = poll_interval_s
        self.logger = logger or logging.getLogger(__name__)

    def validate(self) -> None:
        if not self.entities.charger_status:
            raise ConfigurationError("charger_status entity is required")
        if self.poll_interval_s <= 0:
            raise ConfigurationError(f"vehicle status poll interval must be positive, got {self.poll_interval_s}")

        values = self.status_values
        for name in ("not_connected", "connected", "charging", "completed", "error"):
            if not getattr(values, name):
                raise ConfigurationError(f"status_values.{name} must not be empty")

        disjoint = [
            ("not_connected", "connected"),
            ("charging", "completed"),
            ("error", "not_connected"),
            ("error", "connected"),
            ("error", "charging"),
            ("error", "completed"),
        ]
        for left, right in disjoint:
            overlap = set(getattr(values, left)) & set(getattr(values, right))
            if overlap:
                raise ConfigurationError(
                    f"status_values.{left} and status_values.{right} overlap: {sorted(overlap)}"
                )
        self.logger.debug("%s: configuration valid (status entity %s)", self.appliance_id, self.entities.charger_status)

    def read_status(self) -> str:
        state = self.api.get_state(self.entities.charger_status)
        if state is None:
            return "unknown"
        return str(state).strip().lower()

    def sample(self) -> StatusSnapshot:
        return StatusSnapshot(self.read_status(), self.status_values)

    def is_vehicle_connected(self) -> bool:
        return self.sample().is_vehicle_connected()

    def is_vehicle_not_connected(self) -> bool:
        return self.sample().is_vehicle_not_connected()

    def is_charging(self) -> bool:
        return self.sample().is_charging()

    def is_charging_completed(self) -> bool:
        return self.sample().is_charging_completed()

    def is_in_error_state(self) -> bool:
        return self.sample().is_in_error_state()

    def get_vehicle_status_poll_interval(self) -> float:
        return self.poll_interval_s

    def start_charging(self) -> None:
        self._switch("turn_on")

    def stop_charging(self) -> None:
        self._switch("turn_off")

    def _switch(self, service: str) -> None:
        entity_id = self.entities.charger_switch
        if not entity_id:
            self.logger.warning("%s: no charger switch configured, ignoring %s", self.appliance_id, service)
            return
        self.logger.info("%s: %s -> %s", self.appliance_id, entity_id, service)
        if not self.api.call_service("switch", service, entity_id=entity_id):
            self.logger.warning("%s: %s %s failed", self.appliance_id, entity_id, service)
