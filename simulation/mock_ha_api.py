"""
Mock Home Assistant API for simulation purposes.
Emulates a charger status sensor that reacts to switch services.
"""

import logging
from typing import Dict, Any, Optional


class MockHomeAssistantAPI:
    """In-memory HA API with a simulated charge point behind it."""

    def __init__(
        self,
        status_entity: str = "sensor.ev_charger_status",
        switch_entity: str = "switch.ev_charger",
        react_to_switch: bool = True,
    ):
        self.logger = logging.getLogger(__name__)
        self.status_entity = status_entity
        self.switch_entity = switch_entity
        self.react_to_switch = react_to_switch
        self.states: Dict[str, Dict[str, Any]] = {}
        self.service_calls: list = []
        self.set_state(status_entity, "available")
        self.set_state(switch_entity, "off")

    def set_state(self, entity_id: str, state: Any, attributes: Optional[Dict] = None) -> bool:
        self.states[entity_id] = {
            'entity_id': entity_id,
            'state': str(state),
            'attributes': attributes or {}
        }
        return True

    def get_state(self, entity_id: str) -> Optional[str]:
        if entity_id in self.states:
            return self.states[entity_id]['state']
        return None

    def call_service(self, domain: str, service: str, entity_id: str, **kwargs) -> bool:
        """Record a service call and let the simulated charger react."""
        self.service_calls.append({
            'domain': domain,
            'service': service,
            'entity_id': entity_id,
            'data': kwargs
        })
        if domain == 'switch':
            self.set_state(entity_id, 'on' if service == 'turn_on' else 'off')
            if self.react_to_switch and entity_id == self.switch_entity:
                self._switch_changed(service == 'turn_on')
        self.logger.debug(f"Service call: {domain}.{service} on {entity_id} with {kwargs}")
        return True

    def _switch_changed(self, on: bool) -> None:
        status = self.get_state(self.status_entity)
        if on and status == 'connected':
            self.set_state(self.status_entity, 'charging')
        elif not on and status == 'charging':
            self.set_state(self.status_entity, 'connected')

    # Vehicle side of the simulation
    def plug_in(self) -> None:
        self.set_state(self.status_entity, 'connected')

    def unplug(self) -> None:
        self.set_state(self.status_entity, 'available')

    def finish_charging(self) -> None:
        self.set_state(self.status_entity, 'charged')

    def fault(self) -> None:
        self.set_state(self.status_entity, 'fault')

    def clear_fault(self, status: str = 'connected') -> None:
        self.set_state(self.status_entity, status)

    def get_service_calls(self, clear: bool = False) -> list:
        calls = self.service_calls.copy()
        if clear:
            self.service_calls.clear()
        return calls
