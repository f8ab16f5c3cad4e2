"""
Home Assistant API Client
Reads charger entities and publishes supervisor state.
"""
import logging
import os
from typing import Optional, Any, Dict

import requests


class HomeAssistantAPI:
    """Client for Home Assistant REST API."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, timeout: float = 10):
        self.logger = logging.getLogger(__name__)
        self.timeout = timeout

        supervisor_token = os.getenv('SUPERVISOR_TOKEN')
        if base_url is None and token is None and supervisor_token:
            # Add-on containers reach Core through the internal hostname
            self.base_url = "http://homeassistant:8123"
            self.token = supervisor_token
            self.logger.info("Running in Home Assistant add-on mode (via homeassistant:8123)")
        else:
            self.base_url = base_url or os.getenv('HA_URL', 'http://homeassistant.local:8123')
            self.token = token or os.getenv('HA_TOKEN')
            if self.token:
                self.logger.info("Running in development mode with token")
            else:
                self.logger.error("No authentication token found!")

        self.headers = {'Content-Type': 'application/json'}
        if self.token:
            self.headers['Authorization'] = f'Bearer {self.token}'
        self.session = requests.Session()

    def get_state(self, entity_id: str) -> Optional[Any]:
        """
        Get state of an entity.

        Args:
            entity_id: Entity ID (e.g., 'sensor.ev_charger_status')

        Returns:
            State value or None on error
        """
        try:
            response = self.session.get(
                f"{self.base_url}/api/states/{entity_id}",
                headers=self.headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            return response.json().get('state')
        except requests.RequestException as e:
            self.logger.error(f"Error getting state for {entity_id}: {e}")
            return None
        except ValueError as e:
            self.logger.error(f"Invalid response for {entity_id}: {e}")
            return None

    def call_service(self, domain: str, service: str, **kwargs) -> bool:
        """
        Call a Home Assistant service.

        Args:
            domain: Service domain (e.g., 'switch')
            service: Service name (e.g., 'turn_on')
            **kwargs: Service data (e.g., entity_id='switch.ev_charger')

        Returns:
            True on success, False on error
        """
        return self._post(f"/api/services/{domain}/{service}", kwargs, f"service {domain}.{service}")

    def set_state(self, entity_id: str, state: Any, attributes: Optional[Dict] = None) -> bool:
        """Create or update a virtual entity."""
        payload = {
            'state': state,
            'attributes': attributes or {}
        }
        return self._post(f"/api/states/{entity_id}", payload, f"state for {entity_id}")

    def _post(self, path: str, payload: Dict, what: str) -> bool:
        try:
            response = self.session.post(
                f"{self.base_url}{path}",
                headers=self.headers,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            self.logger.error(f"Error posting {what}: {e}")
            return False


class EntityPublisher:
    """Publishes supervisor entities to Home Assistant."""

    def __init__(self, ha_api, entity_prefix: str = "ev_supervisor"):
        self.logger = logging.getLogger(__name__)
        self.ha_api = ha_api
        self.entity_prefix = entity_prefix

    def publish_state(self, state: str, appliance_id: Optional[str] = None):
        """Publish the charge point state."""
        self.ha_api.set_state(
            f"sensor.{self.entity_prefix}_state",
            state,
            {
                'friendly_name': 'EV Charger State',
                'icon': 'mdi:ev-station',
                'appliance_id': appliance_id,
            }
        )

    def publish_control(self, on: bool, settled: bool = True):
        """Publish the derived control output."""
        self.ha_api.set_state(
            f"binary_sensor.{self.entity_prefix}_control",
            'on' if on else 'off',
            {
                'friendly_name': 'EV Charger Control',
                'icon': 'mdi:power-plug' if on else 'mdi:power-plug-off',
                'settled': settled,
            }
        )

    def publish_vehicle_connected(self, connected: bool):
        """Publish the latest vehicle presence poll."""
        self.ha_api.set_state(
            f"binary_sensor.{self.entity_prefix}_vehicle_connected",
            'on' if connected else 'off',
            {
                'friendly_name': 'EV Connected',
                'device_class': 'plug',
            }
        )
