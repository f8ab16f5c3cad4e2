"""Capability contract for charge point signal sources."""
from __future__ import annotations

import abc
from typing import Optional


class ConfigurationError(ValueError):
    """Raised when a charge point is configured inconsistently."""


class EVControl(abc.ABC):
    """Hardware facing side of a charge point.

    Queries must be free of side effects. Implementations exist per physical
    backend; the supervisor only depends on this interface.
    """

    appliance_id: Optional[str] = None

    def set_appliance_id(self, appliance_id: str) -> None:
        self.appliance_id = appliance_id

    def validate(self) -> None:
        """Check the configuration once at startup.

        Raises:
            ConfigurationError: if the configuration is inconsistent.
        """

    def sample(self):
        """Return a consistent view of the signals for one evaluation.

        Backends whose predicates each hit the hardware override this to read
        the source once.
        """
        return self

    @abc.abstractmethod
    def is_vehicle_connected(self) -> bool:
        ...

    @abc.abstractmethod
    def is_vehicle_not_connected(self) -> bool:
        ...

    @abc.abstractmethod
    def is_charging(self) -> bool:
        ...

    @abc.abstractmethod
    def is_charging_completed(self) -> bool:
        ...

    @abc.abstractmethod
    def is_in_error_state(self) -> bool:
        ...

    @abc.abstractmethod
    def get_vehicle_status_poll_interval(self) -> float:
        """Seconds between two vehicle presence polls."""

    @abc.abstractmethod
    def start_charging(self) -> None:
        ...

    @abc.abstractmethod
    def stop_charging(self) -> None:
        ...
