"""
Charger Supervisor Module
Tracks the charge point state and derives the on/off control output.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

from ev_control import EVControl
from state_machine import (
    INITIAL_STATE,
    State,
    VisitTracker,
    control_output,
    is_within_confirmation_window,
    next_state,
)
from vehicle_poller import VehicleStatusPoller

DEFAULT_START_CHARGING_STATE_DETECTION_DELAY_S = 300

ControlStateChangedListener = Callable[[int, bool], None]


def current_millis() -> int:
    return int(time.time() * 1000)


class ElectricVehicleCharger:
    """Supervises a single charge point.

    Mutating calls are serialized by an internal lock, so the host loop and
    other callers may share an instance across threads.
    """

    def __init__(
        self,
        ev_control: EVControl,
        start_charging_state_detection_delay: float = DEFAULT_START_CHARGING_STATE_DETECTION_DELAY_S,
        clock: Callable[[], int] = current_millis,
    ):
        """
        Initialize the supervisor.

        Args:
            ev_control: Signal source of the charge point
            start_charging_state_detection_delay: Seconds to wait for the
                hardware to report charging after a start command
            clock: Returns the current time in epoch milliseconds
        """
        self.logger = logging.getLogger(__name__)
        self.ev_control = ev_control
        self.start_charging_state_detection_delay = start_charging_state_detection_delay
        self.clock = clock
        self.appliance_id: Optional[str] = None

        self.state = INITIAL_STATE
        self.preempted_state: Optional[State] = None
        self.charging_attempt_started_at: Optional[int] = None
        self.visits = VisitTracker(INITIAL_STATE)
        self.poller: Optional[VehicleStatusPoller] = None

        self._listeners: List[ControlStateChangedListener] = []
        self._reported_on = False
        self._lock = threading.RLock()

    def set_appliance_id(self, appliance_id: str) -> None:
        self.appliance_id = appliance_id
        self.ev_control.set_appliance_id(appliance_id)

    def init(self, start_poller: bool = True) -> None:
        """Validate the signal source and start the presence poller.

        Raises:
            ConfigurationError: if the signal source configuration is invalid
        """
        self.logger.debug("%s: Initializing ...", self.appliance_id)
        self.ev_control.validate()
        if start_poller:
            self.start_poller()

    def start_poller(self) -> VehicleStatusPoller:
        if self.poller is None:
            self.poller = VehicleStatusPoller(
                self.ev_control,
                self.ev_control.get_vehicle_status_poll_interval(),
                name=self.appliance_id or "",
                logger=self.logger,
            )
        self.poller.start()
        return self.poller

    def shutdown(self) -> None:
        if self.poller is not None:
            self.poller.stop()
        self.logger.debug("%s: Shut down", self.appliance_id)

    def add_control_state_changed_listener(self, listener: ControlStateChangedListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    def get_state(self) -> State:
        with self._lock:
            return self.state

    def set_state(self, state: State) -> None:
        with self._lock:
            if state == self.state:
                return
            self.logger.debug("%s: State changed: %s -> %s", self.appliance_id, self.state.value, state.value)
            self.state = state
            self.visits.record(state)

    def was_in_state(self, state: State) -> bool:
        return self.visits.was_in_state(state)

    def was_in_state_one_time(self, state: State) -> bool:
        return self.visits.was_in_state_one_time(state)

    def update_state(self, now: Optional[int] = None) -> bool:
        """
        Advance the state machine by one evaluation.

        Args:
            now: Current time in epoch milliseconds (defaults to the clock)

        Returns:
            True once settled, False while a start command awaits confirmation
        """
        with self._lock:
            now = self._now(now)
            evaluation = next_state(self.state, self.ev_control.sample(), self.preempted_state)

            if self.charging_attempt_started_at is not None:
                if evaluation.state == State.CHARGING:
                    self.logger.debug("%s: Charging confirmed", self.appliance_id)
                elif evaluation.state in (State.VEHICLE_NOT_CONNECTED, State.ERROR):
                    self.logger.debug(
                        "%s: Charging attempt abandoned by %s", self.appliance_id, evaluation.state.value
                    )
                elif is_within_confirmation_window(
                    self.start_charging_state_detection_delay, now, self.charging_attempt_started_at
                ):
                    return False
                else:
                    self.logger.debug(
                        "%s: Charging not detected within %ss, abandoning attempt",
                        self.appliance_id,
                        self.start_charging_state_detection_delay,
                    )
                self.charging_attempt_started_at = None

            self.preempted_state = evaluation.preempted
            self.set_state(evaluation.state)
            self._notify_if_changed(now)
            return True

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------
    def start_charging(self, now: Optional[int] = None) -> None:
        with self._lock:
            now = self._now(now)
            self.logger.debug("%s: Start charging", self.appliance_id)
            self.ev_control.start_charging()
            self.charging_attempt_started_at = now

    def stop_charging(self) -> None:
        with self._lock:
            self.logger.debug("%s: Stop charging", self.appliance_id)
            self.ev_control.stop_charging()
            self.charging_attempt_started_at = None

    def on(self, now: Optional[int], switch_on: bool) -> bool:
        """Switch the load on or off as requested by the control layer."""
        with self._lock:
            now = self._now(now)
            if switch_on:
                self.start_charging(now)
            else:
                self.stop_charging()
            self._notify_if_changed(now)
            return True

    def is_on(self, now: Optional[int] = None) -> bool:
        with self._lock:
            return control_output(
                self.state,
                self.start_charging_state_detection_delay,
                self._now(now),
                self.charging_attempt_started_at,
            )

    def _now(self, now: Optional[int]) -> int:
        return self.clock() if now is None else now

    def _notify_if_changed(self, now: int) -> None:
        is_on = self.is_on(now)
        if is_on == self._reported_on:
            return
        self._reported_on = is_on
        self.logger.debug("%s: Control state changed: on=%s", self.appliance_id, is_on)
        for listener in list(self._listeners):
            listener(now, is_on)
