"""Deterministic charge point state evaluation."""
from __future__ import annotations

import enum
from collections import Counter
from dataclasses import dataclass
from typing import FrozenSet, Optional


class State(enum.Enum):
    """Operating phases of a supervised charge point."""

    VEHICLE_NOT_CONNECTED = "VEHICLE_NOT_CONNECTED"
    VEHICLE_CONNECTED = "VEHICLE_CONNECTED"
    CHARGING = "CHARGING"
    CHARGING_COMPLETED = "CHARGING_COMPLETED"
    ERROR = "ERROR"


INITIAL_STATE = State.VEHICLE_NOT_CONNECTED

# States in which the vehicle is known to be plugged in.
CONNECTED_STATES = frozenset(
    {State.VEHICLE_CONNECTED, State.CHARGING, State.CHARGING_COMPLETED}
)


@dataclass(frozen=True)
class Evaluation:
    """Outcome of a single evaluation step."""

    state: State
    preempted: Optional[State] = None

    @property
    def is_error(self) -> bool:
        return self.state == State.ERROR


def next_state(current: State, signals, preempted: Optional[State] = None) -> Evaluation:
    """Derive the next state from the current one and the sampled signals.

    ``signals`` is any object exposing the query side of ``EVControl``. Signals
    are queried lazily in rule order, so only the predicates a rule needs are
    sampled. ``preempted`` is the state an active ``ERROR`` interrupted.
    """
    if signals.is_in_error_state():
        if current == State.ERROR:
            return Evaluation(State.ERROR, preempted)
        return Evaluation(State.ERROR, current)

    if current == State.ERROR:
        current = preempted if preempted is not None else INITIAL_STATE

    if signals.is_vehicle_not_connected():
        return Evaluation(State.VEHICLE_NOT_CONNECTED)

    # A vehicle plugged in while idle lands in its actual phase in one step.
    if current in CONNECTED_STATES or signals.is_vehicle_connected():
        if signals.is_charging_completed():
            return Evaluation(State.CHARGING_COMPLETED)
        if signals.is_charging():
            return Evaluation(State.CHARGING)
        return Evaluation(State.VEHICLE_CONNECTED)

    return Evaluation(current)


def is_within_confirmation_window(
    delay_s: float, now_ms: int, attempt_started_ms: Optional[int]
) -> bool:
    """True while a start command is younger than ``delay_s`` seconds."""
    if attempt_started_ms is None:
        return False
    return now_ms - attempt_started_ms < delay_s * 1000


def control_output(
    state: State, delay_s: float, now_ms: int, attempt_started_ms: Optional[int]
) -> bool:
    """Whether the load should be energized.

    The contactor stays engaged during the confirmation window so that the
    output does not drop while the hardware has not yet reported charging.
    """
    if state == State.CHARGING:
        return True
    return is_within_confirmation_window(delay_s, now_ms, attempt_started_ms)


class VisitTracker:
    """Counts how often each state has been entered.

    Counts are never reset for the lifetime of the tracker. A state has been
    visited "one time" while its entry count is exactly one, so the positive
    reading survives leaving the state and disappears on the next re-entry.
    """

    def __init__(self, initial: Optional[State] = INITIAL_STATE):
        self._entries: Counter = Counter()
        if initial is not None:
            self.record(initial)

    def record(self, state: State) -> None:
        self._entries[state] += 1

    def entries(self, state: State) -> int:
        return self._entries[state]

    def was_in_state(self, state: State) -> bool:
        return self._entries[state] > 0

    def was_in_state_one_time(self, state: State) -> bool:
        return self._entries[state] == 1

    @property
    def visited(self) -> FrozenSet[State]:
        return frozenset(state for state, count in self._entries.items() if count > 0)
