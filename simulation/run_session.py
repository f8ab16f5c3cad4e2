"""
Scripted charging session runner.
Drives the real supervisor service against the mock Home Assistant API.
"""

import argparse
import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Tuple

ROOT_DIR = Path(__file__).resolve().parents[1]
APP_DIR = ROOT_DIR / "ev_supervisor" / "app"
for path in (str(ROOT_DIR), str(APP_DIR)):
    if path not in sys.path:
        sys.path.insert(0, path)

from controller_config import parse_runtime_config  # noqa: E402
from controller_service import ControlService  # noqa: E402
from simulation.mock_ha_api import MockHomeAssistantAPI  # noqa: E402


class SimulatedClock:
    """Millisecond clock advanced by the scenario."""

    def __init__(self, start_ms: int = 0):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


def run_session(delay_s: int = 30, tick_s: int = 5, lazy_hardware: bool = False) -> List[Tuple[int, str, bool]]:
    """
    Run plug-in, charge, complete and unplug through the service.

    Args:
        delay_s: Start charging state detection delay
        tick_s: Simulated seconds between ticks
        lazy_hardware: Charger ignores the switch, so the start attempt times out

    Returns:
        List of (time_ms, state, on) samples, one per tick
    """
    api = MockHomeAssistantAPI(react_to_switch=not lazy_hardware)
    clock = SimulatedClock()
    ui_state = Path(tempfile.gettempdir()) / f"ev_supervisor_sim_{os.getpid()}.json"
    config = parse_runtime_config({
        "tick_seconds": tick_s,
        "start_charging_state_detection_delay": delay_s,
        "ui_state_path": str(ui_state),
        "log_level": "INFO",
    })
    service = ControlService(config, api=api, clock=clock)
    service.start(start_poller=False)
    samples: List[Tuple[int, str, bool]] = []

    def tick(times: int = 1) -> None:
        for _ in range(times):
            service.run_tick()
            samples.append((clock(), service.charger.get_state().value, service.charger.is_on()))
            clock.advance(tick_s)

    tick(2)
    api.plug_in()
    tick(2)
    service.charger.on(clock(), True)
    tick(max(2, delay_s // tick_s + 2))
    if not lazy_hardware:
        api.finish_charging()
        tick(2)
    api.unplug()
    tick(2)
    service.shutdown()
    return samples


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate a charging session")
    parser.add_argument("--delay", type=int, default=30, help="start detection delay in seconds")
    parser.add_argument("--tick", type=int, default=5, help="seconds between ticks")
    parser.add_argument("--lazy-hardware", action="store_true", help="charger never starts")
    args = parser.parse_args()

    samples = run_session(args.delay, args.tick, args.lazy_hardware)
    logging.getLogger(__name__).info("Session finished after %d ticks", len(samples))
    for now_ms, state, on in samples:
        print(f"{now_ms / 1000:8.1f}s  {state:<22} {'ON' if on else 'off'}")


if __name__ == "__main__":
    main()
