"""Background vehicle presence heartbeat."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

PresenceCallback = Callable[[bool], None]


class VehicleStatusPoller:
    """Samples ``is_vehicle_connected()`` on a fixed interval.

    The first poll happens as soon as the thread starts. Polling only reads
    the signal source and never touches supervisor state.
    """

    def __init__(self, ev_control, interval_s: float, name: str = "", logger: Optional[logging.Logger] = None):
        self.ev_control = ev_control
        self.interval_s = interval_s
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self.last_vehicle_connected: Optional[bool] = None
        self.last_polled_at: Optional[float] = None
        self.poll_count = 0
        self._callbacks: List[PresenceCallback] = []
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, callback: PresenceCallback) -> None:
        self._callbacks.append(callback)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name=f"vehicle-poller-{self.name}" if self.name else "vehicle-poller",
            daemon=True,
        )
        self._thread.start()
        self.logger.debug("%s: vehicle status poller started (interval=%ss)", self.name, self.interval_s)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def poll_once(self) -> bool:
        connected = bool(self.ev_control.is_vehicle_connected())
        self.last_vehicle_connected = connected
        self.last_polled_at = time.time()
        self.poll_count += 1
        self.logger.debug("%s: vehicleConnected = %s", self.name, connected)
        for callback in list(self._callbacks):
            callback(connected)
        return connected

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception:  # noqa: BLE001
                self.logger.exception("%s: vehicle status poll failed", self.name)
            self._stop_event.wait(self.interval_s)
