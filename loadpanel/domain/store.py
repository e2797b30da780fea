from __future__ import annotations
import copy
import logging
from threading import RLock
from typing import Mapping

from .errors import UnknownLoad
from .models import Alert, DeviceState, LoadReading

logger = logging.getLogger(__name__)


class DeviceStateStore:
    """Sole owner of the live DeviceState.

    Everything else goes through the entry points below. ``lock`` is
    re-entrant so a caller can hold it across control + cycle while the
    individual methods take it again.
    """

    def __init__(self, initial: DeviceState) -> None:
        self._state = initial
        self.lock = RLock()

    def snapshot(self) -> DeviceState:
        with self.lock:
            return copy.deepcopy(self._state)

    def load_ids(self) -> list[str]:
        with self.lock:
            return list(self._state.loads)

    def apply_control(self, load_id: str, on: bool) -> None:
        with self.lock:
            load = self._state.loads.get(load_id)
            if load is None:
                raise UnknownLoad(load_id)
            load.on = bool(on)

    def apply_readings(self, readings: Mapping[str, LoadReading], timestamp: int) -> None:
        with self.lock:
            for load_id, r in readings.items():
                load = self._state.loads.get(load_id)
                if load is None:
                    logger.warning("Dropping reading for unknown load %s", load_id)
                    continue
                load.current_A = r.current_A
                load.power_W = r.power_W
                load.energy_Wh = r.energy_Wh
            self._state.timestamp = timestamp

    def zero_off_loads(self) -> None:
        """Off loads draw nothing, whatever the reading source reported."""
        with self.lock:
            for load in self._state.loads.values():
                if not load.on:
                    load.current_A = 0.0
                    load.power_W = 0.0

    def set_alerts(self, alerts: list[Alert]) -> None:
        with self.lock:
            self._state.alerts = list(alerts)

    # Cycle internals read the live record under the lock instead of copying.
    def live(self) -> DeviceState:
        return self._state
