from __future__ import annotations
import logging

from ..domain.models import DeviceState
from ..domain.store import DeviceStateStore
from .cycle import CycleService

logger = logging.getLogger(__name__)


class ControlHandler:
    def __init__(self, store: DeviceStateStore, cycle: CycleService) -> None:
        self._store = store
        self._cycle = cycle

    def handle(self, load_id: str, on: bool) -> DeviceState:
        """Set a load on/off and return the post-change state.

        Raises UnknownLoad before anything is touched, so a rejected
        command leaves the state exactly as it was.
        """
        with self._store.lock:
            self._store.apply_control(load_id, on)
            logger.info("Set %s to %s", load_id, "ON" if on else "OFF")
            # re-simulate now so the caller never sees a stale reading
            self._cycle.run_cycle()
            return self._store.snapshot()
