from __future__ import annotations
import logging
import time
from typing import Iterable, Optional

from ..core.timeutil import now_utc, unix_now
from ..domain.alerts import AlertEngine
from ..domain.fan_policy import FanPolicy
from ..domain.interfaces import ReadingSource
from ..domain.models import DeviceState
from ..domain.store import DeviceStateStore

logger = logging.getLogger(__name__)


class CycleService:
    """One status-producing pass: fan policy, readings, alerts.

    Every poll and every control command runs exactly one cycle while
    holding the store lock.
    """

    def __init__(
        self,
        store: DeviceStateStore,
        source: ReadingSource,
        alerts: AlertEngine,
        fan_policy: Optional[FanPolicy] = None,
        cycle_seconds: float = 1.0,
        energy_from_elapsed: bool = False,
        max_elapsed_seconds: float = 60.0,
        actuator_only: Iterable[str] = ("fan",),
        fan_load_id: str = "fan",
    ) -> None:
        self._store = store
        self._source = source
        self._alerts = alerts
        self._fan_policy = fan_policy
        self._cycle_seconds = float(cycle_seconds)
        self._energy_from_elapsed = energy_from_elapsed
        self._max_elapsed = float(max_elapsed_seconds)
        self._actuator_only = frozenset(actuator_only)
        self._fan_load_id = fan_load_id

        self._last_cycle_mono: Optional[float] = None
        self.cycles = 0

    def _dt_seconds(self) -> float:
        now = time.monotonic()
        last, self._last_cycle_mono = self._last_cycle_mono, now
        if not self._energy_from_elapsed or last is None:
            return self._cycle_seconds
        return min(max(0.0, now - last), self._max_elapsed)

    def _run_fan_policy(self, state: DeviceState) -> None:
        fan = state.loads.get(self._fan_load_id)
        if self._fan_policy is None or fan is None:
            return

        monitored_w = sum(
            load.power_W for lid, load in state.loads.items() if lid not in self._actuator_only
        )
        now = now_utc()
        decision = self._fan_policy.decide(
            now_utc=now,
            monitored_w=monitored_w,
            threshold_w=state.thresholds.high_usage_W,
            fan_on=fan.on,
        )
        if decision.action in ("ON", "OFF"):
            desired = decision.action == "ON"
            if desired != fan.on:
                self._store.apply_control(self._fan_load_id, desired)
                self._fan_policy.mark_switched(now)

    def run_cycle(self) -> None:
        with self._store.lock:
            state = self._store.live()
            self._run_fan_policy(state)

            dt = self._dt_seconds()
            try:
                readings = self._source.next_readings(state.loads, dt)
            except Exception as e:
                # keep the previous readings of on loads; alerts below still reflect them
                logger.exception("Reading source %s failed: %s", getattr(self._source, "source_id", "?"), e)
                readings = {}
            self._store.apply_readings(readings, unix_now())
            self._store.zero_off_loads()

            self._store.set_alerts(self._alerts.evaluate(state))
            self.cycles += 1
            logger.debug("cycle %d done (dt=%.3fs alerts=%d)", self.cycles, dt, len(state.alerts))

    def status(self) -> DeviceState:
        """Advance one cycle and return a snapshot of the result."""
        with self._store.lock:
            self.run_cycle()
            return self._store.snapshot()
