from __future__ import annotations
import random
from typing import Mapping, Optional

from ..domain.models import Load, LoadReading


class SimulatedReadingSource:
    """Wiggles each on load's current a little every cycle so the panel looks alive."""

    source_id = "readings_sim_01"

    def __init__(self, noise_fraction: float = 0.025, seed: Optional[int] = None) -> None:
        self._noise = float(noise_fraction)
        self._rng = random.Random(seed)

    def status(self) -> dict:
        return {"source_id": self.source_id, "noise_fraction": self._noise}

    def _next_current(self, load: Load) -> float:
        current = load.current_A
        if current <= 0.0:
            # just switched on; multiplicative noise can't leave zero
            current = load.rated_current_A
        factor = 1.0 + self._rng.uniform(-self._noise, self._noise)
        return max(0.0, current * factor)

    def next_readings(self, loads: Mapping[str, Load], dt_s: float) -> dict[str, LoadReading]:
        out: dict[str, LoadReading] = {}
        dt_h = max(0.0, dt_s) / 3600.0
        for load_id, load in loads.items():
            if not load.on:
                out[load_id] = LoadReading(current_A=0.0, power_W=0.0, energy_Wh=load.energy_Wh)
                continue

            current = self._next_current(load)
            power = load.voltage_V * current
            out[load_id] = LoadReading(
                current_A=current,
                power_W=power,
                energy_Wh=load.energy_Wh + power * dt_h,
            )
        return out
