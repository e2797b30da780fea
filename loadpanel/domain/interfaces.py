from __future__ import annotations
from typing import Mapping, Protocol, runtime_checkable
from .models import Alert, DeviceState, Load, LoadReading


@runtime_checkable
class ReadingSource(Protocol):
    """Produces the next electrical readings from the current on/off flags.

    The simulator implements this; a hardware-backed driver can take its
    place without touching the store, alert engine or control handler.
    """

    source_id: str

    def next_readings(self, loads: Mapping[str, Load], dt_s: float) -> dict[str, LoadReading]:
        ...


@runtime_checkable
class AlertRule(Protocol):
    def evaluate(self, state: DeviceState, timestamp: int) -> list[Alert]:
        ...
