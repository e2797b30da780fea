from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Load:
    id: str
    name: str
    on: bool
    voltage_V: float
    current_A: float
    power_W: float
    energy_Wh: float
    rated_current_A: float = 0.0  # draw right after switch-on; not serialized

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "on": self.on,
            "voltage_V": self.voltage_V,
            "current_A": self.current_A,
            "power_W": self.power_W,
            "energy_Wh": self.energy_Wh,
        }


@dataclass(frozen=True)
class LoadReading:
    current_A: float
    power_W: float
    energy_Wh: float


@dataclass(frozen=True)
class Thresholds:
    high_usage_W: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return {"highUsage_W": self.high_usage_W}


@dataclass(frozen=True)
class Alert:
    type: str
    load_id: str
    message: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "loadId": self.load_id,
            "message": self.message,
            "timestamp": self.timestamp,
        }


@dataclass
class DeviceState:
    timestamp: int
    loads: dict[str, Load]
    thresholds: Thresholds
    alerts: list[Alert] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Wire form served by GET /api/status."""
        return {
            "timestamp": self.timestamp,
            "loads": {lid: load.to_dict() for lid, load in self.loads.items()},
            "thresholds": self.thresholds.to_dict(),
            "alerts": [a.to_dict() for a in self.alerts],
        }
