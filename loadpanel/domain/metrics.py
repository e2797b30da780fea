"""Derived metrics over a DeviceState in wire form.

Everything here is a pure function of the mapping returned by
``GET /api/status`` (or ``DeviceState.to_dict()``), so the server and the
sync client derive identical numbers.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

EPSILON_W = 1e-4
START_ANGLE_DEG = -90.0  # top of the circle; 0 deg points right, clockwise positive

DEFAULT_ACTUATOR_ONLY = frozenset({"fan"})

WAITING_PLACEHOLDER = "Waiting for data..."
ZERO_PLACEHOLDER = "Monitored loads at 0 W"


def _number(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v)


def _power(load: Mapping[str, Any]) -> float:
    return _number(load.get("power_W")) or 0.0


def threshold_of(status: Optional[Mapping[str, Any]]) -> Optional[float]:
    """highUsage_W or None. None means "not configured", never zero."""
    if not status:
        return None
    thresholds = status.get("thresholds") or {}
    return _number(thresholds.get("highUsage_W"))


def monitored_items(loads: Mapping[str, Mapping[str, Any]], actuator_only: Iterable[str]):
    excluded = frozenset(actuator_only)
    return [(lid, load) for lid, load in loads.items() if lid not in excluded]


@dataclass(frozen=True)
class Summary:
    total_power: float
    devices_on: int
    total_devices: int
    threshold_w: Optional[float]

    def to_dict(self) -> dict:
        return {
            "totalPower_W": self.total_power,
            "devicesOn": self.devices_on,
            "totalDevices": self.total_devices,
            "threshold_W": self.threshold_w,
        }


def summarize(
    status: Optional[Mapping[str, Any]],
    actuator_only: Iterable[str] = DEFAULT_ACTUATOR_ONLY,
) -> Summary:
    threshold = threshold_of(status)
    server_total = _number(status.get("totalPower_W")) if status else None
    loads = status.get("loads") if status else None

    if not loads:
        return Summary(
            total_power=server_total if server_total is not None else 0.0,
            devices_on=0,
            total_devices=0,
            threshold_w=threshold,
        )

    if server_total is not None:
        total = server_total
    else:
        total = sum(_power(load) for _, load in monitored_items(loads, actuator_only))

    # counts include actuator-only loads
    on_count = sum(1 for load in loads.values() if load.get("on"))
    return Summary(total_power=total, devices_on=on_count, total_devices=len(loads), threshold_w=threshold)


def is_high_usage(
    load_id: str,
    load: Mapping[str, Any],
    threshold_w: Optional[float],
    actuator_only: Iterable[str] = DEFAULT_ACTUATOR_ONLY,
) -> bool:
    if load_id in frozenset(actuator_only) or threshold_w is None:
        return False
    power = _number(load.get("power_W"))
    return power is not None and power >= threshold_w


def _fmt(v: float) -> str:
    return f"{v:.3f}"


def _point(cx: float, cy: float, r: float, deg: float) -> tuple[float, float]:
    rad = math.radians(deg)
    return cx + r * math.cos(rad), cy + r * math.sin(rad)


@dataclass(frozen=True)
class PieSlice:
    load_id: str
    name: str
    power_W: float
    fraction: float
    start_deg: float
    end_deg: float

    @property
    def span_deg(self) -> float:
        return self.end_deg - self.start_deg

    @property
    def large_arc(self) -> bool:
        return self.span_deg > 180.0

    def path(self, cx: float = 50.0, cy: float = 50.0, r: float = 40.0) -> str:
        """SVG path data for this wedge."""
        x1, y1 = _point(cx, cy, r, self.start_deg)
        x2, y2 = _point(cx, cy, r, self.end_deg)
        if self.span_deg >= 360.0 - 1e-9:
            # start and end coincide; draw the circle as two half arcs
            xm, ym = _point(cx, cy, r, self.start_deg + 180.0)
            return " ".join([
                f"M {_fmt(cx)} {_fmt(cy)}",
                f"L {_fmt(x1)} {_fmt(y1)}",
                f"A {_fmt(r)} {_fmt(r)} 0 0 1 {_fmt(xm)} {_fmt(ym)}",
                f"A {_fmt(r)} {_fmt(r)} 0 0 1 {_fmt(x1)} {_fmt(y1)}",
                "Z",
            ])
        return " ".join([
            f"M {_fmt(cx)} {_fmt(cy)}",
            f"L {_fmt(x1)} {_fmt(y1)}",
            f"A {_fmt(r)} {_fmt(r)} 0 {1 if self.large_arc else 0} 1 {_fmt(x2)} {_fmt(y2)}",
            "Z",
        ])

    def to_dict(self) -> dict:
        return {
            "loadId": self.load_id,
            "name": self.name,
            "power_W": self.power_W,
            "fraction": self.fraction,
            "startDeg": self.start_deg,
            "endDeg": self.end_deg,
            "largeArc": self.large_arc,
            "path": self.path(),
        }


@dataclass(frozen=True)
class PieChart:
    total_W: float
    slices: tuple[PieSlice, ...]
    placeholder: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "total_W": self.total_W,
            "slices": [s.to_dict() for s in self.slices],
            "placeholder": self.placeholder,
        }


def build_pie(
    loads: Optional[Mapping[str, Mapping[str, Any]]],
    actuator_only: Iterable[str] = DEFAULT_ACTUATOR_ONLY,
) -> PieChart:
    if loads is None:
        return PieChart(total_W=0.0, slices=(), placeholder=WAITING_PLACEHOLDER)

    entries = [
        (lid, load.get("name") or lid, max(0.0, _power(load)))
        for lid, load in monitored_items(loads, actuator_only)
    ]
    total = sum(p for _, _, p in entries)
    if total <= EPSILON_W:
        return PieChart(total_W=total, slices=(), placeholder=ZERO_PLACEHOLDER)

    slices: list[PieSlice] = []
    start = START_ANGLE_DEG
    for lid, name, power in entries:
        fraction = power / total
        end = start + fraction * 360.0
        slices.append(PieSlice(lid, name, power, fraction, start, end))
        start = end
    return PieChart(total_W=total, slices=tuple(slices))
