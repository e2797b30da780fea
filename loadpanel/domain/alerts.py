from __future__ import annotations
import logging
from typing import Iterable, Sequence

from .interfaces import AlertRule
from .models import Alert, DeviceState

logger = logging.getLogger(__name__)

HIGH_USAGE = "HIGH_USAGE"


class HighUsageRule:
    """One HIGH_USAGE alert per watched load that is on and above the threshold."""

    def __init__(self, load_ids: Iterable[str]) -> None:
        self._load_ids = frozenset(load_ids)

    def evaluate(self, state: DeviceState, timestamp: int) -> list[Alert]:
        limit = state.thresholds.high_usage_W
        if limit is None:
            return []

        out: list[Alert] = []
        # store insertion order keeps the output stable
        for load_id, load in state.loads.items():
            if load_id not in self._load_ids:
                continue
            if load.on and load.power_W > limit:
                out.append(Alert(
                    type=HIGH_USAGE,
                    load_id=load_id,
                    message=f"{load.name} above {limit:g} W",
                    timestamp=timestamp,
                ))
        return out


class AlertEngine:
    def __init__(self, rules: Sequence[AlertRule]) -> None:
        self._rules = list(rules)

    def evaluate(self, state: DeviceState) -> list[Alert]:
        """Rebuild the alert list from scratch; nothing carries over between cycles."""
        alerts: list[Alert] = []
        for rule in self._rules:
            alerts.extend(rule.evaluate(state, state.timestamp))
        if alerts:
            logger.debug("alerts: %s", [(a.type, a.load_id) for a in alerts])
        return alerts
