from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FanDecision:
    action: str  # "ON" | "OFF" | "NOOP" | "BLOCKED"
    reason: str
    monitored_w: float
    threshold_w: Optional[float]


@dataclass
class FanPolicyState:
    enabled: bool = False
    last_switch_utc: Optional[datetime] = None
    last_monitored_w: Optional[float] = None


class FanPolicy:
    """Turns the cooling fan on when monitored power exceeds the threshold.

    Same shape as a bang-bang lighting controller: a dead band of
    ``hysteresis_w`` either side of the threshold and a minimum interval
    between switches.
    """

    def __init__(
        self,
        enabled: bool = False,
        hysteresis_w: float = 2.0,
        min_switch_interval_s: float = 10.0,
    ) -> None:
        self.state = FanPolicyState(enabled=enabled)
        self._hysteresis = float(hysteresis_w)
        self._min_interval = timedelta(seconds=min_switch_interval_s)

    def enable(self) -> None:
        self.state.enabled = True

    def disable(self) -> None:
        self.state.enabled = False

    def decide(
        self,
        now_utc: datetime,
        monitored_w: float,
        threshold_w: Optional[float],
        fan_on: bool,
    ) -> FanDecision:
        self.state.last_monitored_w = monitored_w

        if not self.state.enabled:
            return FanDecision("BLOCKED", "Fan policy disabled", monitored_w, threshold_w)

        if threshold_w is None:
            return FanDecision("NOOP", "No threshold configured", monitored_w, None)

        if self.state.last_switch_utc:
            if (now_utc - self.state.last_switch_utc) < self._min_interval:
                return FanDecision("NOOP", "Min switch interval not met", monitored_w, threshold_w)

        h = self._hysteresis
        if monitored_w > (threshold_w + h) and not fan_on:
            decision = FanDecision(
                "ON", f"Monitored {monitored_w:.1f} W above {threshold_w + h:.1f} W", monitored_w, threshold_w
            )
            logger.info("fan decision: %s - %s", decision.action, decision.reason)
            return decision

        if monitored_w < (threshold_w - h) and fan_on:
            decision = FanDecision(
                "OFF", f"Monitored {monitored_w:.1f} W below {threshold_w - h:.1f} W", monitored_w, threshold_w
            )
            logger.info("fan decision: %s - %s", decision.action, decision.reason)
            return decision

        return FanDecision("NOOP", "Within band", monitored_w, threshold_w)

    def mark_switched(self, now_utc: datetime) -> None:
        self.state.last_switch_utc = now_utc
