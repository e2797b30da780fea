import json
import math
import time

import pytest

from loadpanel.domain.alerts import AlertEngine, HighUsageRule
from loadpanel.domain.errors import UnknownLoad
from loadpanel.domain.fan_policy import FanPolicy
from loadpanel.domain.models import LoadReading
from loadpanel.domain.store import DeviceStateStore
from loadpanel.drivers.readings_sim import SimulatedReadingSource
from loadpanel.services.control import ControlHandler
from loadpanel.services.cycle import CycleService


class BrokenSource:
    source_id = "broken"

    def next_readings(self, loads, dt_s):
        raise RuntimeError("bus timeout")


def _wire(seed_state, source=None, fan_policy=None, **kw):
    store = DeviceStateStore(seed_state)
    cycle = CycleService(
        store=store,
        source=source or SimulatedReadingSource(noise_fraction=0.0),
        alerts=AlertEngine([HighUsageRule(["fan"])]),
        fan_policy=fan_policy,
        **kw,
    )
    return store, cycle, ControlHandler(store, cycle)


def test_status_cycle_keeps_invariants(seed_state):
    store, cycle, _ = _wire(seed_state, source=SimulatedReadingSource(seed=3))
    before = store.snapshot()
    for _ in range(20):
        snap = cycle.status()
    for lid, load in snap.loads.items():
        if load.on:
            assert math.isclose(load.power_W, load.voltage_V * load.current_A, rel_tol=1e-9)
            assert load.energy_Wh >= before.loads[lid].energy_Wh
        else:
            assert load.current_A == 0.0 and load.power_W == 0.0
            assert load.energy_Wh == before.loads[lid].energy_Wh
    assert cycle.cycles == 20


def test_control_reflects_post_change_readings(seed_state):
    store, _, control = _wire(seed_state)
    snap = control.handle("lamp", False)
    assert snap.loads["lamp"].on is False
    assert snap.loads["lamp"].power_W == 0.0
    assert snap.loads["lamp"].current_A == 0.0


def test_lamp_back_on_draws_power_again(seed_state):
    _, _, control = _wire(seed_state)
    control.handle("lamp", False)
    snap = control.handle("lamp", True)
    assert math.isclose(snap.loads["lamp"].power_W, 30.0)


def test_fan_on_raises_single_high_usage_alert(seed_state):
    _, _, control = _wire(seed_state)
    snap = control.handle("fan", True)
    assert snap.loads["fan"].power_W > 50.0
    assert [(a.type, a.load_id) for a in snap.alerts] == [("HIGH_USAGE", "fan")]


def test_unknown_load_is_rejected_without_side_effects(seed_state):
    store, cycle, control = _wire(seed_state)
    before = json.dumps(store.snapshot().to_dict(), sort_keys=True)
    with pytest.raises(UnknownLoad):
        control.handle("heater", True)
    assert json.dumps(store.snapshot().to_dict(), sort_keys=True) == before
    assert cycle.cycles == 0


def test_failed_source_keeps_previous_readings(seed_state):
    store, cycle, _ = _wire(seed_state, source=BrokenSource())
    snap = cycle.status()
    assert snap.loads["lamp"].power_W == 30.0
    assert snap.timestamp > 1_700_000_000


def test_failed_source_still_zeroes_switched_off_load(seed_state):
    _, _, control = _wire(seed_state, source=BrokenSource())
    snap = control.handle("lamp", False)
    assert snap.loads["lamp"].on is False
    assert snap.loads["lamp"].power_W == 0.0
    assert snap.loads["lamp"].current_A == 0.0
    assert snap.loads["charger"].power_W == 6.0
    assert snap.alerts == []


class StuckSource:
    """Reports the same draw for every load, switched on or not."""

    source_id = "stuck"

    def next_readings(self, loads, dt_s):
        return {lid: LoadReading(current_A=0.5, power_W=60.0, energy_Wh=load.energy_Wh) for lid, load in loads.items()}


def test_off_loads_read_zero_whatever_the_source_reports(seed_state):
    _, cycle, _ = _wire(seed_state, source=StuckSource())
    snap = cycle.status()
    assert snap.loads["fan"].on is False
    assert snap.loads["fan"].power_W == 0.0
    assert snap.loads["fan"].current_A == 0.0
    assert snap.loads["lamp"].power_W == 60.0


def test_energy_from_elapsed_uses_measured_time(seed_state, monkeypatch):
    clock = iter([100.0, 100.0 + 3600.0])
    monkeypatch.setattr(time, "monotonic", lambda: next(clock))
    store, cycle, _ = _wire(seed_state, energy_from_elapsed=True, max_elapsed_seconds=7200)

    cycle.run_cycle()  # first cycle falls back to the nominal period
    first = store.snapshot().loads["lamp"].energy_Wh
    cycle.run_cycle()
    second = store.snapshot().loads["lamp"].energy_Wh
    assert math.isclose(second - first, 30.0)


def test_fan_policy_switches_fan_before_readings(seed_state):
    seed_state.loads["lamp"].power_W = 60.0
    seed_state.loads["lamp"].current_A = 0.5
    policy = FanPolicy(enabled=True, min_switch_interval_s=0)
    _, cycle, _ = _wire(seed_state, fan_policy=policy)

    snap = cycle.status()
    assert snap.loads["fan"].on is True
    assert snap.loads["fan"].power_W > 0.0
    assert policy.state.last_switch_utc is not None
