import math

from hypothesis import given, strategies as st

from loadpanel.domain.interfaces import ReadingSource
from loadpanel.domain.models import Load
from loadpanel.drivers.readings_sim import SimulatedReadingSource


loads_strategy = st.dictionaries(
    keys=st.text(alphabet="abcdefgh", min_size=1, max_size=6),
    values=st.builds(
        lambda on, v, i, e, rated: Load("x", "X", on, v, i, v * i if on else 0.0, e, rated_current_A=rated),
        st.booleans(),
        st.floats(min_value=0, max_value=250),
        st.floats(min_value=0, max_value=20),
        st.floats(min_value=0, max_value=1e6),
        st.floats(min_value=0, max_value=20),
    ),
    max_size=6,
)


def test_simulator_satisfies_reading_source_protocol():
    assert isinstance(SimulatedReadingSource(), ReadingSource)


@given(loads_strategy, st.integers(min_value=0, max_value=2**32), st.floats(min_value=0, max_value=120))
def test_reading_invariants(loads, seed, dt):
    src = SimulatedReadingSource(noise_fraction=0.025, seed=seed)
    out = src.next_readings(loads, dt)

    assert set(out) == set(loads)
    for lid, load in loads.items():
        r = out[lid]
        if not load.on:
            assert r.current_A == 0.0
            assert r.power_W == 0.0
            assert r.energy_Wh == load.energy_Wh
        else:
            assert r.current_A >= 0.0
            assert math.isclose(r.power_W, load.voltage_V * r.current_A, rel_tol=1e-9, abs_tol=1e-9)
            assert r.energy_Wh >= load.energy_Wh


@given(st.integers(min_value=0, max_value=2**32))
def test_noise_is_bounded(seed):
    load = Load("lamp", "Desk Lamp", True, 120.0, 0.25, 30.0, 0.0)
    r = SimulatedReadingSource(noise_fraction=0.025, seed=seed).next_readings({"lamp": load}, 1.0)["lamp"]
    assert 0.25 * 0.975 - 1e-12 <= r.current_A <= 0.25 * 1.025 + 1e-12


def test_energy_accumulates_over_nominal_period():
    load = Load("lamp", "Desk Lamp", True, 120.0, 0.25, 30.0, 12.5)
    r = SimulatedReadingSource(noise_fraction=0.0).next_readings({"lamp": load}, 3600.0)["lamp"]
    assert math.isclose(r.power_W, 30.0)
    assert math.isclose(r.energy_Wh, 42.5)


def test_switched_on_load_restarts_from_rated_current():
    fan = Load("fan", "Desk Fan", True, 120.0, 0.0, 0.0, 20.1, rated_current_A=0.5)
    r = SimulatedReadingSource(noise_fraction=0.0).next_readings({"fan": fan}, 1.0)["fan"]
    assert math.isclose(r.current_A, 0.5)
    assert math.isclose(r.power_W, 60.0)


def test_same_seed_same_readings():
    load = Load("lamp", "Desk Lamp", True, 120.0, 0.25, 30.0, 12.5)
    a = SimulatedReadingSource(seed=7).next_readings({"lamp": load}, 1.0)
    b = SimulatedReadingSource(seed=7).next_readings({"lamp": load}, 1.0)
    assert a == b
