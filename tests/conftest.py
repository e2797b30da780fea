"""Pytest configuration and shared fixtures."""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from loadpanel.core.config import Settings
from loadpanel.domain.models import DeviceState, Load, Thresholds


@pytest.fixture
def cfg() -> Settings:
    """Deterministic settings: no noise, no log file."""
    return Settings(noise_fraction=0.0, sim_seed=1, log_file="", fan_auto_control=False)


@pytest.fixture
def seed_state() -> DeviceState:
    return DeviceState(
        timestamp=1_700_000_000,
        loads={
            "lamp": Load("lamp", "Desk Lamp", True, 120.0, 0.25, 30.0, 12.5, rated_current_A=0.25),
            "charger": Load("charger", "Phone Charger", True, 5.0, 1.2, 6.0, 3.4, rated_current_A=1.2),
            "fan": Load("fan", "Desk Fan", False, 120.0, 0.0, 0.0, 20.1, rated_current_A=0.5),
        },
        thresholds=Thresholds(high_usage_W=50.0),
    )


@pytest.fixture
def app(cfg, seed_state):
    from loadpanel.main import create_app

    return create_app(cfg, initial_state=seed_state)


@pytest_asyncio.fixture
async def client(app):
    """HTTP client wired straight into the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
