from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import Settings, settings
from .core.log import configure_logging
from .core.timeutil import unix_now

from .api.routes import router as api_router
import loadpanel.api.routes as routes_module

from .domain.alerts import AlertEngine, HighUsageRule
from .domain.errors import UnknownLoad
from .domain.fan_policy import FanPolicy
from .domain.interfaces import ReadingSource
from .domain.models import DeviceState, Load, Thresholds
from .domain.store import DeviceStateStore
from .drivers.readings_sim import SimulatedReadingSource
from .services.control import ControlHandler
from .services.cycle import CycleService


logger = logging.getLogger(__name__)

DEFAULT_LOADS_PATH = Path(__file__).resolve().parent / "config" / "default_loads.json"


def _hardcoded_state(cfg: Settings) -> DeviceState:
    return DeviceState(
        timestamp=unix_now(),
        loads={
            "lamp": Load("lamp", "Desk Lamp", True, 120.0, 0.25, 30.0, 12.5, rated_current_A=0.25),
            "charger": Load("charger", "Phone Charger", True, 5.0, 1.2, 6.0, 3.4, rated_current_A=1.2),
            "fan": Load("fan", "Desk Fan", False, 120.0, 0.0, 0.0, 20.1, rated_current_A=0.5),
        },
        thresholds=Thresholds(high_usage_W=cfg.high_usage_w),
    )


def load_default_state(cfg: Settings = settings, path: Path = DEFAULT_LOADS_PATH) -> DeviceState:
    try:
        data = json.loads(path.read_text())
        loads: dict[str, Load] = {}
        for item in data["loads"]:
            current = float(item.get("current_A", 0.0))
            loads[item["id"]] = Load(
                id=item["id"],
                name=item.get("name", item["id"]),
                on=bool(item.get("on", False)),
                voltage_V=float(item["voltage_V"]),
                current_A=current,
                power_W=float(item.get("power_W", 0.0)),
                energy_Wh=float(item.get("energy_Wh", 0.0)),
                rated_current_A=float(item.get("rated_current_A", current)),
            )
        raw_threshold = data.get("thresholds", {}).get("highUsage_W")
        thresholds = Thresholds(high_usage_W=float(raw_threshold) if raw_threshold is not None else None)
        return DeviceState(timestamp=unix_now(), loads=loads, thresholds=thresholds)
    except Exception as e:
        logger.warning("Failed to load %s, using hardcoded defaults: %s", path.name, e)
        return _hardcoded_state(cfg)


def create_app(
    cfg: Optional[Settings] = None,
    source: Optional[ReadingSource] = None,
    initial_state: Optional[DeviceState] = None,
) -> FastAPI:
    cfg = cfg or settings

    store = DeviceStateStore(initial_state or load_default_state(cfg))
    source = source or SimulatedReadingSource(noise_fraction=cfg.noise_fraction, seed=cfg.sim_seed)
    fan_policy = FanPolicy(
        enabled=cfg.fan_auto_control,
        hysteresis_w=cfg.fan_hysteresis_w,
        min_switch_interval_s=cfg.fan_min_switch_interval_seconds,
    )
    cycle = CycleService(
        store=store,
        source=source,
        alerts=AlertEngine([HighUsageRule(cfg.high_usage_alert_loads)]),
        fan_policy=fan_policy,
        cycle_seconds=cfg.cycle_seconds,
        energy_from_elapsed=cfg.energy_from_elapsed,
        max_elapsed_seconds=cfg.max_elapsed_seconds,
        actuator_only=cfg.actuator_only_loads,
        fan_load_id=cfg.fan_load_id,
    )
    control = ControlHandler(store, cycle)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info(
            "Starting %s (source=%s loads=%s fan_auto=%s)",
            cfg.app_name, getattr(source, "source_id", "?"), store.load_ids(), cfg.fan_auto_control,
        )
        try:
            yield
        finally:
            logger.info("Shutdown complete")

    app = FastAPI(title=cfg.app_name, lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(UnknownLoad)
    async def unknown_load_handler(request: Request, exc: UnknownLoad):
        logger.warning("Rejected control command: %s", exc)
        return JSONResponse(status_code=400, content={"error": "Unknown loadId"})

    # Make the dependency functions in routes resolve to the objects owned by this app
    app.dependency_overrides[routes_module.get_store] = lambda: store
    app.dependency_overrides[routes_module.get_cycle] = lambda: cycle
    app.dependency_overrides[routes_module.get_control] = lambda: control
    app.dependency_overrides[routes_module.get_fan_policy] = lambda: fan_policy
    app.dependency_overrides[routes_module.get_source] = lambda: source
    app.dependency_overrides[routes_module.get_settings] = lambda: cfg

    app.include_router(api_router, prefix="/api")

    app.state.store = store
    app.state.cycle = cycle
    app.state.fan_policy = fan_policy
    return app


app = create_app()
