from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..core.config import Settings, settings
from ..domain.fan_policy import FanPolicy
from ..domain.interfaces import ReadingSource
from ..domain.metrics import build_pie, summarize
from ..domain.store import DeviceStateStore
from ..services.control import ControlHandler
from ..services.cycle import CycleService
from .schemas import ControlRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# create_app() points these at the objects it owns via app.dependency_overrides.
def get_store() -> DeviceStateStore:  # overridden in main
    raise RuntimeError("Store dependency not configured")

def get_cycle() -> CycleService:  # overridden in main
    raise RuntimeError("Cycle dependency not configured")

def get_control() -> ControlHandler:  # overridden in main
    raise RuntimeError("Control dependency not configured")

def get_fan_policy() -> FanPolicy:  # overridden in main
    raise RuntimeError("Fan policy dependency not configured")

def get_source() -> ReadingSource:  # overridden in main
    raise RuntimeError("Reading source dependency not configured")

def get_settings() -> Settings:
    return settings


# Plain def: FastAPI runs these in its threadpool, the store lock keeps them atomic.
@router.get("/status")
def get_status(cycle: CycleService = Depends(get_cycle)):
    return cycle.status().to_dict()


@router.post("/control")
def post_control(req: ControlRequest, ctrl: ControlHandler = Depends(get_control)):
    # UnknownLoad is turned into a 400 by the handler registered in main
    state = ctrl.handle(req.loadId, req.on)
    return {"ok": True, "state": state.to_dict()}


@router.get("/summary")
def get_summary(
    cycle: CycleService = Depends(get_cycle),
    cfg: Settings = Depends(get_settings),
):
    status = cycle.status().to_dict()
    out = summarize(status, cfg.actuator_only_loads).to_dict()
    pie = build_pie(status["loads"], cfg.actuator_only_loads)
    out["slices"] = [s.to_dict() for s in pie.slices]
    out["placeholder"] = pie.placeholder
    out["alerts"] = status["alerts"]
    return out


def _fan_state(policy: FanPolicy) -> dict:
    s = policy.state
    return {
        "enabled": s.enabled,
        "last_switch_utc": s.last_switch_utc.isoformat() if s.last_switch_utc else None,
        "last_monitored_w": s.last_monitored_w,
    }


@router.get("/health")
async def health(
    store: DeviceStateStore = Depends(get_store),
    source: ReadingSource = Depends(get_source),
    fan: FanPolicy = Depends(get_fan_policy),
    cfg: Settings = Depends(get_settings),
):
    status = getattr(source, "status", None)
    return {
        "ok": True,
        "app": cfg.app_name,
        "loads": store.load_ids(),
        "source": status() if callable(status) else {"source_id": getattr(source, "source_id", "?")},
        "fan_policy": _fan_state(fan),
    }


@router.post("/fan/auto/enable")
async def fan_auto_enable(fan: FanPolicy = Depends(get_fan_policy)):
    fan.enable()
    return {"ok": True, "fan_policy": _fan_state(fan)}


@router.post("/fan/auto/disable")
async def fan_auto_disable(fan: FanPolicy = Depends(get_fan_policy)):
    fan.disable()
    return {"ok": True, "fan_policy": _fan_state(fan)}
