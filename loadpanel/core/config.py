from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Load Panel"

    # Simulation cycle
    cycle_seconds: float = Field(default=1.0, gt=0)
    energy_from_elapsed: bool = False   # True = integrate over measured time
    max_elapsed_seconds: float = 60.0
    noise_fraction: float = Field(default=0.025, ge=0, lt=1)
    sim_seed: Optional[int] = None

    # Used only when default_loads.json is missing
    high_usage_w: float = 50.0

    # Load classification
    actuator_only_loads: list[str] = Field(default_factory=lambda: ["fan"])
    high_usage_alert_loads: list[str] = Field(default_factory=lambda: ["fan"])

    # Automatic fan
    fan_load_id: str = "fan"
    fan_auto_control: bool = False
    fan_hysteresis_w: float = 2.0
    fan_min_switch_interval_seconds: int = 10

    # Sync client
    api_base_url: str = "http://localhost:4000"
    poll_interval_s: float = Field(default=1.0, gt=0)
    request_timeout_s: float = Field(default=2.0, gt=0)
    intent_ttl_s: float = 5.0

    # Logging
    log_file: str = "loadpanel.log"
    log_level: str = "INFO"


settings = Settings()
