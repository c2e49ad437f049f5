import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_PATH = "/v2/models/{model}/config"
INFER_PATH = "/v2/models/{model}/infer"


def endpoint_url(authority: str, path: str, model: str) -> str:
    """http://{authority}{path} with the model name filled in."""
    return f"http://{authority}{path.format(model=model)}"


class ErrorAction(str, Enum):
    """What a dispatch does with a failed inference call."""
    ABORT = "abort"  # fail the whole run
    DROP = "drop"    # log and skip the tick
    RETRY = "retry"  # retry with backoff, then drop


class Settings(BaseSettings):
    PROJECT_NAME: str = "triton-loadgen"
    VERSION: str = "0.1.0"

    # Environment
    ENV: str = "dev"  # dev, staging, production
    DEBUG: bool = False

    # Inference endpoint
    AUTHORITY: str = "localhost:8000"
    REQUEST_TIMEOUT: float = 30.0

    # Load driver
    QUEUE_SIZE: int = 10
    MAX_IN_FLIGHT: int = 100  # 0 = unbounded
    ON_TRANSPORT_ERROR: ErrorAction = ErrorAction.DROP
    ON_STATUS_ERROR: ErrorAction = ErrorAction.ABORT
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 0.1
    RETRY_MAX_DELAY: float = 2.0

    # Prometheus exposition, disabled when unset
    METRICS_PORT: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )


class LoadConfig(BaseModel):
    """Immutable configuration of a single load run."""

    authority: str = Field(default="localhost:8000", min_length=1)
    model: str = Field(..., min_length=1)
    rate: float = Field(..., gt=0, description="Target rate in requests per second")
    queue_size: int = Field(default=10, ge=1)
    max_in_flight: int = Field(default=100, ge=0)
    request_timeout: float = Field(default=30.0, gt=0)
    on_transport_error: ErrorAction = ErrorAction.DROP
    on_status_error: ErrorAction = ErrorAction.ABORT
    retry_max_attempts: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=0.1, ge=0)
    retry_max_delay: float = Field(default=2.0, ge=0)
    duration: Optional[float] = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("rate")
    @classmethod
    def _finite_rate(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("rate must be a finite number")
        return value

    @property
    def tick_interval(self) -> float:
        """Seconds between two consecutive ticks."""
        return 1.0 / self.rate

    @property
    def infer_url(self) -> str:
        return endpoint_url(self.authority, INFER_PATH, self.model)

    @classmethod
    def from_settings(cls, model: str, rate: float, **overrides) -> "LoadConfig":
        """Build a run config from the process settings, CLI overrides winning."""
        values = {
            "authority": settings.AUTHORITY,
            "queue_size": settings.QUEUE_SIZE,
            "max_in_flight": settings.MAX_IN_FLIGHT,
            "request_timeout": settings.REQUEST_TIMEOUT,
            "on_transport_error": settings.ON_TRANSPORT_ERROR,
            "on_status_error": settings.ON_STATUS_ERROR,
            "retry_max_attempts": settings.RETRY_MAX_ATTEMPTS,
            "retry_base_delay": settings.RETRY_BASE_DELAY,
            "retry_max_delay": settings.RETRY_MAX_DELAY,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(model=model, rate=rate, **values)


settings = Settings()
