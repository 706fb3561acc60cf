"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")

    # Asterisk Manager Interface
    ami_host: str = Field(default="127.0.0.1")
    ami_port: int = Field(default=5038, ge=1, le=65535)
    ami_username: str | None = Field(default=None)
    ami_secret: str | None = Field(default=None)
    ami_autostart: bool = Field(
        default=True,
        description="If true, the API process connects and logs in to AMI on startup.",
    )
    action_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="How long a command waits for its correlated AMI response.",
    )
    event_queue_size: int = Field(
        default=10000,
        ge=1,
        description="Bound of the event hand-off queue; the oldest event is dropped when full.",
    )

    # Supervisor monitoring (Originate into a ChanSpy dialplan context)
    supervisor_endpoint: str | None = Field(
        default=None,
        description="Supervisor device that gets called, e.g. PJSIP/9000. Unset disables monitoring.",
    )
    supervisor_context: str = Field(default="supervisor-monitor")
    supervisor_prefix: str = Field(default="*55")
    originate_timeout_ms: int = Field(default=30000, ge=1000)

    # Direction classification
    inbound_contexts: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["from-external", "from-trunk", "inbound"],
    )
    outbound_prefixes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["PJSIP/outbound", "PJSIP/mytrunk", "PJSIP/siptrunk"],
    )
    direction_variable: str = Field(
        default="CALL_DIRECTION",
        description="Channel variable set by the dialplan to force a direction label.",
    )

    # Console
    console_refresh_seconds: float = Field(default=5.0, gt=0.0)

    @field_validator("inbound_contexts", "outbound_prefixes", mode="before")
    @classmethod
    def split_comma_list(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
