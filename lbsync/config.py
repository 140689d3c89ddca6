from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SERVER_NAME_TEMPLATE = "{{ service.name }}.{{ service.namespace }}.svc.{{ domain }}"


class Settings(BaseSettings):
    app_name: str = Field(default="lbsync")
    app_version: str = Field(default="0.1.0")

    log_level: str = Field(default="INFO")
    log_file: str = Field(default="")

    # Renderer
    template_path: str = Field(default="")
    config_path: str = Field(default="")
    render_atomic_write: bool = Field(default=True)
    server_name_templates: str = Field(default=DEFAULT_SERVER_NAME_TEMPLATE)
    domain: str = Field(default="")

    # Reload trigger, e.g. "pidfile:/var/run/caddy.pid" or "command:nginx -s reload"
    notify: str = Field(default="")

    # Snapshot source and update coalescing
    snapshot_path: str = Field(default="")
    snapshot_poll_interval_seconds: float = Field(default=2.0)
    update_quiescence_seconds: float = Field(default=1.0)

    # Status API
    api_enable: bool = Field(default=False)
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8081)
    metrics_enabled: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_intervals(self) -> "Settings":
        issues: list[str] = []
        if self.update_quiescence_seconds <= 0:
            issues.append("UPDATE_QUIESCENCE_SECONDS must be greater than zero.")
        if self.snapshot_poll_interval_seconds <= 0:
            issues.append("SNAPSHOT_POLL_INTERVAL_SECONDS must be greater than zero.")
        if not 0 < self.api_port < 65536:
            issues.append("API_PORT must be a valid TCP port.")
        if issues:
            raise ValueError(" ".join(issues))
        return self
