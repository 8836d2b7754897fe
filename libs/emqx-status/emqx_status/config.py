"""Configuration for the EMQX status controller."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Controller settings, read from EMQX_STATUS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="EMQX_STATUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Settings
    service_name: str = "emqx-status-controller"
    log_level: str = "INFO"

    # Kubernetes Settings
    kubeconfig_path: Optional[str] = Field(
        default=None,
        description="Path to kubeconfig file, in-cluster config when unset",
    )
    kube_context: Optional[str] = None
    namespace: str = "default"

    # EMQX custom resource
    crd_group: str = "apps.emqx.io"
    crd_version: str = "v2alpha2"
    crd_plural: str = "emqxes"

    # EMQX management API
    dashboard_port: int = 18083
    api_username: str = Field(
        default="",
        description="Bootstrap API key used against api/v5",
    )
    api_password: str = ""
    request_timeout_seconds: float = 10.0

    # Reconciliation Settings
    reconcile_interval_seconds: int = 30


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
