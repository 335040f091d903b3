"""Configuration management for edge inputs."""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Configuration for the iptables and NGINX Plus inputs."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # General settings
    edge_log_level: str = Field(default="INFO", alias="EDGE_LOG_LEVEL")
    edge_output_format: Literal["influx", "prometheus"] = Field(default="influx", alias="EDGE_OUTPUT_FORMAT")

    # iptables input - an empty chain list disables the input
    edge_iptables_use_sudo: bool = Field(default=False, alias="EDGE_IPTABLES_USE_SUDO")
    edge_iptables_use_lock: bool = Field(default=False, alias="EDGE_IPTABLES_USE_LOCK")
    edge_iptables_binary: str = Field(default="iptables", alias="EDGE_IPTABLES_BINARY")
    edge_iptables_table: str = Field(default="filter", alias="EDGE_IPTABLES_TABLE")
    edge_iptables_chains: list[str] = Field(default_factory=list, alias="EDGE_IPTABLES_CHAINS")

    # NGINX Plus input - an empty URL list disables the input
    edge_nginx_plus_urls: list[str] = Field(default_factory=list, alias="EDGE_NGINX_PLUS_URLS")
    edge_nginx_plus_response_timeout: float = Field(default=5, alias="EDGE_NGINX_PLUS_RESPONSE_TIMEOUT")

    # TLS client settings for the status endpoint
    edge_nginx_plus_tls_ca: Optional[str] = Field(default=None, alias="EDGE_NGINX_PLUS_TLS_CA")
    edge_nginx_plus_tls_cert: Optional[str] = Field(default=None, alias="EDGE_NGINX_PLUS_TLS_CERT")
    edge_nginx_plus_tls_key: Optional[str] = Field(default=None, alias="EDGE_NGINX_PLUS_TLS_KEY")
    edge_nginx_plus_insecure_skip_verify: bool = Field(default=False, alias="EDGE_NGINX_PLUS_INSECURE_SKIP_VERIFY")

    @property
    def iptables_enabled(self) -> bool:
        """Whether the iptables input has anything to gather."""
        return bool(self.edge_iptables_table) and bool(self.edge_iptables_chains)

    @property
    def nginx_plus_enabled(self) -> bool:
        """Whether the NGINX Plus input has any status URL to poll."""
        return bool(self.edge_nginx_plus_urls)


def get_config() -> Config:
    """Get configuration instance from environment variables."""
    return Config()  # type: ignore[call-arg]
