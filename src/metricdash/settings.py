from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 9003

    # Dashboard tree (JSON or YAML). Loaded once at startup, read-only afterwards.
    config_path: str = "app/config.json"

    # TLS for our own listener.
    enable_tls: bool = False
    tls_cert_file: str = ""
    tls_key_file: str = ""

    # Outbound connection policy for the metrics backend.
    skip_prometheus_tls_verify: bool = False
    # Secrets must not be hardcoded in repo files; provide via env or `.env` (not committed).
    prometheus_apikey: str = ""
    # Empty selects the provider flagged as default in the config file.
    provider_name: str = ""
    backend_timeout_seconds: float = 30.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
