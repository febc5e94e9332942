"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for cratehold happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.
main.py maps its CLI flags onto the same environment names, so a flag and an
env var are interchangeable.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file. Field names map to env var names
      (e.g. objstore_endpoint -> OBJSTORE_ENDPOINT).

  @model_validator(mode="after"): the bucket and the rules file are required.
      A registry without either cannot serve a single request, so the process
      refuses to start rather than failing per request.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
cache/, registry/, or storage/.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    addr: str = "127.0.0.1:8080"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Object store
    # ------------------------------------------------------------------

    # Bucket name. Empty string is the "not configured" sentinel.
    objstore: str = ""
    # Custom endpoint for S3-compatible stores (MinIO, R2, ...). Path-style
    # addressing is forced when set.
    objstore_endpoint: Optional[str] = None

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    rules: Optional[Path] = None
    github_api_url: str = "https://api.github.com"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_required(self) -> "Settings":
        if not self.objstore:
            raise ValueError("OBJSTORE (bucket name) is required.")
        if self.rules is None:
            raise ValueError("RULES (path to the rules YAML file) is required.")
        if not self.objstore_endpoint:
            self.objstore_endpoint = None
        return self

    @property
    def host_port(self) -> tuple[str, int]:
        """Split `addr` into (host, port). Accepts "host:port" and "[v6]:port"."""
        host, _, port = self.addr.rpartition(":")
        if not host or not port.isdigit():
            raise ValueError(f"ADDR must be host:port, got {self.addr!r}")
        return host.strip("[]"), int(port)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
