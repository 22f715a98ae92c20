"""Core configuration for the Bytescope engine."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BYTESCOPE_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "Bytescope"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ── Network / RPC ────────────────────────────────────────────────────
    network: str = "mainnet"
    rpc_url: str = ""  # Overrides the network template when set
    alchemy_api_key: str = ""
    infura_api_key: str = ""
    rpc_timeout_seconds: float = 30.0
    rpc_max_retries: int = 3
    rpc_retry_base_delay: float = 0.5

    # ── Bytecode cache ───────────────────────────────────────────────────
    cache_max_size_bytes: int = 50 * 1024 * 1024
    cache_max_entries: int = 100
    cache_max_age_seconds: float = 30 * 60

    # ── Analyzer ─────────────────────────────────────────────────────────
    min_bytecode_size: int = 1

    # ── Export ───────────────────────────────────────────────────────────
    export_version: str = "1.0.0"
    dashboard_base_url: str = "http://localhost:3000"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
