"""settingskit engine configuration via environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .setting import ENGLISH, normalize_lang
from .version import parse_version


class EngineConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SETTINGSKIT_",
        extra="ignore",
    )

    # --- Profile loading ---
    UNKNOWN_KEYS: Literal["drop", "report"] = "drop"
    DEFAULT_LANG: str = "en"

    # --- Persistence ---
    PREFERENCES_FORMAT: Literal["binary", "json"] = "binary"
    FALLBACK_VERSION: str = "v1.0.0"

    # --- Schema identity ---
    EXECUTION_MODE: Literal["auto", "production", "devel", "testing"] = "auto"

    @field_validator("FALLBACK_VERSION")
    @classmethod
    def _canonical_version(cls, v: str) -> str:
        return parse_version(v)

    @field_validator("DEFAULT_LANG")
    @classmethod
    def _normalize_lang(cls, v: str) -> str:
        return normalize_lang(v) or ENGLISH


engine_config = EngineConfig()
