"""Configuration loader for the shift OCR pipeline."""

from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from zoneinfo import ZoneInfo

LLM_PROVIDERS = ("openai", "anthropic", "azure-openai")

API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure-openai": "AZURE_OPENAI_API_KEY",
}


def _get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is not None:
        value = value.strip()
        if value == "":
            return default
        return value
    return default


def _get_int(key: str, default: int) -> int:
    value = _get_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be an integer") from exc


def _get_float(key: str, default: float) -> float:
    value = _get_env(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {key} must be a number") from exc


def _get_bool(key: str, default: bool) -> bool:
    value = _get_env(key)
    if value is None:
        return default
    value_lower = value.lower()
    if value_lower in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if value_lower in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ValueError(f"Environment variable {key} must be a boolean")


@dataclass(slots=True)
class PipelineConfig:
    llm_provider: str = "openai"
    llm_model: Optional[str] = None
    api_key: Optional[str] = None
    azure_endpoint: Optional[str] = None
    azure_api_version: str = "2024-02-15-preview"
    use_vision: bool = True
    vision_timeout: float = 45.0
    vision_connect_timeout: float = 5.0
    tesseract_cmd: Optional[str] = None
    database_path: Path = Path("./shifts.sqlite")
    max_image_bytes: int = 20 * 1024 * 1024
    lenient_dates: bool = False
    timezone: ZoneInfo = ZoneInfo("UTC")
    log_level: str = "INFO"

    def today(self) -> dt.date:
        """Current date in the configured zone; used for year inference."""
        return dt.datetime.now(self.timezone).date()

    def with_provider(self, provider: str, model: Optional[str] = None) -> "PipelineConfig":
        """Switch provider, picking up that provider's credential from the environment."""
        if provider not in LLM_PROVIDERS:
            raise ValueError(f"Unsupported LLM provider: {provider}")
        return replace(
            self,
            llm_provider=provider,
            llm_model=model if model is not None else self.llm_model,
            api_key=_get_env(API_KEY_ENV[provider]),
        )


def load_config() -> PipelineConfig:
    llm_provider = _get_env("LLM_PROVIDER", "openai").lower()
    if llm_provider not in LLM_PROVIDERS:
        raise ValueError(
            f"LLM_PROVIDER must be one of: {', '.join(LLM_PROVIDERS)} (got '{llm_provider}')"
        )

    tz_name = _get_env("TIMEZONE", "UTC")
    try:
        timezone = ZoneInfo(tz_name)
    except Exception as exc:
        raise ValueError(f"Unable to load timezone '{tz_name}'") from exc

    max_image_mb = max(1, _get_int("MAX_IMAGE_MB", 20))

    return PipelineConfig(
        llm_provider=llm_provider,
        llm_model=_get_env("LLM_MODEL"),
        api_key=_get_env(API_KEY_ENV[llm_provider]),
        azure_endpoint=_get_env("AZURE_OPENAI_ENDPOINT"),
        azure_api_version=_get_env("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
        use_vision=_get_bool("USE_VISION", True),
        vision_timeout=max(1.0, _get_float("VISION_TIMEOUT_SECONDS", 45.0)),
        vision_connect_timeout=max(0.5, _get_float("VISION_CONNECT_TIMEOUT_SECONDS", 5.0)),
        tesseract_cmd=_get_env("TESSERACT_CMD"),
        database_path=Path(_get_env("SHIFT_DB_PATH", "./shifts.sqlite")),
        max_image_bytes=max_image_mb * 1024 * 1024,
        lenient_dates=_get_bool("LENIENT_DATES", False),
        timezone=timezone,
        log_level=_get_env("LOG_LEVEL", "INFO").upper(),
    )
