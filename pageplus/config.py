from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pageplus.models.providers import AiModel

ResponseLanguage = Literal["en", "es", "ja"]


class ModelsConfig(BaseModel):
    selected: AiModel = AiModel.gemini_nano
    cloud_model: str = "gemini-2.0-flash-exp"
    """Model id forwarded to the relay for the cloud backend."""
    suggestions_model: AiModel = AiModel.gemini_2_5_flash_lite


class CloudConfig(BaseModel):
    api_url: str = "https://api-holy-frog-5486.fly.dev"
    timeout_s: float = Field(default=60.0, gt=0)
    quota_tokens: int = Field(default=1_000_000, gt=0)

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class OnDeviceConfig(BaseModel):
    fallback_quota: int = Field(default=100_000, gt=0)
    chars_per_token: float = Field(default=4.0, gt=0)


class ContextConfig(BaseModel):
    auto_summarize_enabled: bool = False
    auto_summarize_threshold: int = Field(default=2000, ge=1)
    quota_debounce_s: float = Field(default=0.1, ge=0)
    page_markdown_limit: int = Field(default=8000, ge=1)


class ToolsConfig(BaseModel):
    page_images_timeout_s: float = Field(default=10.0, gt=0)
    fill_form_timeout_s: float = Field(default=30.0, gt=0)
    screenshot_timeout_s: float | None = None
    download_lease_s: float = Field(default=300.0, gt=0)
    max_colors: int = Field(default=6, ge=1)
    color_sample_budget: int = Field(default=1000, ge=1)
    color_quantization: int = Field(default=32, ge=1, le=255)


class TelemetryConfig(BaseModel):
    enabled: bool = False
    endpoint: str | None = None
    env: str = "dev"


class ObservabilityConfig(BaseModel):
    metrics_enabled: bool = True
    json_logs: bool = False
    log_level: str = "INFO"


class PagePlusSettings(BaseSettings):
    data_dir: Path = Path("./data")
    language: ResponseLanguage = "en"
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    cloud: CloudConfig = Field(default_factory=CloudConfig)
    on_device: OnDeviceConfig = Field(default_factory=OnDeviceConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = SettingsConfigDict(
        env_prefix="PAGEPLUS_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / "pageplus.db"


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
            current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    merged = dict(data)
    prefix = "PAGEPLUS_"
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[len(prefix) :].lower().split("__")
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path = "config/pageplus.yaml") -> PagePlusSettings:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise ValueError("config file must contain a top-level mapping")

    raw = loaded.get("pageplus", loaded)
    if not isinstance(raw, dict):
        raise ValueError("pageplus config section must be a mapping")

    return PagePlusSettings.model_validate(_apply_env_overrides(raw))


__all__ = [
    "CloudConfig",
    "ContextConfig",
    "ModelsConfig",
    "ObservabilityConfig",
    "OnDeviceConfig",
    "PagePlusSettings",
    "ResponseLanguage",
    "TelemetryConfig",
    "ToolsConfig",
    "load_config",
]
