"""Scanner configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `LVS_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DECODER_CHOICES = {"native", "zxing"}


class ScannerSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `LVS_` env overrides."""

    camera_index: int = 0
    # Ideal capture resolution requested from the camera driver.
    capture_width: int = 1280
    capture_height: int = 720

    preferred_decoder: str | None = Field(default="native", description="auto|native|zxing")
    # Switch to the next available decoder when the selected one fails.
    auto_fallback: bool = True
    zxing_try_harder: bool = True
    native_formats: list[str] | None = None

    interval_ms: int = 250
    result_ttl_ms: int = 8000

    display_width: int = 960
    display_height: int = 540
    device_pixel_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="LVS_", validate_assignment=True)

    @field_validator("preferred_decoder")
    @classmethod
    def _validate_preferred_decoder(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v2 = str(v).strip().lower()
        if v2 in {"", "auto", "none"}:
            return None
        if v2 not in DECODER_CHOICES:
            raise ValueError("preferred_decoder must be auto|native|zxing")
        return v2

    @field_validator("interval_ms", "result_ttl_ms")
    @classmethod
    def _validate_positive_ms(cls, v: int) -> int:
        if int(v) <= 0:
            raise ValueError("durations must be > 0 ms")
        return int(v)

    @field_validator("capture_width", "capture_height", "display_width", "display_height")
    @classmethod
    def _validate_dimension(cls, v: int) -> int:
        if int(v) <= 0:
            raise ValueError("dimensions must be > 0")
        return int(v)

    @field_validator("device_pixel_ratio")
    @classmethod
    def _validate_dpr(cls, v: float) -> float:
        if float(v) <= 0:
            raise ValueError("device_pixel_ratio must be > 0")
        return float(v)

    @field_validator("camera_index")
    @classmethod
    def _validate_camera_index(cls, v: int) -> int:
        if int(v) < 0:
            raise ValueError("camera_index must be >= 0")
        return int(v)


def settings_to_dict(settings: ScannerSettings) -> dict[str, Any]:
    return settings.model_dump()


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/scanner.config.yml)."""

    return Path(os.getenv("LVS_CONFIG", "config/scanner.config.yml"))


def load_settings() -> ScannerSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = ScannerSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return ScannerSettings(**merged)
