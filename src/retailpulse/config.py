"""Configuration loader for the RetailPulse job service.

The settings model reads the following environment variables (optionally from a
``.env`` file when running locally):

``RETAILPULSE_STORE_MASTER_PATH``
    CSV file describing known stores. The built-in store master is used when
    unset.
``RETAILPULSE_FETCH_TIMEOUT``
    Seconds allowed for each image download (default ``10``).
``RETAILPULSE_PROCESSING_DELAY_MIN`` / ``RETAILPULSE_PROCESSING_DELAY_MAX``
    Bounds in seconds of the simulated per-image processing delay. Setting
    both to ``0`` disables the delay.
``RETAILPULSE_MAX_CONCURRENCY``
    Optional cap on concurrently processed images per job. Unset means no
    limit.
``RETAILPULSE_ALLOWED_FORMATS``
    Comma separated Pillow format names accepted by the fetcher.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from retailpulse.errors import RetailPulseConfigError

DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_DELAY_MIN = 0.1
DEFAULT_DELAY_MAX = 0.4
DEFAULT_ALLOWED_FORMATS = ("PNG", "JPEG", "GIF")


class Settings(BaseSettings):
    store_master_path: Path | None = None
    fetch_timeout: float = Field(DEFAULT_FETCH_TIMEOUT, gt=0)
    processing_delay_min: float = Field(DEFAULT_DELAY_MIN, ge=0)
    processing_delay_max: float = Field(DEFAULT_DELAY_MAX, ge=0)
    max_concurrency: int | None = Field(None, ge=1)
    allowed_formats: str = ",".join(DEFAULT_ALLOWED_FORMATS)

    model_config = SettingsConfigDict(
        env_prefix="RETAILPULSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("allowed_formats")
    @classmethod
    def normalise_formats(cls, value: str) -> str:
        formats = [part.strip().upper() for part in value.split(",") if part.strip()]
        if not formats:
            raise ValueError("At least one image format must be allowed.")
        return ",".join(formats)

    @model_validator(mode="after")
    def check_delay_bounds(self) -> "Settings":
        if self.processing_delay_min > self.processing_delay_max:
            raise ValueError(
                "processing_delay_min must be less than or equal to processing_delay_max."
            )
        return self

    @property
    def delay_range(self) -> tuple[float, float] | None:
        """Return the simulated delay bounds or ``None`` when disabled."""

        if self.processing_delay_max <= 0:
            return None
        return (self.processing_delay_min, self.processing_delay_max)

    @property
    def formats(self) -> frozenset[str]:
        """Return the accepted Pillow format names."""

        return frozenset(self.allowed_formats.split(","))


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment, translating validation failures."""

    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise RetailPulseConfigError(f"Invalid RetailPulse settings: {exc}") from exc
