"""Configuration management for chibiforge.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the CHIBIFORGE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (CHIBIFORGE_* prefix)
2. .env file in the project root
3. Default values defined in ChibiforgeConfig

Example .env file:
    CHIBIFORGE_GEMINI_API_KEY=...
    CHIBIFORGE_MEDIA_ROOT=public
    CHIBIFORGE_UPLOADS_DIR=public/uploads
    CHIBIFORGE_TEXT_MODELS='["gemini-2.0-flash", "gemma-3-27b-it"]'

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The CLI and :meth:`ChibiPipeline.from_config` read from it unless a custom
instance is passed in.

Usage Example
-------------
    from chibiforge.core.config import config

    print(config.text_models)
    print(config.uploads_dir)

Model Tiers
-----------
``text_models`` is the ordered fallback chain used for person descriptions.
The first entry is the most capable model; the chain ends with low-quota
Gemma models whose free tier is metered separately.  ``image_model`` is the
single image-capable model used for chibi synthesis.

Pacing
------
All sleeps inserted between external calls are configured here and turned
into a :class:`~chibiforge.core.policy.PacingPolicy`.  Tests build a
zero-delay policy instead of touching these values.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TEXT_MODELS = [
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemma-3-27b-it",
    "gemma-3-12b-it",
]


class ChibiforgeConfig(BaseSettings):
    """Main configuration for chibiforge.

    Values are loaded from environment variables with the CHIBIFORGE_ prefix,
    with fallback to defaults defined here.  Directory fields are created on
    initialisation if they don't exist.

    Attributes
    ----------
    Model Settings:
        gemini_api_key : str
            API key for the Gemini service (empty means "not configured")
        text_models : list[str]
            Ordered fallback tiers for person description
        image_model : str
            Image-capable model used for chibi synthesis

    Paths:
        media_root : Path
            Root that photo references such as ``/uploads/a.jpg`` resolve against
        uploads_dir : Path
            Directory where generated chibi PNGs are written
        public_prefix : str
            URL prefix of ``uploads_dir`` as seen by the record store
        records_db : Path
            JSON file holding the records collection

    Detection and Synthesis:
        max_persons : int
            Roster cap across all photos of a record
        min_image_bytes : int
            Inline image payloads smaller than this are degenerate

    Segmentation:
        white_threshold : float
            Euclidean distance from white below which a pixel is "whitish"
        edge_alpha : int
            Alpha given to background pixels touching the subject
        trim_threshold : int
            Alpha at or below which border pixels are trimmed
        output_height : int
            Final height of every chibi PNG

    Pacing (seconds):
        rate_limit_backoff, photo_pacing, synthesis_retry_delay,
        synthesis_rate_limit_delay, person_pacing, record_pacing

    Examples
    --------
        >>> custom_config = ChibiforgeConfig(
        ...     media_root="/srv/app/public",
        ...     uploads_dir="/srv/app/public/uploads",
        ... )
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CHIBIFORGE_",
        case_sensitive=False,
    )

    # Model settings
    gemini_api_key: str = Field(
        default="",
        description="API key for the Gemini service",
    )
    text_models: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TEXT_MODELS),
        description="Ordered model tiers for person description (best first)",
    )
    image_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Image generation model used for chibi synthesis",
    )

    # Paths
    media_root: Path = Field(
        default=Path("public"),
        description="Directory that photo references are resolved against",
    )
    uploads_dir: Path = Field(
        default=Path("public/uploads"),
        description="Directory to save generated chibi images",
    )
    public_prefix: str = Field(
        default="/uploads",
        description="Public path prefix of uploads_dir",
    )
    records_db: Path = Field(
        default=Path("db.json"),
        description="JSON file holding the records collection",
    )

    # Detection and synthesis
    max_persons: int = Field(default=3, ge=1, le=10)
    min_image_bytes: int = Field(
        default=5000,
        description="Generated images below this size are discarded",
        ge=0,
    )
    synthesis_retries: int = Field(default=2, ge=0, le=10)

    # Segmentation
    white_threshold: float = Field(default=42.0, gt=0, le=442)
    edge_alpha: int = Field(default=60, ge=0, le=255)
    trim_threshold: int = Field(default=5, ge=0, le=255)
    output_height: int = Field(default=800, ge=16, le=4096)

    # Pacing
    rate_limit_backoff: float = Field(default=2.0, ge=0)
    photo_pacing: float = Field(default=1.5, ge=0)
    synthesis_retry_delay: float = Field(default=3.0, ge=0)
    synthesis_rate_limit_delay: float = Field(default=4.0, ge=0)
    person_pacing: float = Field(default=3.0, ge=0)
    record_pacing: float = Field(default=5.0, ge=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level used by the CLI",
    )

    @field_validator("text_models")
    @classmethod
    def _require_model_tier(cls, value: list[str]) -> list[str]:
        """Reject an empty fallback chain."""
        models = [name.strip() for name in value if name and name.strip()]
        if not models:
            raise ValueError("text_models must name at least one model")
        return models

    @field_validator("public_prefix")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def __init__(self, **kwargs):
        """Initialize configuration and create the output directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.uploads_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# Loads values from environment variables (CHIBIFORGE_* prefix) and .env file.
config = ChibiforgeConfig()
