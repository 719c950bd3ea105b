"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.

`Settings` is the flat, environment-facing surface. `PipelineConfig` is the
validated subset threaded explicitly into every stage and adapter, so tests
can build one directly (e.g. with a small canvas) without touching the env.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings


DEFAULT_PROMPT = (
    "Place the product at the center bottom of the image on a pure white background. "
    "No shadows, no other objects, no text, no watermark. The product should be large, "
    "clear, and well-lit, like a professional e-commerce studio photo. The background "
    "must be pure white (RGB 255,255,255)."
)


class MaskEncoding(str, Enum):
    """Which channel of a mask carries the editable region."""
    LUMINANCE = "luminance"  # RGB = 255 where editable, alpha always 255
    ALPHA = "alpha"          # alpha = 0 where editable (OpenAI edits convention)


class BackgroundVendor(str, Enum):
    REMOVEBG = "removebg"
    POOF = "poof"


class PipelineConfig(BaseModel):
    """Tunables for one pipeline invocation."""

    # Canvas
    canvas_size: int = Field(default=1024, ge=16)
    normalize_background: Tuple[int, int, int, int] = (0, 0, 0, 0)

    # Reposition
    alpha_threshold: int = Field(default=0, ge=0, le=254)
    crop_padding: int = Field(default=10, ge=0)
    max_width_fraction: float = Field(default=0.75, gt=0.0, le=1.0)
    max_height_fraction: float = Field(default=0.65, gt=0.0, le=1.0)
    bottom_margin_fraction: float = Field(default=0.12, ge=0.0, lt=1.0)

    # Mask
    mask_invert: bool = False
    mask_encoding: MaskEncoding = MaskEncoding.ALPHA

    # Finalizer
    whiten_threshold: int = Field(default=240, ge=0, le=254)
    brightness: float = 1.10
    saturation: float = 1.05
    sharpen_radius: float = 1.0
    sharpen_percent: int = 80
    sharpen_threshold: int = 2
    median_size: int = Field(default=1, ge=1)  # odd window; 1 leaves pixels untouched
    contrast_slope: float = 1.02

    # Post-process
    recompose_after_inpaint: bool = True
    trim_tolerance: int = Field(default=10, ge=0, le=255)

    # External services
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0.0)
    http_timeout_seconds: float = Field(default=30.0, gt=0.0)

    background_vendor: BackgroundVendor = BackgroundVendor.REMOVEBG
    removebg_api_url: str = "https://api.remove.bg/v1.0/removebg"
    removebg_api_key: Optional[str] = None
    poof_api_url: str = "https://api.poof.bg/v1/remove-background"
    poof_api_key: Optional[str] = None

    inpaint_enabled: bool = True
    openai_api_url: str = "https://api.openai.com/v1/images/edits"
    openai_api_key: Optional[str] = None
    inpaint_model: str = "dall-e-2"
    inpaint_prompt: str = DEFAULT_PROMPT
    inpaint_max_payload_bytes: int = Field(default=4 * 1024 * 1024, gt=0)

    @field_validator("median_size")
    @classmethod
    def _odd_median(cls, v: int) -> int:
        if v % 2 == 0:
            raise ValueError("median_size must be odd")
        return v

    @model_validator(mode="after")
    def _check_layout(self) -> "PipelineConfig":
        if self.max_height_fraction + self.bottom_margin_fraction > 1.0:
            raise ValueError(
                "max_height_fraction + bottom_margin_fraction must not exceed 1.0"
            )
        return self

    @property
    def canvas_dimensions(self) -> Tuple[int, int]:
        return (self.canvas_size, self.canvas_size)

    @property
    def inpaint_available(self) -> bool:
        return self.inpaint_enabled and bool(self.openai_api_key)


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Packshot Studio Pipeline"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD

    # ==========================================================================
    # Storage Settings
    # ==========================================================================
    WORKING_DIR: str = "./data/work"
    OUTPUT_DIR: str = "./output"
    PERSIST_WORKING_FILES: bool = True
    MAX_UPLOAD_SIZE_BYTES: int = 20971520  # 20MB

    # ==========================================================================
    # Pipeline Settings
    # ==========================================================================
    CANVAS_SIZE: int = 1024
    ALPHA_THRESHOLD: int = 0
    CROP_PADDING: int = 10
    MAX_WIDTH_FRACTION: float = 0.75
    MAX_HEIGHT_FRACTION: float = 0.65
    BOTTOM_MARGIN_FRACTION: float = 0.12
    WHITEN_THRESHOLD: int = 240
    MEDIAN_SIZE: int = 1
    MASK_INVERT: bool = False
    MASK_ENCODING: MaskEncoding = MaskEncoding.ALPHA
    RECOMPOSE_AFTER_INPAINT: bool = True

    # ==========================================================================
    # External Services
    # ==========================================================================
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Background removal
    BACKGROUND_REMOVAL_VENDOR: BackgroundVendor = BackgroundVendor.REMOVEBG
    REMOVEBG_API_URL: str = "https://api.remove.bg/v1.0/removebg"
    REMOVEBG_API_KEY: Optional[str] = None
    POOF_API_URL: str = "https://api.poof.bg/v1/remove-background"
    POOF_API_KEY: Optional[str] = None

    # Inpainting
    INPAINT_ENABLED: bool = True
    OPENAI_API_URL: str = "https://api.openai.com/v1/images/edits"
    OPENAI_API_KEY: Optional[str] = None
    INPAINT_MODEL: str = "dall-e-2"
    INPAINT_PROMPT: str = DEFAULT_PROMPT
    INPAINT_MAX_PAYLOAD_BYTES: int = 4194304  # 4 MiB

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    def pipeline_config(self, **overrides) -> PipelineConfig:
        """Build the explicit per-invocation config from the flat settings."""
        values = dict(
            canvas_size=self.CANVAS_SIZE,
            alpha_threshold=self.ALPHA_THRESHOLD,
            crop_padding=self.CROP_PADDING,
            max_width_fraction=self.MAX_WIDTH_FRACTION,
            max_height_fraction=self.MAX_HEIGHT_FRACTION,
            bottom_margin_fraction=self.BOTTOM_MARGIN_FRACTION,
            whiten_threshold=self.WHITEN_THRESHOLD,
            median_size=self.MEDIAN_SIZE,
            mask_invert=self.MASK_INVERT,
            mask_encoding=self.MASK_ENCODING,
            recompose_after_inpaint=self.RECOMPOSE_AFTER_INPAINT,
            retry_max_attempts=self.RETRY_MAX_ATTEMPTS,
            retry_base_delay_seconds=self.RETRY_BASE_DELAY_SECONDS,
            http_timeout_seconds=self.HTTP_TIMEOUT_SECONDS,
            background_vendor=self.BACKGROUND_REMOVAL_VENDOR,
            removebg_api_url=self.REMOVEBG_API_URL,
            removebg_api_key=self.REMOVEBG_API_KEY,
            poof_api_url=self.POOF_API_URL,
            poof_api_key=self.POOF_API_KEY,
            inpaint_enabled=self.INPAINT_ENABLED,
            openai_api_url=self.OPENAI_API_URL,
            openai_api_key=self.OPENAI_API_KEY,
            inpaint_model=self.INPAINT_MODEL,
            inpaint_prompt=self.INPAINT_PROMPT,
            inpaint_max_payload_bytes=self.INPAINT_MAX_PAYLOAD_BYTES,
        )
        values.update(overrides)
        return PipelineConfig(**values)

    @property
    def working_path(self) -> Path:
        return Path(self.WORKING_DIR)


# Global settings instance
settings = Settings()
