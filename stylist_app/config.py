from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = False

    # Application
    app_name: str = "AI Stylist"
    app_version: str = "1.0.0"
    base_url: str = "http://127.0.0.1:8000"
    default_locale: str = "es"  # Options: "es", "en"
    analysis_mode: str = "face"  # Options: "face" (hair/beard), "body" (clothing)

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Vision / generative AI
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_image_model: str = "gemini-2.5-flash-image"
    gemini_rest_url: str = ""
    nanobanana_url: str = ""
    nanobanana_api_key: str = ""
    google_vision_api_key: str = ""
    ai_analysis_timeout: float = 60.0  # seconds
    ai_generation_timeout: float = 90.0  # seconds
    ai_max_retries: int = 3
    ai_retry_initial_delay: float = 1.0  # seconds, doubled on every retry

    # Image storage
    cloudinary_url: str = ""
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "abstain"
    uploads_dir: str = "public/uploads"
    resize_cache_dir: str = "public/uploads/resize-cache"
    registry_path: str = "data/generated_images.json"

    # Cache settings
    cache_enabled: bool = True
    cache_backend: str = "memory"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl: int = 86400  # Analysis results (24 hours)
    generation_cache_ttl: int = 3600  # Edited images (1 hour)

    # Rate limiting
    rate_limit_enabled: bool = True
    rate_limit_backend: str = "memory"  # Options: "redis", "memory"
    rate_limit_per_minute: int = 10
    rate_limit_window_seconds: int = 60

    # Credits (free testing mode by default)
    credits_backend: str = "memory"  # Options: "redis", "memory"
    starting_credits: int = 10
    credit_cost_analysis: int = 0
    credit_cost_generation: int = 0
    enforce_credits: bool = False

    # Features / compliance
    moderation_enabled: bool = True
    watermark_enabled: bool = True
    watermark_text: str = "AI preview"
    privacy_mode: bool = False

    # Image validation
    max_image_size_mb: float = 10
    min_image_dimension: int = 256
    max_image_dimension: int = 4096
    allowed_mime_types: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Logging
    log_dir: str = "logs"
    betterstack_log_endpoint: Optional[str] = None
    betterstack_token: Optional[str] = None
    betterstack_timeout: float = 3.0

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def cloudinary_configured(self) -> bool:
        """True when either CLOUDINARY_URL or the three discrete credentials are set"""
        if self.cloudinary_url:
            return True
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    @property
    def vision_api_key(self) -> str:
        """Vision calls reuse the Gemini key when no dedicated key is set"""
        return self.google_vision_api_key or self.gemini_api_key


# Create settings instance
settings = Settings()
