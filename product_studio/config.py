"""
Application configuration using Pydantic Settings.
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8001
    WORKERS: int = 1  # Single worker keeps one model cache per process

    # Storage settings
    OUTPUT_DIR: str = "outputs"

    # Global switch to enable/disable saving of intermediate debug images.
    DEBUG_SAVE_IMAGES: bool = False

    # Processing settings
    MAX_IMAGE_SIZE: int = 4096  # Maximum image dimension

    # Runtime backend / performance profile
    BACKEND: str = "gpu"  # gpu | wasm | experimental-gpu2
    PRECISION: str = "medium"  # high | medium | low
    MEMORY_POLICY: str = "balanced"  # aggressive | balanced | throughput
    BALANCED_RETENTION_MB: int = 256
    THROUGHPUT_RETENTION_MB: int = 4096

    # Model settings
    MODEL_CACHE_DIR: str = "/models"
    DEFAULT_MODEL_KIND: str = "body"

    # Segmentation / compositing defaults
    SEGMENTATION_THRESHOLD: float = 0.7
    AUTO_CROP_PADDING: float = 0.1

    # Product detection
    CONFIDENCE_THRESHOLD: float = 0.2
    TOP_K: int = 10

    # Downloads
    DOWNLOAD_RETRIES: int = 3
    DOWNLOAD_TIMEOUT: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Create global settings instance
settings = Settings()
