from pydantic_settings import BaseSettings

from product_studio.config import settings as app_settings


class CompositorSettings(BaseSettings):
    """Defaults applied when a background field is absent."""

    BACKGROUND_COLOR: str = "#FFFFFF"
    GRADIENT_COLORS: tuple[str, ...] = ("#4158D0", "#C850C0")
    GRADIENT_DIRECTION: str = "to bottom right"
    IMAGE_SCALE: float = 1.0
    IMAGE_ANCHOR: tuple[float, float] = (0.5, 0.5)
    BLUR_RADIUS: float = 10.0
    BLUR_OPACITY: float = 1.0

    AUTO_CROP_PADDING: float = app_settings.AUTO_CROP_PADDING

    # Preset assets
    OUTDOOR_BACKGROUND_SOURCE: str = "backgrounds/outdoor.jpg"
    OUTDOOR_BACKGROUND_SCALE: float = 1.2
    PRESET_BLUR_RADIUS: float = 15.0


settings = CompositorSettings()
