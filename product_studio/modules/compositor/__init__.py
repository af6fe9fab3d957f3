"""Background removal, auto-crop and background replacement."""
from . import process
from .backgrounds import (
    BACKGROUND_TYPES,
    BackgroundSpec,
    BlurBackground,
    ColorBackground,
    GradientBackground,
    ImageBackground,
    background_from_dict,
    background_presets,
    background_to_dict,
    render_background,
)
from .config import settings
from .process import (
    BoundingBox,
    auto_crop,
    bounding_box,
    crop_region,
    find_bounding_box,
    remove_background,
    replace_background,
)

__all__ = [
    "process",
    "settings",
    "BACKGROUND_TYPES",
    "BackgroundSpec",
    "BlurBackground",
    "ColorBackground",
    "GradientBackground",
    "ImageBackground",
    "BoundingBox",
    "auto_crop",
    "background_from_dict",
    "background_presets",
    "background_to_dict",
    "bounding_box",
    "crop_region",
    "find_bounding_box",
    "remove_background",
    "render_background",
    "replace_background",
]
