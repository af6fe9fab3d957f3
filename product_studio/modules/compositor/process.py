# product_studio/modules/compositor/process.py
"""
Mask compositing: background removal, auto-crop and background replacement.

All operations are pure functions of (image, mask, parameters) and return a
new image; the inputs are never modified.
"""
import math
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog
from PIL import Image

from product_studio.core.errors import DegenerateMaskWarning
from product_studio.core.imaging import ColorLike, parse_color
from product_studio.modules.segmenter import Mask
from .backgrounds import BackgroundSpec, render_background
from .config import settings

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    """Pixel rectangle; ``max_x``/``max_y`` are exclusive, as in PIL crop boxes."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    def as_tuple(self):
        return self.min_x, self.min_y, self.max_x, self.max_y


def _check_alignment(image: Image.Image, mask: Mask) -> None:
    if image.size != mask.size:
        raise ValueError(f"Mask size {mask.size} does not match image size {image.size}")


def _warn_degenerate(operation: str) -> None:
    log.warning("Mask has no foreground pixels", operation=operation)
    warnings.warn(
        f"{operation}: mask has no foreground pixels; using the whole image",
        DegenerateMaskWarning,
        stacklevel=3,
    )


def find_bounding_box(mask: Mask) -> Optional[BoundingBox]:
    """Tight box around the foreground, or None when there is none."""
    foreground = mask.foreground()
    rows = np.flatnonzero(foreground.any(axis=1))
    cols = np.flatnonzero(foreground.any(axis=0))
    if rows.size == 0:
        return None
    return BoundingBox(int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1)


def bounding_box(mask: Mask) -> BoundingBox:
    box = find_bounding_box(mask)
    if box is None:
        _warn_degenerate("bounding_box")
        return BoundingBox(0, 0, mask.width, mask.height)
    return box


def crop_region(mask: Mask, padding: Optional[float] = None) -> Optional[BoundingBox]:
    """Bounding box grown by ``padding`` of its own size per axis, clamped to the mask."""
    padding = settings.AUTO_CROP_PADDING if padding is None else padding
    if padding < 0:
        raise ValueError(f"padding must not be negative, got {padding}")

    box = find_bounding_box(mask)
    if box is None:
        return None

    pad_x = math.floor(box.width * padding)
    pad_y = math.floor(box.height * padding)
    return BoundingBox(
        max(0, box.min_x - pad_x),
        max(0, box.min_y - pad_y),
        min(mask.width, box.max_x + pad_x),
        min(mask.height, box.max_y + pad_y),
    )


def auto_crop(image: Image.Image, mask: Mask, padding: Optional[float] = None) -> Image.Image:
    """
    Crop to the padded foreground region. A mask without foreground returns
    the original image unmodified.
    """
    _check_alignment(image, mask)
    crop = crop_region(mask, padding)
    if crop is None:
        _warn_degenerate("auto_crop")
        return image

    log.info("Auto-crop", crop=crop.as_tuple(), source_size=image.size)
    return image.crop(crop.as_tuple())


def remove_background(
    image: Image.Image,
    mask: Mask,
    background_color: ColorLike = settings.BACKGROUND_COLOR,
) -> Image.Image:
    """
    Keep the source where the mask is foreground and clear it elsewhere.
    Kept pixels are never recolored; with a binary mask re-applying is a no-op.

    When ``background_color`` has alpha > 0 the cutout is flattened onto an
    opaque layer of that color and an RGB image is returned; otherwise the
    transparent RGBA cutout is returned.
    """
    _check_alignment(image, mask)
    pixels = np.array(image.convert("RGBA"), dtype=np.float32)

    alpha = np.minimum(pixels[..., 3], np.rint(mask.alpha * 255.0))
    cutout = np.rint(np.dstack([pixels[..., :3], alpha])).astype(np.uint8)
    cutout[alpha == 0, :3] = 0
    result = Image.fromarray(cutout, mode="RGBA")

    backing = parse_color(background_color)
    if backing[3] > 0:
        flattened = Image.new("RGBA", image.size, backing[:3] + (255,))
        flattened.alpha_composite(result)
        return flattened.convert("RGB")
    return result


def replace_background(
    image: Image.Image,
    mask: Mask,
    background: BackgroundSpec,
    auxiliary: Optional[Image.Image] = None,
) -> Image.Image:
    """
    Composite the foreground cutout over a rendered background.

    ``auxiliary`` is the decoded image for image backgrounds and the image to
    blur for blur backgrounds; blur falls back to ``image`` itself.
    """
    _check_alignment(image, mask)
    if background.kind == "blur" and auxiliary is None:
        auxiliary = image

    cutout = remove_background(image, mask, background_color="transparent")
    canvas = render_background(background, image.size, auxiliary)
    canvas.alpha_composite(cutout)
    log.info("Background replaced", kind=background.kind, size=image.size)
    return canvas
