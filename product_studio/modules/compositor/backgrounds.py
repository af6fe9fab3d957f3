# product_studio/modules/compositor/backgrounds.py
"""
Background layers for replacement compositing.

Each BackgroundSpec variant carries only its own fields and renders onto an
RGBA canvas of the target size. All color math is 8-bit RGBA, interpolated
linearly with no gamma handling.
"""
from dataclasses import dataclass, field, fields as dataclass_fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageFilter

from product_studio.core.imaging import ImageSource, parse_color
from .config import settings

Size = Tuple[int, int]

GRADIENT_DIRECTIONS = ("to bottom", "to right", "to bottom right", "to bottom left")


def _check_fraction(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be within [0, 1], got {value}")


@dataclass(frozen=True)
class ColorBackground:
    color: str = settings.BACKGROUND_COLOR
    kind: str = field(default="color", init=False)

    def __post_init__(self):
        parse_color(self.color)


@dataclass(frozen=True)
class GradientBackground:
    colors: Tuple[str, ...] = settings.GRADIENT_COLORS
    direction: str = settings.GRADIENT_DIRECTION
    kind: str = field(default="gradient", init=False)

    def __post_init__(self):
        object.__setattr__(self, "colors", tuple(self.colors))
        if not self.colors:
            raise ValueError("A gradient needs at least one color stop")
        if self.direction not in GRADIENT_DIRECTIONS:
            raise ValueError(f"Unsupported gradient direction: {self.direction!r}")
        for color in self.colors:
            parse_color(color)


@dataclass(frozen=True)
class ImageBackground:
    source: ImageSource
    scale: float = settings.IMAGE_SCALE
    anchor: Tuple[float, float] = settings.IMAGE_ANCHOR
    opacity: float = 1.0
    kind: str = field(default="image", init=False)

    def __post_init__(self):
        object.__setattr__(self, "anchor", tuple(self.anchor))
        if len(self.anchor) != 2:
            raise ValueError(f"anchor must be an (x, y) pair, got {self.anchor!r}")
        if self.scale <= 0:
            raise ValueError(f"scale must be positive, got {self.scale}")
        _check_fraction("anchor x", self.anchor[0])
        _check_fraction("anchor y", self.anchor[1])
        _check_fraction("opacity", self.opacity)


@dataclass(frozen=True)
class BlurBackground:
    # None blurs the image being composited
    source: Optional[ImageSource] = None
    radius: float = settings.BLUR_RADIUS
    opacity: float = settings.BLUR_OPACITY
    kind: str = field(default="blur", init=False)

    def __post_init__(self):
        if self.radius < 0:
            raise ValueError(f"radius must not be negative, got {self.radius}")
        _check_fraction("opacity", self.opacity)


BackgroundSpec = Union[ColorBackground, GradientBackground, ImageBackground, BlurBackground]

BACKGROUND_TYPES = {
    "color": ColorBackground,
    "gradient": GradientBackground,
    "image": ImageBackground,
    "blur": BlurBackground,
}


def background_from_dict(data: Mapping[str, Any]) -> BackgroundSpec:
    """Build a spec from its tagged dictionary form; missing fields take defaults."""
    fields = dict(data)
    kind = fields.pop("kind", "color")
    spec_type = BACKGROUND_TYPES.get(kind)
    if spec_type is None:
        raise ValueError(f"Unknown background kind: {kind!r}")
    try:
        return spec_type(**fields)
    except TypeError as e:
        raise ValueError(f"Invalid {kind} background: {e}") from e


def background_to_dict(spec: BackgroundSpec) -> Dict[str, Any]:
    data = {f.name: getattr(spec, f.name) for f in dataclass_fields(spec)}
    # Decoded images and raw bytes have no JSON form
    if "source" in data and not isinstance(data["source"], (str, type(None))):
        data["source"] = None
    return data


def gradient_positions(size: Size, direction: str) -> np.ndarray:
    """Per-pixel position along the gradient axis, 0 at the start edge and 1 at the end."""
    width, height = size
    xs = np.linspace(0.0, 1.0, width)[None, :]
    ys = np.linspace(0.0, 1.0, height)[:, None]
    if direction == "to bottom":
        t = np.broadcast_to(ys, (height, width))
    elif direction == "to right":
        t = np.broadcast_to(xs, (height, width))
    elif direction == "to bottom right":
        t = (xs + ys) / 2.0
    else:  # to bottom left
        t = ((1.0 - xs) + ys) / 2.0
    return t


def render_color(spec: ColorBackground, size: Size, _auxiliary=None) -> Image.Image:
    return Image.new("RGBA", size, parse_color(spec.color))


def render_gradient(spec: GradientBackground, size: Size, _auxiliary=None) -> Image.Image:
    stops = np.array([parse_color(c) for c in spec.colors], dtype=np.float64)
    if len(stops) == 1:
        return Image.new("RGBA", size, tuple(int(c) for c in stops[0]))

    offsets = np.linspace(0.0, 1.0, len(stops))
    t = gradient_positions(size, spec.direction)
    channels = [np.interp(t, offsets, stops[:, c]) for c in range(4)]
    rgba = np.rint(np.stack(channels, axis=-1)).astype(np.uint8)
    return Image.fromarray(rgba, mode="RGBA")


def render_image(spec: ImageBackground, size: Size, background: Image.Image) -> Image.Image:
    """Cover-fit the background, anchored at ``spec.anchor``."""
    canvas_w, canvas_h = size
    layer = background.convert("RGBA")
    src_w, src_h = layer.size

    # Never scale below what is needed to cover the canvas
    factor = max(canvas_w / src_w, canvas_h / src_h) * max(spec.scale, 1.0)
    new_w = max(canvas_w, round(src_w * factor))
    new_h = max(canvas_h, round(src_h * factor))
    layer = layer.resize((new_w, new_h), Image.Resampling.LANCZOS)

    left = round((new_w - canvas_w) * spec.anchor[0])
    top = round((new_h - canvas_h) * spec.anchor[1])
    layer = layer.crop((left, top, left + canvas_w, top + canvas_h))

    if spec.opacity < 1.0:
        pixels = np.array(layer)
        pixels[..., 3] = np.rint(pixels[..., 3] * spec.opacity).astype(np.uint8)
        layer = Image.fromarray(pixels, mode="RGBA")
    return layer


def render_blur(spec: BlurBackground, size: Size, original: Image.Image) -> Image.Image:
    sharp = original.convert("RGBA")
    if sharp.size != size:
        sharp = sharp.resize(size, Image.Resampling.LANCZOS)
    # Blurring premultiplied pixels keeps transparent areas from bleeding dark
    # fringes, and the alpha channel is applied exactly once.
    blurred = sharp.convert("RGBa").filter(ImageFilter.GaussianBlur(spec.radius)).convert("RGBA")
    return Image.blend(sharp, blurred, spec.opacity)


RENDERERS: Dict[str, Callable[..., Image.Image]] = {
    "color": render_color,
    "gradient": render_gradient,
    "image": render_image,
    "blur": render_blur,
}


def render_background(spec: BackgroundSpec, size: Size, auxiliary: Optional[Image.Image] = None) -> Image.Image:
    """
    Render ``spec`` at ``size``. ``auxiliary`` is the decoded background image
    for image specs and the image to blur for blur specs.
    """
    if spec.kind in ("image", "blur") and auxiliary is None:
        raise ValueError(f"A {spec.kind} background needs a decoded image")
    return RENDERERS[spec.kind](spec, size, auxiliary)


def background_presets() -> List[Dict[str, Any]]:
    """Ready-made backgrounds offered to users."""
    return [
        {"id": "white", "name": "Studio White", "background": ColorBackground("#FFFFFF")},
        {
            "id": "gradient-blue",
            "name": "Blue Gradient",
            "background": GradientBackground(("#4158D0", "#C850C0"), "to bottom right"),
        },
        {
            "id": "outdoor",
            "name": "Outdoor Scene",
            "background": ImageBackground(
                settings.OUTDOOR_BACKGROUND_SOURCE, scale=settings.OUTDOOR_BACKGROUND_SCALE
            ),
        },
        {"id": "blur", "name": "Blurred Original", "background": BlurBackground(radius=settings.PRESET_BLUR_RADIUS)},
    ]
