"""
Image source decoding shared by every stage.

Sources arrive as PIL images, raw bytes, filesystem paths or data URLs.
Remote http(s) URLs are fetched by the downloader before they get here.
"""
import base64
import binascii
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Sequence, Tuple, Union
from urllib.parse import unquote_to_bytes

import structlog
from PIL import Image, ImageColor

from product_studio.config import settings
from product_studio.core.errors import ImageDecodeError

log = structlog.get_logger(__name__)

ImageSource = Union[Image.Image, bytes, str, Path]
ColorLike = Union[str, Sequence[int]]


class ImageRole(str, Enum):
    SOURCE = "source"
    BACKGROUND = "background"
    ORIGINAL = "original"


def is_remote(source) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def is_path(source) -> bool:
    if isinstance(source, Path):
        return True
    return isinstance(source, str) and not source.startswith("data:") and not is_remote(source)


def decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not header.startswith("data:") or not sep:
        raise ValueError("malformed data URL")
    if header.endswith(";base64"):
        return base64.b64decode(payload, validate=True)
    return unquote_to_bytes(payload)


def _describe(source) -> str:
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    if isinstance(source, str) and source.startswith("data:"):
        return source[:32] + "..."
    return str(source)


def open_image(source: ImageSource, role: ImageRole = ImageRole.SOURCE) -> Image.Image:
    """
    Decode a source into a fully loaded PIL image.

    Raises:
        ImageDecodeError: naming the role the image plays when it cannot be decoded.
    """
    role = ImageRole(role)
    if isinstance(source, Image.Image):
        return source
    if is_remote(source):
        raise ImageDecodeError(role.value, "remote images must be downloaded first", _describe(source))

    try:
        if isinstance(source, (bytes, bytearray)):
            stream = BytesIO(source)
        elif isinstance(source, str) and source.startswith("data:"):
            stream = BytesIO(decode_data_url(source))
        else:
            stream = Path(source)
        image = Image.open(stream)
        image.load()
    except (OSError, ValueError, binascii.Error) as e:
        log.warning("Image decode failed", role=role.value, error=str(e))
        raise ImageDecodeError(role.value, str(e), _describe(source)) from e

    if max(image.size) > settings.MAX_IMAGE_SIZE:
        log.info("Downscaling oversized image", role=role.value, size=image.size, limit=settings.MAX_IMAGE_SIZE)
        image.thumbnail((settings.MAX_IMAGE_SIZE, settings.MAX_IMAGE_SIZE), Image.Resampling.LANCZOS)
    return image


def to_data_url(image: Image.Image, format: str = "PNG") -> str:
    buffer = BytesIO()
    image.save(buffer, format=format)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/{format.lower()};base64,{encoded}"


RGBA = Tuple[int, int, int, int]


def parse_color(color: ColorLike) -> RGBA:
    """
    Resolve a CSS-style color ("#RRGGBB", "#RRGGBBAA", "rgb(...)", names,
    "transparent") or an RGB/RGBA tuple into an 8-bit RGBA tuple.
    """
    if isinstance(color, str):
        if color.strip().lower() == "transparent":
            return (0, 0, 0, 0)
        try:
            rgb = ImageColor.getrgb(color)
        except ValueError as e:
            raise ValueError(f"Invalid color: {color!r}") from e
    else:
        rgb = tuple(int(c) for c in color)
    if len(rgb) == 3:
        rgb = (*rgb, 255)
    if len(rgb) != 4 or any(c < 0 or c > 255 for c in rgb):
        raise ValueError(f"Invalid color: {color!r}")
    return rgb
