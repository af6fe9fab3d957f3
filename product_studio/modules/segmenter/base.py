# product_studio/modules/segmenter/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from PIL import Image

from product_studio.core.imaging import ColorLike, parse_color
from product_studio.core.model_manager import ModelHandle, ModelKind


@dataclass(frozen=True, eq=False)
class Mask:
    """
    Per-pixel foreground weight aligned with the source image.

    ``alpha`` is a float32 (height, width) array in [0, 1]. Binary strategies
    produce only 0 and 1; the body strategy may carry feathered edges.
    """

    alpha: np.ndarray
    kind: ModelKind

    def __post_init__(self):
        alpha = np.asarray(self.alpha, dtype=np.float32)
        if alpha.ndim != 2:
            raise ValueError(f"Mask must be 2-D, got shape {alpha.shape}")
        object.__setattr__(self, "alpha", np.clip(alpha, 0.0, 1.0))

    @classmethod
    def from_binary(cls, array, kind: ModelKind = ModelKind.FAST) -> "Mask":
        return cls(np.asarray(array).astype(bool).astype(np.float32), ModelKind(kind))

    @property
    def width(self) -> int:
        return self.alpha.shape[1]

    @property
    def height(self) -> int:
        return self.alpha.shape[0]

    @property
    def size(self):
        return self.width, self.height

    def foreground(self) -> np.ndarray:
        return self.alpha >= 0.5

    def crop(self, box) -> "Mask":
        """Sub-mask for a (left, top, right, bottom) box, right/bottom exclusive."""
        left, top, right, bottom = box
        return Mask(self.alpha[top:bottom, left:right], self.kind)

    def to_rgba(self, foreground_color: ColorLike = (255, 255, 255, 255),
                background_color: ColorLike = (0, 0, 0, 255)) -> Image.Image:
        """Render the mask with each pixel interpolated between the two colors."""
        fg = np.array(parse_color(foreground_color), dtype=np.float32)
        bg = np.array(parse_color(background_color), dtype=np.float32)
        weight = self.alpha[..., None]
        rgba = weight * fg + (1.0 - weight) * bg
        return Image.fromarray(np.rint(rgba).astype(np.uint8), mode="RGBA")


class Segmenter(ABC):
    """One segmentation strategy bound to a loaded model handle."""

    kind: ModelKind

    def __init__(self, handle: ModelHandle):
        if handle.kind is not self.kind:
            raise ValueError(f"{type(self).__name__} needs a {self.kind.value} model, got {handle.kind.value}")
        self.handle = handle

    @abstractmethod
    def segment(self, image: Image.Image, threshold: float) -> Mask:
        ...
