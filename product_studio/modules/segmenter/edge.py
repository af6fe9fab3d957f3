# product_studio/modules/segmenter/edge.py
"""
Strategy C: crude edge-color heuristic.

The fast model kind has no segmentation head, so a mask is synthesized
from color alone: the border pixels are averaged into a reference color and
every pixel whose mean absolute channel distance from it reaches
``threshold * 255`` is foreground. This assumes a roughly uniform background
that touches the image edges; anything else will be misclassified.
"""
import numpy as np
import structlog
from PIL import Image

from product_studio.core.model_manager import ModelKind
from .base import Mask, Segmenter
from .config import settings

log = structlog.get_logger(__name__)


def border_mask(height: int, width: int, border: int) -> np.ndarray:
    mask = np.zeros((height, width), dtype=bool)
    border = max(1, border)
    mask[:border, :] = True
    mask[-border:, :] = True
    mask[:, :border] = True
    mask[:, -border:] = True
    return mask


class EdgeSegmenter(Segmenter):
    kind = ModelKind.FAST

    def segment(self, image: Image.Image, threshold: float) -> Mask:
        rgb = np.asarray(image.convert("RGB"), dtype=np.float32)
        height, width = rgb.shape[:2]

        reference = rgb[border_mask(height, width, settings.BORDER_WIDTH)].mean(axis=0)
        distance = np.abs(rgb - reference).mean(axis=2)
        foreground = distance >= threshold * 255

        log.info(
            "Edge heuristic complete",
            reference=[round(float(c), 1) for c in reference],
            foreground_ratio=round(float(foreground.mean()), 4),
        )
        return Mask.from_binary(foreground, self.kind)
