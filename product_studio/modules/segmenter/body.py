# product_studio/modules/segmenter/body.py
"""Strategy A: person-probability mask for a single dominant subject."""
from typing import Optional

import numpy as np
import structlog
import torch
from PIL import Image, ImageFilter

from product_studio.core.imaging import ColorLike
from product_studio.core.model_manager import ModelKind
from . import utils
from .base import Mask, Segmenter
from .config import settings

log = structlog.get_logger(__name__)


class BodySegmenter(Segmenter):
    kind = ModelKind.BODY

    def _person_index(self) -> int:
        if "person" in self.handle.categories:
            return self.handle.categories.index("person")
        return settings.PERSON_CLASS_INDEX

    def segment(self, image: Image.Image, threshold: float, edge_blur: Optional[float] = None) -> Mask:
        edge_blur = settings.EDGE_BLUR if edge_blur is None else edge_blur

        log.info("Body [Stage 1/3]: Inference...", input_size=self.handle.params.input_size)
        logits = utils.infer_logits(image, self.handle)
        person = torch.softmax(logits, dim=0)[self._person_index()].numpy()
        alpha = (person >= threshold).astype(np.float32)

        if settings.USE_NOISE_REMOVAL:
            log.info("Body [Stage 2/3]: Noise removal...")
            alpha = utils.remove_noise_with_components(
                alpha, settings.NOISE_REMOVAL_THRESHOLD, settings.MIN_COMPONENT_AREA
            )
        else:
            log.info("Body [Stage 2/3]: Noise removal skipped.")

        log.info("Body [Stage 3/3]: Edge feathering...", edge_blur=edge_blur)
        alpha = utils.feather_edges(alpha, edge_blur)

        return Mask(alpha, self.kind)


def render_colored_mask(
    mask: Mask,
    foreground_color: ColorLike = (255, 255, 255, 255),
    background_color: ColorLike = (0, 0, 0, 255),
    background_blur: Optional[float] = None,
    edge_blur: Optional[float] = None,
) -> Image.Image:
    """
    Pre-colored RGBA rendering of a mask. ``edge_blur`` antialiases the
    boundary before coloring; ``background_blur`` softens the rendered result.
    """
    background_blur = settings.BACKGROUND_BLUR if background_blur is None else background_blur
    edge_blur = settings.EDGE_BLUR if edge_blur is None else edge_blur

    softened = Mask(utils.feather_edges(mask.alpha, edge_blur), mask.kind)
    colored = softened.to_rgba(foreground_color, background_color)
    if background_blur > 0:
        colored = colored.filter(ImageFilter.GaussianBlur(background_blur))
    return colored
