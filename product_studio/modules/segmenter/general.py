# product_studio/modules/segmenter/general.py
"""Strategy B: per-pixel label map; everything that is not label 0 is foreground."""
import numpy as np
import structlog
from PIL import Image

from product_studio.core.model_manager import ModelKind
from . import utils
from .base import Mask, Segmenter

log = structlog.get_logger(__name__)

BACKGROUND_LABEL = 0


class GeneralSegmenter(Segmenter):
    kind = ModelKind.GENERAL

    def segment(self, image: Image.Image, threshold: float) -> Mask:
        # The label map is discrete; threshold has no effect here.
        logits = utils.infer_logits(image, self.handle)
        labels = logits.argmax(dim=0).numpy()
        found = np.unique(labels)
        log.info("General segmentation complete", labels=[int(label) for label in found])
        return Mask.from_binary(labels != BACKGROUND_LABEL, self.kind)
