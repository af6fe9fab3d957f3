# product_studio/modules/segmenter/process.py
"""Uniform entry point over the three segmentation strategies."""
import asyncio
from typing import Dict, Optional, Type

import structlog
from PIL import Image

from product_studio.core.backend import PerformanceProfile
from product_studio.core.model_manager import ModelHandle, ModelKind, ModelManager, ProgressCallback
from .base import Mask, Segmenter
from .body import BodySegmenter
from .edge import EdgeSegmenter
from .general import GeneralSegmenter

log = structlog.get_logger(__name__)

SEGMENTERS: Dict[ModelKind, Type[Segmenter]] = {
    ModelKind.BODY: BodySegmenter,
    ModelKind.GENERAL: GeneralSegmenter,
    ModelKind.FAST: EdgeSegmenter,
}


def segmentation_kind(model_kind) -> ModelKind:
    try:
        kind = ModelKind(model_kind)
    except ValueError:
        kind = None
    if kind not in SEGMENTERS:
        raise ValueError(f"Unknown segmentation model kind: {model_kind!r}")
    return kind


def validate_threshold(threshold: float) -> float:
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [0, 1], got {threshold}")
    return float(threshold)


def run(image: Image.Image, handle: ModelHandle, threshold: float) -> Mask:
    """Segment with an already loaded model. Blocking."""
    threshold = validate_threshold(threshold)
    segmenter = SEGMENTERS[handle.kind](handle)
    mask = segmenter.segment(image, threshold)
    log.info("Segmentation complete", kind=handle.kind.value, size=mask.size, threshold=threshold)
    return mask


async def segment(
    image: Image.Image,
    model_kind,
    threshold: float,
    model_manager: ModelManager,
    profile: Optional[PerformanceProfile] = None,
    progress: Optional[ProgressCallback] = None,
) -> Mask:
    kind = segmentation_kind(model_kind)
    validate_threshold(threshold)
    handle = await model_manager.get_model(kind, profile, progress)
    try:
        return await asyncio.to_thread(run, image, handle, threshold)
    finally:
        model_manager.backend.release()
