"""Foreground segmentation strategies."""
from . import process
from .base import Mask, Segmenter
from .body import BodySegmenter, render_colored_mask
from .config import settings
from .edge import EdgeSegmenter
from .general import GeneralSegmenter
from .process import SEGMENTERS, run, segment

__all__ = [
    "process",
    "settings",
    "Mask",
    "Segmenter",
    "BodySegmenter",
    "GeneralSegmenter",
    "EdgeSegmenter",
    "SEGMENTERS",
    "render_colored_mask",
    "run",
    "segment",
]
