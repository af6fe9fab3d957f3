"""
Intermediate artefacts for a pipeline request.

With ``DEBUG_SAVE_IMAGES`` on, every stage of ``process`` drops a PNG under
``OUTPUT_DIR/debug/<request_id>/`` named ``<image_key>_<step_name>.png``.
Writes are best effort: a failure is logged and the request carries on.
"""
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np
import structlog
from PIL import Image

from product_studio.config import settings

log = structlog.get_logger(__name__)

Artefact = Union[Image.Image, np.ndarray]


def _artefact_path(request_id, image_key: str, step_name: str) -> Path:
    debug_dir = Path(settings.OUTPUT_DIR) / "debug" / str(request_id)
    debug_dir.mkdir(parents=True, exist_ok=True)
    return debug_dir / f"{image_key}_{step_name}.png"


def _alpha_to_uint8(alpha: np.ndarray) -> np.ndarray:
    if alpha.dtype == np.uint8:
        return alpha
    return (np.clip(alpha, 0.0, 1.0) * 255).astype(np.uint8)


def _as_pil(artefact: Artefact) -> Image.Image:
    if isinstance(artefact, Image.Image):
        return artefact
    if isinstance(artefact, np.ndarray) and artefact.ndim == 2:
        return Image.fromarray(_alpha_to_uint8(artefact))
    raise TypeError(f"cannot save {type(artefact).__name__} as a debug artefact")


def save_debug_image(request_id, image_key: str, step_name: str, image_data: Artefact):
    """Save a stage image, or a 0-1 mask alpha as greyscale."""
    if not settings.DEBUG_SAVE_IMAGES:
        return

    try:
        path = _artefact_path(request_id, image_key, step_name)
        _as_pil(image_data).save(path, "PNG")
        log.debug("Saved debug artefact", request_id=request_id, path=str(path))
    except Exception as e:
        log.warning("Failed to save debug image", step=step_name, error=str(e))


def save_debug_heatmap(
    request_id,
    image_key: str,
    step_name: str,
    alpha: np.ndarray,
    overlay_on: Optional[Image.Image] = None,
    opacity: float = 0.5,
):
    """
    Save a JET colour map of a mask alpha as ``<step_name>_heatmap``.

    When ``overlay_on`` is given the map is blended over that image, which
    makes a misplaced mask easy to spot against the product.
    """
    if not settings.DEBUG_SAVE_IMAGES:
        return

    try:
        heatmap = cv2.applyColorMap(_alpha_to_uint8(alpha), cv2.COLORMAP_JET)
        heatmap = cv2.cvtColor(heatmap, cv2.COLOR_BGR2RGB)
        if overlay_on is not None:
            base = np.asarray(overlay_on.convert("RGB").resize((heatmap.shape[1], heatmap.shape[0])))
            heatmap = cv2.addWeighted(heatmap, opacity, base, 1.0 - opacity, 0)
        save_debug_image(request_id, image_key, f"{step_name}_heatmap", Image.fromarray(heatmap))
    except Exception as e:
        log.warning("Failed to save debug heatmap", step=step_name, error=str(e))
