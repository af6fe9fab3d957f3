"""Shared helpers for the model-backed segmentation strategies."""
from typing import Mapping

import cv2
import numpy as np
import torch
import torch.nn.functional as F
from PIL import Image
from scipy.ndimage import gaussian_filter
from torchvision import transforms

from product_studio.core.model_manager import ModelHandle
from .config import settings


def infer_logits(image: Image.Image, handle: ModelHandle) -> torch.Tensor:
    """
    Run a dense prediction network and return per-class logits (C, H, W)
    resized back to the source image's pixel grid.
    """
    rgb = image.convert("RGB")
    size = handle.params.input_size
    preprocess = transforms.Compose([
        transforms.Resize((size, size)),
        transforms.ToTensor(),
        transforms.Normalize(settings.NORMALIZE_MEAN, settings.NORMALIZE_STD),
    ])
    input_tensor = preprocess(rgb).unsqueeze(0).to(handle.device, dtype=handle.dtype)

    with torch.no_grad():
        output = handle.model(input_tensor)
    logits = output["out"] if isinstance(output, Mapping) else output

    logits = F.interpolate(logits.float(), size=(rgb.height, rgb.width), mode="bilinear", align_corners=False)
    return logits[0].cpu()


def remove_noise_with_components(alpha_matte: np.ndarray, threshold: float, min_area: int) -> np.ndarray:
    """Deletes small, disconnected foreground blobs."""
    binary_mask = (alpha_matte > threshold).astype(np.uint8)
    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(binary_mask, connectivity=8)

    clean_mask = np.zeros_like(binary_mask)
    # Label 0 is the background
    for i in range(1, num_labels):
        if stats[i, cv2.CC_STAT_AREA] >= min_area:
            clean_mask[labels == i] = 1

    return alpha_matte * clean_mask


def feather_edges(alpha_matte: np.ndarray, radius: float) -> np.ndarray:
    """Gaussian blur of the mask boundary."""
    if radius <= 0:
        return alpha_matte
    return gaussian_filter(alpha_matte, sigma=radius / 3.0)
