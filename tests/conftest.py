"""Pytest configuration and fixtures."""
import os

# Settings are read at import time; keep tests on the portable backend.
os.environ.setdefault("BACKEND", "wasm")
os.environ.setdefault("DEBUG_SAVE_IMAGES", "false")

import io

import numpy as np
import pytest
import torch
from PIL import Image

from product_studio.core.backend import Backend, BackendSelector, PerformanceProfile, Precision
from product_studio.core.model_manager import ModelHandle, ModelKind, ModelManager, load_params

CLASSIFIER_LABELS = ("jersey", "sweatshirt", "laptop", "tabby")
CLASSIFIER_PROBABILITIES = (0.5, 0.3, 0.15, 0.05)


class FakeSegmentationNet(torch.nn.Module):
    """Emits VOC-style logits with a 'person' blob over the middle half of the frame."""

    def __init__(self, grid: int = 8, num_classes: int = 21, person: int = 15):
        super().__init__()
        self.grid = grid
        self.num_classes = num_classes
        self.person = person

    def forward(self, x):
        logits = torch.zeros(x.shape[0], self.num_classes, self.grid, self.grid)
        lo, hi = self.grid // 4, self.grid - self.grid // 4
        logits[:, 0] = 8.0
        logits[:, 0, lo:hi, lo:hi] = 0.0
        logits[:, self.person, lo:hi, lo:hi] = 8.0
        return {"out": logits}


class FakeClassifierNet(torch.nn.Module):
    """Returns the same class distribution for every input."""

    def __init__(self, probabilities=CLASSIFIER_PROBABILITIES):
        super().__init__()
        self.register_buffer("logits", torch.log(torch.tensor(probabilities, dtype=torch.float32)))

    def forward(self, x):
        return self.logits.unsqueeze(0).expand(x.shape[0], -1)


def static_loader(model, categories=()):
    def load(kind, params, state):
        return model, tuple(categories)
    return load


def failing_loader(message="network unreachable"):
    def load(kind, params, state):
        raise RuntimeError(message)
    return load


def fake_loaders():
    segmentation = FakeSegmentationNet()
    return {
        ModelKind.BODY: static_loader(segmentation),
        ModelKind.GENERAL: static_loader(segmentation),
        ModelKind.FAST: static_loader(None),
        ModelKind.CLASSIFIER: static_loader(FakeClassifierNet(), CLASSIFIER_LABELS),
    }


def make_handle(kind, model=None, categories=()):
    kind = ModelKind(kind)
    return ModelHandle(
        kind=kind,
        model=model,
        device=torch.device("cpu"),
        dtype=torch.float32,
        params=load_params(kind, Precision.MEDIUM),
        profile=PerformanceProfile(backend=Backend.WASM),
        categories=tuple(categories),
    )


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def backend():
    """Backend selector on a machine with only the portable backend."""
    return BackendSelector(availability=lambda b: b is Backend.WASM)


@pytest.fixture
def model_manager(backend):
    return ModelManager(backend, loaders=fake_loaders())


@pytest.fixture
def product_image():
    """64x64 white canvas with a red 32x32 square in the middle."""
    pixels = np.full((64, 64, 3), 255, dtype=np.uint8)
    pixels[16:48, 16:48] = (255, 0, 0)
    return Image.fromarray(pixels, mode="RGB")


@pytest.fixture
def square_mask_array():
    """Binary mask matching the red square of product_image."""
    array = np.zeros((64, 64), dtype=bool)
    array[16:48, 16:48] = True
    return array
