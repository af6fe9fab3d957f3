"""
Centralized model cache for the segmentation and classification models.

Each model kind is loaded lazily on first request and then shared by every
caller. Concurrent requests for a kind that is still loading join the same
in-flight load instead of starting another one.
"""
import asyncio
import functools
import os
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import structlog
import torch
from torchvision import models

from product_studio.config import settings
from product_studio.core.backend import BackendSelector, BackendState, PerformanceProfile, Precision
from product_studio.core.errors import ModelLoadError
from product_studio.core.process_lock import weights_lock

log = structlog.get_logger(__name__)
CACHE_DIR = os.getenv("TORCH_HOME", settings.MODEL_CACHE_DIR)

ProgressCallback = Callable[[float, str], None]


class ModelKind(str, Enum):
    BODY = "body"  # A: human/body focused
    GENERAL = "general"  # B: general object
    FAST = "fast"  # C: lightweight, coarse
    CLASSIFIER = "classifier"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            alias = _KIND_ALIASES.get(value.strip().lower())
            if alias is not None:
                return cls(alias)
        return None


_KIND_ALIASES = {
    "a": "body",
    "b": "general",
    "c": "fast",
    "bodypix": "body",
    "deeplab": "general",
    "mobilenet": "fast",
}

SEGMENTATION_KINDS = (ModelKind.BODY, ModelKind.GENERAL, ModelKind.FAST)


@dataclass(frozen=True)
class LoadParams:
    architecture: str
    input_size: int
    weight_bytes: int


# Higher precision buys a larger backbone, higher internal resolution and fp32 weights.
LOAD_PARAMS: Dict[ModelKind, Dict[Precision, LoadParams]] = {
    ModelKind.BODY: {
        Precision.HIGH: LoadParams("deeplabv3_resnet101", 520, 4),
        Precision.MEDIUM: LoadParams("deeplabv3_resnet50", 384, 2),
        Precision.LOW: LoadParams("lraspp_mobilenet_v3_large", 256, 2),
    },
    ModelKind.GENERAL: {
        Precision.HIGH: LoadParams("deeplabv3_resnet50", 520, 4),
        Precision.MEDIUM: LoadParams("deeplabv3_mobilenet_v3_large", 384, 2),
        Precision.LOW: LoadParams("deeplabv3_mobilenet_v3_large", 384, 2),
    },
    ModelKind.FAST: {
        Precision.HIGH: LoadParams("mobilenet_v3_large", 224, 4),
        Precision.MEDIUM: LoadParams("mobilenet_v3_small", 224, 2),
        Precision.LOW: LoadParams("mobilenet_v3_small", 224, 2),
    },
    ModelKind.CLASSIFIER: {
        Precision.HIGH: LoadParams("mobilenet_v2", 224, 4),
        Precision.MEDIUM: LoadParams("mobilenet_v2", 224, 2),
        Precision.LOW: LoadParams("mobilenet_v2", 224, 2),
    },
}


def load_params(kind: ModelKind, precision: Precision) -> LoadParams:
    return LOAD_PARAMS[ModelKind(kind)][Precision(precision)]


@dataclass(frozen=True)
class ModelHandle:
    """A loaded model. Stays valid after the cache entry is evicted."""

    kind: ModelKind
    model: Any
    device: torch.device
    dtype: torch.dtype
    params: LoadParams
    profile: PerformanceProfile
    categories: Tuple[str, ...] = ()


ModelLoader = Callable[[ModelKind, LoadParams, BackendState], Tuple[Any, Tuple[str, ...]]]


def load_torchvision_model(kind: ModelKind, params: LoadParams, state: BackendState) -> Tuple[Any, Tuple[str, ...]]:
    """Build a pretrained torchvision model, downloading weights if needed."""
    torch.hub.set_dir(CACHE_DIR)
    with weights_lock:
        weights = models.get_model_weights(params.architecture).DEFAULT
        model = models.get_model(params.architecture, weights=weights)
    model.eval()
    model.to(state.device)
    if params.weight_bytes == 2 and state.device.type != "cpu":
        model.half()
    categories = tuple(weights.meta.get("categories", ()))
    return model, categories


def _report(progress: Optional[ProgressCallback], fraction: float, message: str) -> None:
    if progress is not None:
        progress(fraction, message)


class ModelManager:
    """Lazily loads and memoizes one model per kind."""

    def __init__(
        self,
        backend: Optional[BackendSelector] = None,
        loaders: Optional[Mapping[ModelKind, ModelLoader]] = None,
    ):
        self.backend = backend or BackendSelector()
        self._loaders: Dict[ModelKind, ModelLoader] = {ModelKind(k): v for k, v in (loaders or {}).items()}
        self._handles: Dict[ModelKind, ModelHandle] = {}
        self._inflight: Dict[ModelKind, "asyncio.Future[ModelHandle]"] = {}
        self._generation = 0
        self.load_counts: Counter = Counter()
        log.info("ModelManager created")

    @property
    def is_initialized(self) -> bool:
        return self.backend.state is not None

    def initialize(self, profile: Optional[PerformanceProfile] = None) -> BackendState:
        """Configure the compute backend up front so the first request does not pay for it."""
        state = self.backend.configure(profile)
        log.info("ModelManager initialized", backend=state.backend.value, device=str(state.device))
        return state

    def loaded_kinds(self) -> List[ModelKind]:
        return list(self._handles)

    async def get_model(
        self,
        kind,
        profile: Optional[PerformanceProfile] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ModelHandle:
        kind = ModelKind(kind)
        handle = self._handles.get(kind)
        if handle is not None:
            _report(progress, 1.0, f"{kind.value} model ready")
            return handle

        task = self._inflight.get(kind)
        joined = task is not None
        if task is None:
            task = asyncio.ensure_future(
                self._load(kind, profile or PerformanceProfile(), progress, self._generation)
            )
            self._inflight[kind] = task
            task.add_done_callback(functools.partial(self._forget, kind))
        else:
            log.debug("Joining in-flight model load", kind=kind.value)
            _report(progress, 0.1, f"Waiting for {kind.value} model...")

        handle = await asyncio.shield(task)
        if joined:
            _report(progress, 1.0, f"{kind.value} model ready")
        return handle

    async def _load(
        self,
        kind: ModelKind,
        profile: PerformanceProfile,
        progress: Optional[ProgressCallback],
        generation: int,
    ) -> ModelHandle:
        _report(progress, 0.1, f"Loading {kind.value} model...")
        params = load_params(kind, profile.precision)
        state = self.backend.configure(profile)

        _report(progress, 0.3, f"Initializing {kind.value} model...")
        loader = self._loaders.get(kind, load_torchvision_model)
        self.load_counts[kind] += 1
        log.info(
            "Loading model",
            kind=kind.value,
            architecture=params.architecture,
            input_size=params.input_size,
            device=str(state.device),
        )
        try:
            model, categories = await asyncio.to_thread(loader, kind, params, state)
        except Exception as e:
            log.exception("Model load failed", kind=kind.value)
            raise ModelLoadError(kind.value, str(e)) from e

        half = params.weight_bytes == 2 and state.device.type != "cpu"
        handle = ModelHandle(
            kind=kind,
            model=model,
            device=state.device,
            dtype=torch.float16 if half else torch.float32,
            params=params,
            profile=profile,
            categories=tuple(categories),
        )
        # A clear_cache() issued while loading wins over this result.
        if generation == self._generation:
            self._handles[kind] = handle
        _report(progress, 1.0, f"{kind.value} model loaded")
        log.info("Model loaded", kind=kind.value)
        return handle

    def _forget(self, kind: ModelKind, task: "asyncio.Future[ModelHandle]") -> None:
        if self._inflight.get(kind) is task:
            del self._inflight[kind]
        if not task.cancelled():
            task.exception()  # mark retrieved; waiters get it through shield

    def clear_cache(self) -> None:
        """Evict every handle; handles already held by callers remain usable."""
        self._handles.clear()
        self._inflight.clear()
        self._generation += 1
        log.info("Model cache cleared")

    async def cleanup(self):
        log.info("Cleaning up ModelManager...")
        self.clear_cache()
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
        log.info("ModelManager cleanup complete")
