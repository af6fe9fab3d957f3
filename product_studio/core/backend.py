"""
Runtime backend selection for model inference.

A PerformanceProfile is resolved to a torch device, a matmul precision mode
and a buffer retention policy. Requests for an accelerator that is not
present degrade to the portable CPU backend with a warning.
"""
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import structlog
import torch
from pydantic import BaseModel, ConfigDict

from product_studio.config import settings
from product_studio.core.errors import UnsupportedBackendWarning

log = structlog.get_logger(__name__)


class Backend(str, Enum):
    GPU = "gpu"
    WASM = "wasm"
    EXPERIMENTAL_GPU2 = "experimental-gpu2"


class Precision(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MemoryPolicy(str, Enum):
    AGGRESSIVE = "aggressive"
    BALANCED = "balanced"
    THROUGHPUT = "throughput"


# Portable backend used whenever the requested one is missing.
FALLBACK_BACKEND = Backend.WASM

BACKEND_DEVICES = {
    Backend.GPU: "cuda",
    Backend.WASM: "cpu",
    Backend.EXPERIMENTAL_GPU2: "mps",
}

WARMUP_SHAPE = (1, 3, 224, 224)


class PerformanceProfile(BaseModel):
    """Quality/speed trade-off used for model loads and inference."""

    model_config = ConfigDict(frozen=True)

    backend: Backend = Backend(settings.BACKEND)
    precision: Precision = Precision(settings.PRECISION)
    memory_policy: MemoryPolicy = MemoryPolicy(settings.MEMORY_POLICY)


def retention_threshold_mb(policy: MemoryPolicy) -> int:
    """Accelerator memory (MB) kept cached before buffers are released."""
    if policy is MemoryPolicy.AGGRESSIVE:
        return 0
    if policy is MemoryPolicy.THROUGHPUT:
        return settings.THROUGHPUT_RETENTION_MB
    return settings.BALANCED_RETENTION_MB


def backend_available(backend: Backend) -> bool:
    if backend is Backend.GPU:
        return torch.cuda.is_available()
    if backend is Backend.EXPERIMENTAL_GPU2:
        mps = getattr(torch.backends, "mps", None)
        return bool(mps and mps.is_available())
    return True


@dataclass(frozen=True)
class BackendState:
    backend: Backend
    device: torch.device
    reduced_precision: bool
    retention_mb: int
    requested: Backend

    @property
    def fell_back(self) -> bool:
        return self.backend is not self.requested


class BackendSelector:
    """Configures the numeric backend once per device and tracks its policy."""

    def __init__(self, availability: Optional[Callable[[Backend], bool]] = None):
        self._availability = availability or backend_available
        self._registered: set = set()
        self.registrations = 0
        self.state: Optional[BackendState] = None

    def configure(self, profile: Optional[PerformanceProfile] = None) -> BackendState:
        profile = profile or PerformanceProfile()
        requested = profile.backend
        backend = requested

        if not self._availability(requested):
            message = (
                f"Backend '{requested.value}' is not available; "
                f"falling back to '{FALLBACK_BACKEND.value}'"
            )
            log.warning("Unsupported backend requested", requested=requested.value, fallback=FALLBACK_BACKEND.value)
            warnings.warn(message, UnsupportedBackendWarning, stacklevel=2)
            backend = FALLBACK_BACKEND

        device = torch.device(BACKEND_DEVICES[backend])
        reduced_precision = profile.precision is Precision.LOW
        torch.set_float32_matmul_precision("medium" if reduced_precision else "highest")

        if device.type not in self._registered:
            self._registered.add(device.type)
            self.registrations += 1
            log.info("Registered compute backend", backend=backend.value, device=str(device))
            self._warm_up(device)

        self.state = BackendState(
            backend=backend,
            device=device,
            reduced_precision=reduced_precision,
            retention_mb=retention_threshold_mb(profile.memory_policy),
            requested=requested,
        )
        return self.state

    def release(self) -> None:
        """Drop cached accelerator buffers once usage exceeds the retention threshold."""
        if self.state is None or self.state.device.type != "cuda":
            return
        allocated_mb = torch.cuda.memory_reserved(self.state.device) / 1024**2
        if allocated_mb > self.state.retention_mb or self.state.retention_mb == 0:
            torch.cuda.empty_cache()
            log.debug("Released cached GPU buffers", reserved_mb=f"{allocated_mb:.1f}")

    @staticmethod
    def _warm_up(device: torch.device) -> None:
        # Forces lazy backend initialisation before the first real inference.
        with torch.no_grad():
            warmup = torch.zeros(WARMUP_SHAPE, device=device)
            del warmup
