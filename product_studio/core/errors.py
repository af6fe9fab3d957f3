# product_studio/core/errors.py
"""
Error taxonomy shared by the segmentation, compositing and detection paths.

Fatal conditions are exceptions; the two non-fatal conditions are warning
categories that are logged and issued through :mod:`warnings`.
"""
from typing import Optional


class StudioError(Exception):
    """Base class for all product studio failures."""


class ModelLoadError(StudioError):
    """A segmentation or classification model failed to download or initialize."""

    def __init__(self, kind: str, reason: str):
        self.kind = kind
        self.reason = reason
        super().__init__(f"Failed to load {kind} model: {reason}")


class ImageDecodeError(StudioError):
    """An image could not be turned into a drawable bitmap."""

    def __init__(self, role: str, reason: str, source: Optional[str] = None):
        self.role = role
        self.reason = reason
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(f"Failed to load {role} image{where}: {reason}")


class BatchItemFailure(StudioError):
    """One element of a batch call failed; the batch itself carries on."""

    def __init__(self, index: int, cause: BaseException):
        self.index = index
        self.cause = cause
        super().__init__(f"Batch item {index} failed: {cause}")


class UnsupportedBackendWarning(UserWarning):
    """Requested compute backend is unavailable; a portable one is used instead."""


class DegenerateMaskWarning(UserWarning):
    """A mask contained no foreground pixels."""


class PipelineStageError(StudioError):
    """An unexpected failure inside a named pipeline stage."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")
