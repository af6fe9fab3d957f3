# product_studio/models/request.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from product_studio.config import settings
from product_studio.core.backend import Backend, MemoryPolicy, Precision


class SegmentationParams(BaseModel):
    """Source image plus segmentation settings shared by the image endpoints."""

    image: str = Field(..., description="http(s) URL or data URL of the source image")
    model_kind: str = Field(settings.DEFAULT_MODEL_KIND, description="body | general | fast (or A | B | C)")
    threshold: float = Field(settings.SEGMENTATION_THRESHOLD, ge=0.0, le=1.0)


class SegmentRequest(SegmentationParams):
    foreground_color: str = "#FFFFFF"
    background_color: str = "#000000"
    edge_blur: Optional[float] = Field(None, ge=0.0)
    background_blur: Optional[float] = Field(None, ge=0.0)


class RemoveBackgroundRequest(SegmentationParams):
    background_color: str = "#FFFFFF"


class AutoCropRequest(SegmentationParams):
    padding: float = Field(settings.AUTO_CROP_PADDING, ge=0.0)


class ReplaceBackgroundRequest(SegmentationParams):
    background: Dict[str, Any] = Field(..., description="Tagged background spec, e.g. {'kind': 'color', 'color': '#FFF'}")


class ProcessRequest(SegmentationParams):
    id: Optional[str] = None
    auto_crop: bool = True
    padding: float = Field(settings.AUTO_CROP_PADDING, ge=0.0)
    remove_background: bool = True
    background_color: str = "#FFFFFF"
    background: Optional[Dict[str, Any]] = None
    product_type: str = "custom"
    product_name: str = ""
    prompt_values: Dict[str, str] = Field(default_factory=dict)


class ClassifyRequest(BaseModel):
    image: str
    confidence_threshold: float = Field(settings.CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)


class BatchClassifyRequest(BaseModel):
    images: List[str] = Field(..., min_length=1)
    confidence_threshold: float = Field(settings.CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)


class BackendRequest(BaseModel):
    backend: Backend = Backend(settings.BACKEND)
    precision: Precision = Precision(settings.PRECISION)
    memory_policy: MemoryPolicy = MemoryPolicy(settings.MEMORY_POLICY)
