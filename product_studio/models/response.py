# product_studio/models/response.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from product_studio.modules.classifier import ProductCategoryResult


class ImageResponse(BaseModel):
    image: str
    width: int
    height: int
    processing_time_seconds: float


class SegmentResponse(ImageResponse):
    model_kind: str
    foreground_ratio: float


class ProcessResponse(ImageResponse):
    id: str
    crop_box: Optional[List[int]] = None
    prompt: str


class CategoryScoreResponse(BaseModel):
    category: str
    confidence: float


class ClassifyResponse(BaseModel):
    best_category: str
    best_confidence: float
    alternatives: List[CategoryScoreResponse]
    evidence_labels: List[str]
    suggested_name: str

    @classmethod
    def from_result(cls, result: ProductCategoryResult) -> "ClassifyResponse":
        return cls(
            best_category=result.best_category,
            best_confidence=result.best_confidence,
            alternatives=[
                CategoryScoreResponse(category=a.category, confidence=a.confidence) for a in result.alternatives
            ],
            evidence_labels=list(result.evidence_labels),
            suggested_name=result.suggested_name,
        )


class BatchFailureResponse(BaseModel):
    index: int
    error: str


class BatchClassifyResponse(BaseModel):
    results: List[Optional[ClassifyResponse]]
    failures: List[BatchFailureResponse]


class BackendResponse(BaseModel):
    backend: str
    requested: str
    device: str
    fell_back: bool
    reduced_precision: bool
    retention_mb: int
    warnings: List[str] = []


class PresetResponse(BaseModel):
    id: str
    name: str
    background: Dict[str, Any]
