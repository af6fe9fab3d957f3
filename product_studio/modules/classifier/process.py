# product_studio/modules/classifier/process.py
"""
Product category classification.

The classifier's top-K raw labels are thresholded, mapped through the
category table and aggregated by mean confidence per category.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog
import torch
from PIL import Image
from torchvision import transforms

from product_studio.core.model_manager import ModelHandle
from .config import CUSTOM_CATEGORY, map_label, settings

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ClassificationPrediction:
    label: str
    probability: float


@dataclass(frozen=True)
class CategoryScore:
    category: str
    confidence: float


@dataclass(frozen=True)
class ProductCategoryResult:
    best_category: str
    best_confidence: float
    alternatives: Tuple[CategoryScore, ...]
    evidence_labels: Tuple[str, ...]
    suggested_name: str = ""


def validate_threshold(confidence_threshold: float) -> float:
    if not 0.0 <= confidence_threshold <= 1.0:
        raise ValueError(f"confidence_threshold must be within [0, 1], got {confidence_threshold}")
    return float(confidence_threshold)


def rank_predictions(
    probabilities: Sequence[float],
    labels: Sequence[str],
    top_k: Optional[int] = None,
) -> List[ClassificationPrediction]:
    """Top-K predictions by probability; ties keep the model's output order."""
    top_k = settings.TOP_K if top_k is None else top_k
    probs = np.asarray(probabilities, dtype=np.float64)
    order = np.argsort(-probs, kind="stable")[:top_k]
    return [
        ClassificationPrediction(labels[i] if i < len(labels) else f"class_{i}", float(probs[i]))
        for i in order
    ]


def predict(image: Image.Image, handle: ModelHandle, top_k: Optional[int] = None) -> List[ClassificationPrediction]:
    size = handle.params.input_size
    preprocess = transforms.Compose([
        transforms.Resize((size, size)),
        transforms.ToTensor(),
        transforms.Normalize(settings.NORMALIZE_MEAN, settings.NORMALIZE_STD),
    ])
    input_tensor = preprocess(image.convert("RGB")).unsqueeze(0).to(handle.device, dtype=handle.dtype)

    with torch.no_grad():
        logits = handle.model(input_tensor)
    probabilities = torch.softmax(logits[0].float(), dim=0).cpu().numpy()
    return rank_predictions(probabilities, handle.categories, top_k)


def suggested_name(predictions: Sequence[ClassificationPrediction]) -> str:
    """Title-cased first synonym of the most probable label."""
    if not predictions:
        return ""
    top = max(predictions, key=lambda p: p.probability)
    base = top.label.split(",")[0].strip()
    return " ".join(word[:1].upper() + word[1:] for word in base.split())


def aggregate(
    predictions: Sequence[ClassificationPrediction],
    confidence_threshold: Optional[float] = None,
) -> ProductCategoryResult:
    confidence_threshold = validate_threshold(
        settings.CONFIDENCE_THRESHOLD if confidence_threshold is None else confidence_threshold
    )
    surviving = [p for p in predictions if p.probability >= confidence_threshold]

    hits: Dict[str, List[float]] = {}
    for prediction in surviving:
        category = map_label(prediction.label)
        if category is not None:
            hits.setdefault(category, []).append(prediction.probability)

    # Mean, not sum: many weak labels must not outrank one strong label.
    scores = [CategoryScore(category, sum(probs) / len(probs)) for category, probs in hits.items()]

    best_category, best_confidence = CUSTOM_CATEGORY, 0.0
    for score in scores:
        if score.confidence > best_confidence:
            best_category, best_confidence = score.category, score.confidence

    alternatives = sorted(
        (s for s in scores if s.category != best_category),
        key=lambda s: s.confidence,
        reverse=True,
    )
    return ProductCategoryResult(
        best_category=best_category,
        best_confidence=best_confidence,
        alternatives=tuple(alternatives),
        evidence_labels=tuple(p.label for p in surviving),
        suggested_name=suggested_name(predictions),
    )


def run(
    image: Image.Image,
    handle: ModelHandle,
    confidence_threshold: Optional[float] = None,
    top_k: Optional[int] = None,
) -> ProductCategoryResult:
    predictions = predict(image, handle, top_k)
    result = aggregate(predictions, confidence_threshold)
    log.info(
        "Classification complete",
        category=result.best_category,
        confidence=round(result.best_confidence, 4),
        labels=list(result.evidence_labels),
    )
    return result
