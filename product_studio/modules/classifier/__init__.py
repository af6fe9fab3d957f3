"""Product category classification."""
from . import process
from .config import CATEGORY_MAPPING, CUSTOM_CATEGORY, PRODUCT_CATEGORIES, map_label, settings
from .process import (
    CategoryScore,
    ClassificationPrediction,
    ProductCategoryResult,
    aggregate,
    predict,
    rank_predictions,
    suggested_name,
    validate_threshold,
)

__all__ = [
    "process",
    "settings",
    "CATEGORY_MAPPING",
    "CUSTOM_CATEGORY",
    "PRODUCT_CATEGORIES",
    "CategoryScore",
    "ClassificationPrediction",
    "ProductCategoryResult",
    "aggregate",
    "map_label",
    "predict",
    "rank_predictions",
    "suggested_name",
    "validate_threshold",
]
