# product_studio/services/__init__.py
"""Business logic and service layer."""
from .pipeline import ProcessOptions, ProcessResult, ProductStudioPipeline
from .detector import ProductDetector
from .downloader import ImageDownloader

__all__ = ["ProductStudioPipeline", "ProcessOptions", "ProcessResult", "ProductDetector", "ImageDownloader"]
