# product_studio/services/detector.py
import asyncio
from typing import Callable, List, Optional, Sequence

import structlog

from product_studio.core.backend import PerformanceProfile
from product_studio.core.errors import BatchItemFailure
from product_studio.core.imaging import ImageRole, ImageSource
from product_studio.core.model_manager import ModelKind, ModelManager, ProgressCallback
from product_studio.modules.classifier import process as classifier_process
from product_studio.modules.classifier import settings as classifier_settings
from product_studio.modules.classifier.process import ProductCategoryResult, validate_threshold
from product_studio.services.downloader import ImageDownloader

log = structlog.get_logger(__name__)


class ProductDetector:
    """Classifies product images into categories using the shared model cache."""

    def __init__(
        self,
        model_manager: ModelManager,
        downloader: Optional[ImageDownloader] = None,
        profile: Optional[PerformanceProfile] = None,
    ):
        self.model_manager = model_manager
        self.downloader = downloader or ImageDownloader()
        self.profile = profile

    def _threshold(self, confidence_threshold: Optional[float]) -> float:
        if confidence_threshold is None:
            confidence_threshold = classifier_settings.CONFIDENCE_THRESHOLD
        return validate_threshold(confidence_threshold)

    async def classify(
        self,
        source: ImageSource,
        confidence_threshold: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ProductCategoryResult:
        threshold = self._threshold(confidence_threshold)
        image = await self.downloader.fetch(source, ImageRole.SOURCE)
        handle = await self.model_manager.get_model(ModelKind.CLASSIFIER, self.profile, progress)
        try:
            return await asyncio.to_thread(classifier_process.run, image, handle, threshold)
        finally:
            self.model_manager.backend.release()

    async def batch_classify(
        self,
        sources: Sequence[ImageSource],
        confidence_threshold: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
        on_item_error: Optional[Callable[[BatchItemFailure], None]] = None,
    ) -> List[Optional[ProductCategoryResult]]:
        """
        Classify images one at a time. A failing item yields None at its index
        and the batch carries on; a model load failure aborts the whole batch.
        """
        threshold = self._threshold(confidence_threshold)
        handle = await self.model_manager.get_model(ModelKind.CLASSIFIER, self.profile)

        total = len(sources)
        results: List[Optional[ProductCategoryResult]] = []
        log.info("Starting batch classification", items=total)
        for index, source in enumerate(sources):
            try:
                image = await self.downloader.fetch(source, ImageRole.SOURCE)
                result = await asyncio.to_thread(classifier_process.run, image, handle, threshold)
            except Exception as e:  # noqa: BLE001
                failure = BatchItemFailure(index, e)
                log.warning("Batch item failed", index=index, error=str(e))
                if on_item_error is not None:
                    on_item_error(failure)
                result = None
            finally:
                self.model_manager.backend.release()
            results.append(result)
            if progress is not None:
                progress((index + 1) / total, f"Classified {index + 1} of {total} images")

        log.info("Batch classification complete", items=total, failed=sum(r is None for r in results))
        return results
