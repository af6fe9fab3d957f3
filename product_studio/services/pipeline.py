# product_studio/services/pipeline.py
import asyncio
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog
from PIL import Image

from product_studio.config import settings
from product_studio.core.backend import PerformanceProfile
from product_studio.core.debug_utils import save_debug_heatmap, save_debug_image
from product_studio.core.errors import PipelineStageError, StudioError
from product_studio.core.imaging import ColorLike, ImageRole, ImageSource
from product_studio.core.model_manager import ModelManager, ProgressCallback
from product_studio.modules import compositor
from product_studio.modules import segmenter
from product_studio.modules.compositor import BackgroundSpec, BoundingBox
from product_studio.modules.prompts import build_prompt
from product_studio.modules.segmenter import Mask
from product_studio.services.downloader import ImageDownloader

log = structlog.get_logger(__name__)

Generator = Callable[[Image.Image, str], Awaitable[Any]]


@dataclass(frozen=True)
class ProcessOptions:
    model_kind: str = settings.DEFAULT_MODEL_KIND
    threshold: float = settings.SEGMENTATION_THRESHOLD
    auto_crop: bool = True
    padding: float = settings.AUTO_CROP_PADDING
    remove_background: bool = True
    background_color: ColorLike = compositor.settings.BACKGROUND_COLOR
    # When set, the background is replaced instead of flattened to a color.
    background: Optional[BackgroundSpec] = None
    product_type: str = "custom"
    product_name: str = ""
    prompt_values: Dict[str, str] = field(default_factory=dict)


@dataclass
class ProcessResult:
    request_id: str
    image: Image.Image
    mask: Mask
    crop_box: Optional[BoundingBox] = None
    prompt: str = ""
    generated: Any = None
    processing_time_seconds: float = 0.0


def _scaled(progress: Optional[ProgressCallback], start: float, end: float) -> Optional[ProgressCallback]:
    """Map a stage's own 0-1 progress into [start, end] of the overall run."""
    if progress is None:
        return None

    def report(fraction: float, message: str) -> None:
        progress(start + fraction * (end - start), message)

    return report


@contextmanager
def pipeline_stage(stage: str, request_id: str):
    try:
        yield
    except (StudioError, ValueError, KeyError):
        log.error("Pipeline stage failed", stage=stage, request_id=request_id)
        raise
    except Exception as e:
        log.exception("Pipeline stage crashed", stage=stage, request_id=request_id)
        raise PipelineStageError(stage, e) from e


class ProductStudioPipeline:
    """Sequences segmentation, auto-crop and background compositing."""

    def __init__(
        self,
        model_manager: ModelManager,
        downloader: Optional[ImageDownloader] = None,
        profile: Optional[PerformanceProfile] = None,
    ):
        self.model_manager = model_manager
        self.downloader = downloader or ImageDownloader()
        self.profile = profile
        log.info("Pipeline initialized")

    async def _segment(self, image: Image.Image, model_kind, threshold, progress) -> Mask:
        return await segmenter.segment(
            image,
            model_kind or settings.DEFAULT_MODEL_KIND,
            settings.SEGMENTATION_THRESHOLD if threshold is None else threshold,
            self.model_manager,
            self.profile,
            progress,
        )

    async def _auxiliary(self, background: BackgroundSpec) -> Optional[Image.Image]:
        """Decode the extra image a background needs, before any compositing starts."""
        if background.kind == "image":
            return await self.downloader.fetch(background.source, ImageRole.BACKGROUND)
        if background.kind == "blur" and background.source is not None:
            return await self.downloader.fetch(background.source, ImageRole.ORIGINAL)
        return None

    async def segment(
        self,
        source: ImageSource,
        model_kind=None,
        threshold: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Mask:
        request_id = uuid.uuid4().hex[:8]
        with pipeline_stage("segment", request_id):
            image = await self.downloader.fetch(source, ImageRole.SOURCE)
            return await self._segment(image, model_kind, threshold, progress)

    async def auto_crop(
        self,
        source: ImageSource,
        model_kind=None,
        threshold: Optional[float] = None,
        padding: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Image.Image:
        request_id = uuid.uuid4().hex[:8]
        with pipeline_stage("auto_crop", request_id):
            image = await self.downloader.fetch(source, ImageRole.SOURCE)
            mask = await self._segment(image, model_kind, threshold, progress)
            return await asyncio.to_thread(compositor.auto_crop, image, mask, padding)

    async def remove_background(
        self,
        source: ImageSource,
        model_kind=None,
        threshold: Optional[float] = None,
        background_color: ColorLike = compositor.settings.BACKGROUND_COLOR,
        progress: Optional[ProgressCallback] = None,
    ) -> Image.Image:
        request_id = uuid.uuid4().hex[:8]
        with pipeline_stage("remove_background", request_id):
            image = await self.downloader.fetch(source, ImageRole.SOURCE)
            mask = await self._segment(image, model_kind, threshold, progress)
            return await asyncio.to_thread(
                compositor.remove_background, image, mask, background_color
            )

    async def replace_background(
        self,
        source: ImageSource,
        background: BackgroundSpec,
        model_kind=None,
        threshold: Optional[float] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> Image.Image:
        request_id = uuid.uuid4().hex[:8]
        with pipeline_stage("replace_background", request_id):
            image = await self.downloader.fetch(source, ImageRole.SOURCE)
            auxiliary = await self._auxiliary(background)
            mask = await self._segment(image, model_kind, threshold, progress)
            return await asyncio.to_thread(compositor.replace_background, image, mask, background, auxiliary)

    async def process(
        self,
        source: ImageSource,
        options: Optional[ProcessOptions] = None,
        progress: Optional[ProgressCallback] = None,
        generator: Optional[Generator] = None,
        request_id: Optional[str] = None,
    ) -> ProcessResult:
        """
        Full run: auto-crop (progress 0-0.5), background removal or replacement
        (0.5-1.0), then an optional hand-off to ``generator(image, prompt)``.
        """
        options = options or ProcessOptions()
        request_id = request_id or uuid.uuid4().hex[:8]
        start_time = datetime.now()
        log.info("Starting pipeline", request_id=request_id, model_kind=options.model_kind)

        with pipeline_stage("load", request_id):
            image = await self.downloader.fetch(source, ImageRole.SOURCE)
            auxiliary = await self._auxiliary(options.background) if options.background is not None else None
        save_debug_image(request_id, "source", "0_original", image)

        log.info("Stage 1: Segmenting and auto-cropping...")
        crop_progress = _scaled(progress, 0.0, 0.5)
        with pipeline_stage("auto_crop", request_id):
            mask = await self._segment(image, options.model_kind, options.threshold, crop_progress)
            save_debug_heatmap(request_id, "source", "1_mask", mask.alpha, overlay_on=image)
            crop_box = None
            if options.auto_crop:
                image = await asyncio.to_thread(compositor.auto_crop, image, mask, options.padding)
                crop_box = compositor.crop_region(mask, options.padding)
                if crop_box is not None:
                    mask = mask.crop(crop_box.as_tuple())
                save_debug_image(request_id, "source", "2_cropped", image)
        if crop_progress is not None:
            crop_progress(1.0, "Auto-crop complete")

        log.info("Stage 2: Processing background...")
        removal_progress = _scaled(progress, 0.5, 1.0)
        if removal_progress is not None:
            removal_progress(0.0, "Processing background...")
        with pipeline_stage("background", request_id):
            if options.background is not None:
                result = await asyncio.to_thread(
                    compositor.replace_background, image, mask, options.background, auxiliary
                )
            elif options.remove_background:
                result = await asyncio.to_thread(
                    compositor.remove_background, image, mask, options.background_color
                )
            else:
                result = image
            save_debug_image(request_id, "source", "3_background", result)
        if removal_progress is not None:
            removal_progress(1.0, "Background processing complete")

        with pipeline_stage("prompt", request_id):
            prompt = build_prompt(options.product_type, options.product_name, **options.prompt_values)

        generated = None
        if generator is not None:
            log.info("Stage 3: Handing off to generator...")
            with pipeline_stage("generate", request_id):
                generated = await generator(result, prompt)

        elapsed = (datetime.now() - start_time).total_seconds()
        log.info("Pipeline complete", request_id=request_id, elapsed_seconds=elapsed, size=result.size)
        return ProcessResult(
            request_id=request_id,
            image=result,
            mask=mask,
            crop_box=crop_box,
            prompt=prompt,
            generated=generated,
            processing_time_seconds=elapsed,
        )
