"""
FastAPI service for product photo segmentation, background compositing and
product classification.
"""
import warnings
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
import structlog

from product_studio.config import settings
from product_studio.core.backend import PerformanceProfile
from product_studio.core.errors import BatchItemFailure, ImageDecodeError, ModelLoadError, StudioError
from product_studio.core.imaging import to_data_url
from product_studio.core.model_manager import ModelManager
from product_studio.models.request import (
    AutoCropRequest,
    BackendRequest,
    BatchClassifyRequest,
    ClassifyRequest,
    ProcessRequest,
    RemoveBackgroundRequest,
    ReplaceBackgroundRequest,
    SegmentRequest,
)
from product_studio.models.response import (
    BackendResponse,
    BatchClassifyResponse,
    BatchFailureResponse,
    ClassifyResponse,
    ImageResponse,
    PresetResponse,
    ProcessResponse,
    SegmentResponse,
)
from product_studio.modules.compositor import background_from_dict, background_presets, background_to_dict
from product_studio.modules.segmenter import render_colored_mask
from product_studio.services import ImageDownloader, ProcessOptions, ProductDetector, ProductStudioPipeline

log = structlog.get_logger(__name__)

# Global service instances
model_manager: ModelManager = None
pipeline: ProductStudioPipeline = None
detector: ProductDetector = None


def build_model_manager() -> ModelManager:
    return ModelManager()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure the compute backend on startup and release models on shutdown."""
    global model_manager, pipeline, detector

    log.info("Starting service initialization...")

    model_manager = build_model_manager()
    profile = PerformanceProfile()
    model_manager.initialize(profile)

    downloader = ImageDownloader(allow_paths=False)
    pipeline = ProductStudioPipeline(model_manager, downloader, profile)
    detector = ProductDetector(model_manager, downloader, profile)

    log.info("Service initialization complete. Ready to process requests.")

    yield

    log.info("Shutting down service...")
    if model_manager:
        await model_manager.cleanup()
    if pipeline:
        await pipeline.downloader.close()
    log.info("Service shutdown complete.")


app = FastAPI(
    title="Product Studio Service",
    description="Product photo segmentation, auto-crop, background replacement and category detection",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ImageDecodeError)
async def image_decode_error_handler(request: Request, exc: ImageDecodeError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "role": exc.role})


@app.exception_handler(ModelLoadError)
async def model_load_error_handler(request: Request, exc: ModelLoadError):
    return JSONResponse(status_code=503, content={"detail": str(exc), "model_kind": exc.kind})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError):
    log.error("Request failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": f"Processing failed: {exc}"})


def _require_service():
    if not pipeline:
        raise HTTPException(status_code=503, detail="Service not initialized")


def _elapsed(start_time: datetime) -> float:
    return (datetime.now() - start_time).total_seconds()


@app.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "Product Studio Service",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "backend": "/backend",
            "segment": "/segment",
            "remove_background": "/remove-background",
            "auto_crop": "/auto-crop",
            "replace_background": "/replace-background",
            "process": "/process",
            "classify": "/classify",
            "classify_batch": "/classify/batch",
            "background_presets": "/backgrounds/presets",
            "models": "/models",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    state = model_manager.backend.state if model_manager else None
    return {
        "status": "healthy",
        "backend_configured": model_manager.is_initialized if model_manager else False,
        "backend": state.backend.value if state else None,
        "device": str(state.device) if state else None,
        "models_loaded": [kind.value for kind in model_manager.loaded_kinds()] if model_manager else [],
    }


@app.post("/backend", response_model=BackendResponse)
async def configure_backend(request: BackendRequest):
    """
    Switch the process-wide performance profile. Models that are already
    loaded keep their configuration until the cache is cleared.
    """
    _require_service()
    profile = PerformanceProfile(**request.model_dump())
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        state = model_manager.backend.configure(profile)
    pipeline.profile = profile
    detector.profile = profile

    return BackendResponse(
        backend=state.backend.value,
        requested=state.requested.value,
        device=str(state.device),
        fell_back=state.fell_back,
        reduced_precision=state.reduced_precision,
        retention_mb=state.retention_mb,
        warnings=[str(w.message) for w in caught],
    )


@app.post("/segment", response_model=SegmentResponse)
async def segment(request: SegmentRequest):
    _require_service()
    start_time = datetime.now()
    mask = await pipeline.segment(request.image, request.model_kind, request.threshold)
    rendered = render_colored_mask(
        mask,
        request.foreground_color,
        request.background_color,
        request.background_blur,
        request.edge_blur,
    )
    return SegmentResponse(
        image=to_data_url(rendered),
        width=mask.width,
        height=mask.height,
        model_kind=mask.kind.value,
        foreground_ratio=float(mask.foreground().mean()),
        processing_time_seconds=_elapsed(start_time),
    )


@app.post("/remove-background", response_model=ImageResponse)
async def remove_background(request: RemoveBackgroundRequest):
    _require_service()
    start_time = datetime.now()
    result = await pipeline.remove_background(
        request.image,
        request.model_kind,
        request.threshold,
        request.background_color,
    )
    return ImageResponse(
        image=to_data_url(result), width=result.width, height=result.height,
        processing_time_seconds=_elapsed(start_time),
    )


@app.post("/auto-crop", response_model=ImageResponse)
async def auto_crop(request: AutoCropRequest):
    _require_service()
    start_time = datetime.now()
    result = await pipeline.auto_crop(request.image, request.model_kind, request.threshold, request.padding)
    return ImageResponse(
        image=to_data_url(result), width=result.width, height=result.height,
        processing_time_seconds=_elapsed(start_time),
    )


@app.post("/replace-background", response_model=ImageResponse)
async def replace_background(request: ReplaceBackgroundRequest):
    _require_service()
    start_time = datetime.now()
    background = background_from_dict(request.background)
    result = await pipeline.replace_background(request.image, background, request.model_kind, request.threshold)
    return ImageResponse(
        image=to_data_url(result), width=result.width, height=result.height,
        processing_time_seconds=_elapsed(start_time),
    )


@app.post("/process", response_model=ProcessResponse)
async def process_image(request: ProcessRequest):
    """
    Run the full pipeline on one image.

    Pipeline stages:
    1. Segment and auto-crop
    2. Remove or replace the background
    3. Build the generation prompt for the product category
    """
    _require_service()
    log.info("Received process request", request_id=request.id)
    options = ProcessOptions(
        model_kind=request.model_kind,
        threshold=request.threshold,
        auto_crop=request.auto_crop,
        padding=request.padding,
        remove_background=request.remove_background,
        background_color=request.background_color,
        background=background_from_dict(request.background) if request.background else None,
        product_type=request.product_type,
        product_name=request.product_name,
        prompt_values=request.prompt_values,
    )
    try:
        result = await pipeline.process(request.image, options, request_id=request.id)
    except KeyError as e:
        raise HTTPException(status_code=400, detail=f"Invalid prompt values: {e}")

    log.info("Process request completed", request_id=result.request_id)
    return ProcessResponse(
        id=result.request_id,
        image=to_data_url(result.image),
        width=result.image.width,
        height=result.image.height,
        crop_box=list(result.crop_box.as_tuple()) if result.crop_box else None,
        prompt=result.prompt,
        processing_time_seconds=result.processing_time_seconds,
    )


@app.post("/classify", response_model=ClassifyResponse)
async def classify(request: ClassifyRequest):
    _require_service()
    result = await detector.classify(request.image, request.confidence_threshold)
    return ClassifyResponse.from_result(result)


@app.post("/classify/batch", response_model=BatchClassifyResponse)
async def classify_batch(request: BatchClassifyRequest):
    _require_service()
    failures = []

    def record(failure: BatchItemFailure):
        failures.append(BatchFailureResponse(index=failure.index, error=str(failure.cause)))

    results = await detector.batch_classify(request.images, request.confidence_threshold, on_item_error=record)
    return BatchClassifyResponse(
        results=[ClassifyResponse.from_result(r) if r is not None else None for r in results],
        failures=failures,
    )


@app.get("/backgrounds/presets", response_model=list[PresetResponse])
async def list_background_presets():
    return [
        PresetResponse(id=preset["id"], name=preset["name"], background=background_to_dict(preset["background"]))
        for preset in background_presets()
    ]


@app.delete("/models")
async def clear_models():
    """Evict every cached model; the next request reloads from scratch."""
    _require_service()
    model_manager.clear_cache()
    return {"status": "cleared"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=settings.WORKERS,
        log_level=settings.LOG_LEVEL.lower()
    )
