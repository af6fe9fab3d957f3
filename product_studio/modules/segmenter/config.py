from pydantic_settings import BaseSettings


class SegmenterSettings(BaseSettings):
    """Tuning constants for the three segmentation strategies."""

    # ImageNet statistics expected by the torchvision backbones
    NORMALIZE_MEAN: tuple[float, float, float] = (0.485, 0.456, 0.406)
    NORMALIZE_STD: tuple[float, float, float] = (0.229, 0.224, 0.225)

    # --- Body (A) ---
    # Pascal VOC index of "person"; used when the weights carry no category list.
    PERSON_CLASS_INDEX: int = 15
    USE_NOISE_REMOVAL: bool = True
    # Threshold for the component analysis mask.
    NOISE_REMOVAL_THRESHOLD: float = 0.05
    # Disconnected blobs smaller than this are erased.
    MIN_COMPONENT_AREA: int = 50
    # Gaussian feathering of the mask boundary, in pixels.
    EDGE_BLUR: int = 3
    # Blur applied to the rendered colored mask, in pixels.
    BACKGROUND_BLUR: int = 0

    # --- Edge heuristic (C) ---
    # Thickness of the border strip sampled for the background color.
    BORDER_WIDTH: int = 1


settings = SegmenterSettings()
