"""
Configuration and label mapping for product classification.
"""
from typing import Dict, Optional

from pydantic_settings import BaseSettings

from product_studio.config import settings as app_settings


class ClassifierSettings(BaseSettings):
    CONFIDENCE_THRESHOLD: float = app_settings.CONFIDENCE_THRESHOLD
    TOP_K: int = app_settings.TOP_K

    # ImageNet statistics expected by the torchvision classifiers
    NORMALIZE_MEAN: tuple[float, float, float] = (0.485, 0.456, 0.406)
    NORMALIZE_STD: tuple[float, float, float] = (0.229, 0.224, 0.225)


settings = ClassifierSettings()

PRODUCT_CATEGORIES = (
    "clothing",
    "footwear",
    "accessories",
    "electronics",
    "home",
    "beauty",
    "sports",
    "toys",
)

# Used when no surviving label maps to a category.
CUSTOM_CATEGORY = "custom"

# Raw ImageNet label (with its comma-separated synonyms) -> product category.
CATEGORY_MAPPING: Dict[str, str] = {
    # Clothing
    "jersey, T-shirt, tee shirt": "clothing",
    "sweatshirt": "clothing",
    "cardigan": "clothing",
    "dress": "clothing",
    "gown": "clothing",
    "hoody, hoodie": "clothing",
    "jacket": "clothing",
    "jean, blue jean, denim": "clothing",
    "miniskirt, mini": "clothing",
    "pajama, pyjama, pj's, jammies": "clothing",
    "poncho": "clothing",
    "suit, suit of clothes": "clothing",
    "sweater, jumper": "clothing",
    "trench coat": "clothing",
    "vest, waistcoat": "clothing",
    "bow tie, bow-tie, bowtie": "clothing",
    "brassiere, bra, bandeau": "clothing",
    "cowboy hat": "clothing",
    "sombrero": "clothing",
    "hat": "clothing",
    "cap": "clothing",
    "shirt": "clothing",
    "blouse": "clothing",
    "pants": "clothing",
    "trousers": "clothing",
    "shorts": "clothing",
    "skirt": "clothing",
    "fur coat": "clothing",
    "lab coat": "clothing",
    "coat": "clothing",
    "military uniform": "clothing",
    "uniform": "clothing",
    "kimono": "clothing",
    "abaya": "clothing",
    "sock": "clothing",
    "christmas stocking": "clothing",
    "glove": "clothing",
    "mitten": "clothing",
    "stole": "clothing",
    "scarf": "clothing",
    "Windsor tie": "clothing",
    "tie": "clothing",
    # Footwear
    "running shoe": "footwear",
    "sandal": "footwear",
    "loafer": "footwear",
    "shoe": "footwear",
    "boot": "footwear",
    "cowboy boot": "footwear",
    "ankle boot": "footwear",
    "high heel": "footwear",
    "sneaker": "footwear",
    "slipper": "footwear",
    "flip-flop": "footwear",
    "clog": "footwear",
    "clogs": "footwear",
    # Accessories
    "sunglasses, dark glasses, shades": "accessories",
    "sunglass": "accessories",
    "watch, ticker, timepiece": "accessories",
    "digital watch": "accessories",
    "purse": "accessories",
    "handbag, hand bag, pocketbook": "accessories",
    "wallet, billfold, notecase, pocketbook": "accessories",
    "backpack, back pack, knapsack, packsack": "accessories",
    "suitcase": "accessories",
    "necklace": "accessories",
    "bracelet": "accessories",
    "ring": "accessories",
    "earring": "accessories",
    "jewelry": "accessories",
    "belt": "accessories",
    "umbrella": "accessories",
    # Electronics
    "laptop, laptop computer": "electronics",
    "notebook, notebook computer": "electronics",
    "desktop computer": "electronics",
    "monitor": "electronics",
    "screen": "electronics",
    "cellular telephone, cellular phone, cellphone": "electronics",
    "cellphone": "electronics",
    "smartphone": "electronics",
    "iPod": "electronics",
    "tablet": "electronics",
    "camera": "electronics",
    "digital camera": "electronics",
    "reflex camera": "electronics",
    "television, television system": "electronics",
    "TV, television, television set": "electronics",
    "remote control, remote": "electronics",
    "printer": "electronics",
    "keyboard": "electronics",
    "computer keyboard": "electronics",
    "mouse, computer mouse": "electronics",
    "joystick": "electronics",
    "headphone": "electronics",
    "earphone": "electronics",
    "speaker": "electronics",
    "loudspeaker": "electronics",
    "microphone, mike": "electronics",
    # Home goods
    "table lamp": "home",
    "lamp": "home",
    "lampshade": "home",
    "chair": "home",
    "folding chair": "home",
    "rocking chair": "home",
    "table": "home",
    "desk": "home",
    "sofa, couch, lounge": "home",
    "studio couch": "home",
    "bed": "home",
    "four-poster": "home",
    "pillow": "home",
    "cushion": "home",
    "vase": "home",
    "bookshelf": "home",
    "bookcase": "home",
    "wardrobe, closet, press": "home",
    "chest of drawers, chest, bureau, dresser": "home",
    "dining table, board": "home",
    "coffee table": "home",
    "refrigerator, icebox": "home",
    "oven": "home",
    "microwave, microwave oven": "home",
    "toaster": "home",
    "pot, flowerpot": "home",
    "plate": "home",
    "cup": "home",
    "coffee mug": "home",
    "bowl": "home",
    "mixing bowl": "home",
    "cutlery, eating utensil": "home",
    "fork": "home",
    "knife": "home",
    "spoon": "home",
    "wooden spoon": "home",
    "frying pan, frypan, skillet": "home",
    "wok": "home",
    "kettle, boiler": "home",
    "teapot": "home",
    "candle": "home",
    "clock": "home",
    "analog clock": "home",
    "wall clock": "home",
    "curtain, drape, drapery, mantle, pall": "home",
    "shower curtain": "home",
    "carpet": "home",
    "rug": "home",
    "quilt": "home",
    # Beauty
    "perfume, essence": "beauty",
    "lotion": "beauty",
    "lipstick, lip rouge": "beauty",
    "face powder": "beauty",
    "hair spray": "beauty",
    "cream, ointment, lotion": "beauty",
    "sunscreen": "beauty",
    "soap": "beauty",
    "soap dispenser": "beauty",
    "shampoo": "beauty",
    "nail polish": "beauty",
    "makeup": "beauty",
    "cosmetics": "beauty",
    "brush": "beauty",
    "comb": "beauty",
    "hair dryer": "beauty",
    "hair drier": "beauty",
    # Sports & fitness
    "dumbbell": "sports",
    "barbell": "sports",
    "tennis ball": "sports",
    "basketball": "sports",
    "football": "sports",
    "rugby ball": "sports",
    "soccer ball": "sports",
    "volleyball": "sports",
    "baseball": "sports",
    "golf ball": "sports",
    "tennis racket": "sports",
    "racket, racquet": "sports",
    "baseball bat": "sports",
    "golf club": "sports",
    "ski": "sports",
    "snowboard": "sports",
    "surfboard": "sports",
    "skateboard": "sports",
    "bicycle, bike, wheel, cycle": "sports",
    "mountain bike": "sports",
    "treadmill": "sports",
    "weight, free weight, weight lifting": "sports",
    "gym equipment": "sports",
    "yoga mat": "sports",
    "football helmet": "sports",
    "crash helmet": "sports",
    "swimming cap": "sports",
    # Toys & games
    "toy": "toys",
    "teddy, teddy bear": "toys",
    "jigsaw puzzle": "toys",
    "game board": "toys",
    "chess, chess set": "toys",
    "doll": "toys",
    "toy car": "toys",
    "toy truck": "toys",
    "toy train": "toys",
    "toy store": "toys",
    "action figure": "toys",
    "building blocks": "toys",
    "playing card": "toys",
    "game controller": "toys",
    "video game": "toys",
    "board game": "toys",
    "puzzle": "toys",
    "ball": "toys",
    "kite": "toys",
    "frisbee": "toys",
    "yo-yo": "toys",
    "pinwheel": "toys",
    "balloon": "toys",
}


def _build_label_index(mapping: Dict[str, str]) -> Dict[str, str]:
    # Full labels win over synonyms; earlier entries win over later ones.
    index: Dict[str, str] = {}
    for label, category in mapping.items():
        index.setdefault(label.strip().lower(), category)
    for label, category in mapping.items():
        for synonym in label.split(","):
            index.setdefault(synonym.strip().lower(), category)
    return index


LABEL_INDEX = _build_label_index(CATEGORY_MAPPING)


def map_label(label: str) -> Optional[str]:
    """Product category for a raw classifier label, or None when unmapped."""
    key = label.strip().lower()
    if key in LABEL_INDEX:
        return LABEL_INDEX[key]
    for synonym in key.split(","):
        category = LABEL_INDEX.get(synonym.strip())
        if category is not None:
            return category
    return None
