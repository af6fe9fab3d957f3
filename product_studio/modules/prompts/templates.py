# product_studio/modules/prompts/templates.py
"""
Studio prompt templates handed to the external image generator.

Templates use ``{key}`` placeholders from a fixed key set. Filling is plain
string substitution.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

import structlog

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProductType:
    id: str
    name: str
    description: str
    default_background: str  # studio | lifestyle


@dataclass(frozen=True)
class PromptTemplate:
    id: str
    product_type: str
    name: str
    template: str
    negative_prompt: str = ""
    is_default: bool = False


PRODUCT_TYPES: Dict[str, ProductType] = {
    t.id: t
    for t in (
        ProductType("clothing", "Clothing", "Shirts, dresses, pants, jackets, and other apparel", "studio"),
        ProductType("footwear", "Footwear", "Shoes, boots, sneakers, and other footwear", "studio"),
        ProductType("accessories", "Accessories", "Jewelry, watches, bags, and other accessories", "studio"),
        ProductType("electronics", "Electronics", "Phones, laptops, cameras, and other electronic devices", "studio"),
        ProductType("home", "Home Goods", "Furniture, decor, kitchenware, and other home items", "lifestyle"),
        ProductType("beauty", "Beauty", "Makeup, skincare, haircare, and other beauty products", "lifestyle"),
        ProductType("sports", "Sports & Fitness", "Exercise equipment, sportswear, and fitness accessories", "lifestyle"),
        ProductType("toys", "Toys & Games", "Toys, board games, and other entertainment items", "lifestyle"),
        ProductType("custom", "Custom", "Create a custom prompt for any product type", "studio"),
    )
}

# Placeholder that receives the product name for each category.
TYPE_PLACEHOLDERS = {
    "clothing": "clothing_type",
    "footwear": "footwear_type",
    "accessories": "accessory_type",
    "electronics": "electronics_type",
    "home": "home_item_type",
    "beauty": "beauty_product_type",
    "sports": "sports_item_type",
    "toys": "toy_type",
}

PROMPT_KEYS = frozenset(
    {"gender", "body_type", "hairstyle", "height", "skin_tone", "background", "lighting"}
    | set(TYPE_PLACEHOLDERS.values())
)

NEGATIVE_PROMPT = "low quality, blurry, distorted, deformed, disfigured, bad anatomy, watermark, logo, text"

_CLOSING = "Photorealistic style, high quality, detailed texture, professional product photography."

TEMPLATES: List[PromptTemplate] = [
    PromptTemplate(
        "clothing-default", "clothing", "Standard Clothing",
        "Create a professional product image of a {gender} model wearing the uploaded {clothing_type}. "
        "The model should have a {body_type} body type, {hairstyle} hair, {height} tall, with skin tone similar to "
        "{skin_tone} hex color. The model should be shown from head to waist in a relaxed front-facing pose. "
        "The image should have a {background} with {lighting}. Make the {clothing_type} the focal point of the image. "
        "Show the fabric texture and details clearly. Photorealistic style, high quality, detailed texture, "
        "professional fashion photography.",
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "clothing-detail", "clothing", "Detail Focus",
        "Create a close-up product image focusing on the details and texture of the uploaded {clothing_type}. "
        "Show fine details like stitching, fabric texture, buttons, zippers, and other design elements. "
        "The image should have a {background} with soft, even lighting to highlight the details. " + _CLOSING,
        NEGATIVE_PROMPT + ", full body",
    ),
    PromptTemplate(
        "footwear-default", "footwear", "Standard Footwear",
        "Create a professional product image of the uploaded {footwear_type}. "
        "The {footwear_type} should be shown from a 3/4 angle to display both the side profile and top. "
        "The image should have a {background} with {lighting} to highlight the materials and design details. "
        "Show the texture, sole, and any special features of the {footwear_type}. " + _CLOSING,
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "accessories-default", "accessories", "Standard Accessories",
        "Create a professional product image of the uploaded {accessory_type}. "
        "The {accessory_type} should be shown in detail with perfect lighting to highlight its features. "
        "The image should have a {background} with {lighting} to showcase the materials and craftsmanship. "
        + _CLOSING,
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "electronics-default", "electronics", "Standard Electronics",
        "Create a professional product image of the uploaded {electronics_type}. "
        "The {electronics_type} should be shown from an angle that highlights its design and key features. "
        "The image should have a {background} with {lighting} to create reflections and highlights on the surface. "
        "Show the device powered on with a screen display if applicable. " + _CLOSING,
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "home-default", "home", "Standard Home Goods",
        "Create a professional product image of the uploaded {home_item_type}. "
        "The {home_item_type} should be shown from an angle that highlights its design and key features. "
        "The image should have a {background} with {lighting} to showcase the materials and craftsmanship. "
        + _CLOSING,
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "beauty-default", "beauty", "Standard Beauty",
        "Create a professional product image of the uploaded {beauty_product_type}. "
        "The {beauty_product_type} should be shown from an angle that highlights its packaging and design. "
        "The image should have a {background} with {lighting} to create an elegant, premium feel. "
        "Photorealistic style, high quality, detailed texture, professional beauty product photography.",
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "sports-default", "sports", "Standard Sports",
        "Create a professional product image of the uploaded {sports_item_type}. "
        "The {sports_item_type} should be shown from an angle that highlights its design and key features. "
        "The image should have a {background} with {lighting} to showcase the materials and functionality. "
        + _CLOSING,
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "toys-default", "toys", "Standard Toys",
        "Create a professional product image of the uploaded {toy_type}. "
        "The {toy_type} should be shown from an angle that highlights its design and key features. "
        "The image should have a {background} with {lighting} to showcase the colors and details. " + _CLOSING,
        NEGATIVE_PROMPT, True,
    ),
    PromptTemplate(
        "custom-default", "custom", "Custom Template",
        "Create a professional product image of the uploaded product. "
        "The product should be shown from an angle that highlights its design and key features. "
        "The image should have a {background} with {lighting} to showcase the product effectively. " + _CLOSING,
        NEGATIVE_PROMPT, True,
    ),
]

DEFAULT_SCENE = {"background": "clean white studio background", "lighting": "soft diffused studio lighting"}

_PLACEHOLDER = re.compile(r"\{([a-z_]+)\}")


def templates_for(product_type: str) -> List[PromptTemplate]:
    return [t for t in TEMPLATES if t.product_type == product_type]


def default_template(product_type: str) -> PromptTemplate:
    """Default template for a category; unknown categories get the custom one."""
    for template in TEMPLATES:
        if template.product_type == product_type and template.is_default:
            return template
    return next(t for t in TEMPLATES if t.product_type == "custom" and t.is_default)


def fill_template(template: str, values: Mapping[str, Optional[str]]) -> str:
    """
    Substitute ``{key}`` placeholders. Known keys without a value become
    empty; keys outside PROMPT_KEYS raise KeyError.
    """
    unknown = set(values) - PROMPT_KEYS
    if unknown:
        raise KeyError(f"Unknown prompt keys: {sorted(unknown)}")

    def substitute(match: "re.Match") -> str:
        key = match.group(1)
        if key not in PROMPT_KEYS:
            raise KeyError(f"Unknown placeholder in template: {key}")
        return values.get(key) or ""

    return _PLACEHOLDER.sub(substitute, template)


def build_prompt(product_type: str, product_name: str = "", **values: Optional[str]) -> str:
    """Fill the category's default template, putting the product name in its type slot."""
    template = default_template(product_type)
    filled = {**DEFAULT_SCENE, **values}
    slot = TYPE_PLACEHOLDERS.get(template.product_type)
    if slot is not None and product_name:
        filled.setdefault(slot, product_name)
    prompt = fill_template(template.template, filled)
    log.debug("Prompt built", template=template.id, product_type=product_type)
    return prompt
