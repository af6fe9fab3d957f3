"""Prompt templates for the external generation step."""
from .templates import (
    PRODUCT_TYPES,
    PROMPT_KEYS,
    TEMPLATES,
    ProductType,
    PromptTemplate,
    build_prompt,
    default_template,
    fill_template,
    templates_for,
)

__all__ = [
    "PRODUCT_TYPES",
    "PROMPT_KEYS",
    "TEMPLATES",
    "ProductType",
    "PromptTemplate",
    "build_prompt",
    "default_template",
    "fill_template",
    "templates_for",
]
