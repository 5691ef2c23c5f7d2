"""
Cache keys and similarity scoring for the transform cache

Products are bucketed by a category|subcategory|brand key. Within a bucket
each cached example is scored against the incoming product:

    category match     0.4
    subcategory match  0.3
    brand match        0.3

Each factor is all-or-nothing (case-insensitive exact match). A field that
is missing on both sides compares "" == "" and therefore counts as a match.
"""
from typing import Optional

from packages.domain.transformation.schemas import (
    CacheTemplate,
    ExampleSourceProduct,
    SourceProduct,
)

# Best similarity needed to reuse a template instead of calling the AI
CACHE_HIT_THRESHOLD = 0.8

# Best similarity at which a template counts as usable when reporting matches
USABLE_TEMPLATE_THRESHOLD = 0.7

CATEGORY_WEIGHT = 0.4
SUBCATEGORY_WEIGHT = 0.3
BRAND_WEIGHT = 0.3


def generate_cache_key(product: SourceProduct) -> str:
    """
    Build the template bucket key for a product.

    Example:
        Cat Desc="Fretted", Sub Desc="Acoustic", Mfg="Yamaha" → "fretted|acoustic|yamaha"
    """
    category = (product.category or "unknown").lower().strip()
    subcategory = (product.subcategory or "").lower().strip()
    brand = (product.mfg or "unknown").lower().strip()

    return f"{category}|{subcategory}|{brand}"


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").lower() == (b or "").lower()


def calculate_similarity(candidate: SourceProduct, example: ExampleSourceProduct) -> float:
    """Score a product against one cached example's source fields (0.0 - 1.0)"""
    score = 0.0

    if _same(candidate.category, example.category):
        score += CATEGORY_WEIGHT

    if _same(candidate.subcategory, example.subcategory):
        score += SUBCATEGORY_WEIGHT

    if _same(candidate.mfg, example.mfg):
        score += BRAND_WEIGHT

    return round(score, 4)


def best_match(candidate: SourceProduct, template: CacheTemplate) -> Optional[float]:
    """
    Highest similarity over the template's examples.

    Returns:
        Best score, or None when the template has no examples (a miss,
        not a score of 0)
    """
    if not template.examples:
        return None

    return max(
        calculate_similarity(candidate, example.source_product)
        for example in template.examples
    )
