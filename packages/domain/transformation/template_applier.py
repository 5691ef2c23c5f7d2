"""
Template Applier - Build a Shopify payload from a cached example

Uses the most recently cached example in the matched template (not the
best-scoring one). Only the description structure is reused; title and
variant always come from the new product.

Placeholders understood in a cached body_html (case-insensitive):
    {{mfg}} {{model}} {{desc}} {{category}} {{subcategory}}
"""
import re
from typing import Any, Dict

import structlog

from packages.domain.transformation.schemas import CacheTemplate, SourceProduct
from packages.domain.transformation.shopify_format import build_default_variant, build_tags

logger = structlog.get_logger()


def _substitute_placeholders(body_html: str, product: SourceProduct) -> str:
    replacements = {
        "mfg": product.mfg or "",
        "model": product.model or "",
        "desc": product.desc or "",
        "category": product.category or "",
        "subcategory": product.subcategory or "",
    }
    for token, value in replacements.items():
        body_html = re.sub(
            r"\{\{" + token + r"\}\}",
            lambda _m, v=value: v,
            body_html,
            flags=re.IGNORECASE,
        )
    return body_html


def build_title(product: SourceProduct, mapped_fields: Dict[str, Any]) -> str:
    """Title from the mapped title field, else "<Mfg> <Model> <Desc>" """
    mapped_title = mapped_fields.get("title")
    if mapped_title:
        return str(mapped_title)
    parts = (product.mfg, product.model, product.desc)
    return re.sub(r"\s+", " ", " ".join(p for p in parts if p)).strip()


def apply_template(
    product: SourceProduct,
    template: CacheTemplate,
    mapped_fields: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Synthesize a Shopify payload for product from the template's latest example.

    Args:
        product: Incoming product
        template: Matched template (must have at least one example)
        mapped_fields: Output of apply_field_mappings for this product

    Returns:
        {"product": {...}} payload, always a draft with one variant and no images
    """
    latest_example = template.examples[-1]
    cached = latest_example.shopify_product.get("product", latest_example.shopify_product)

    body_html = _substitute_placeholders(cached.get("body_html") or "", product)

    result = {
        "product": {
            "title": build_title(product, mapped_fields),
            "body_html": body_html,
            "vendor": product.mfg or mapped_fields.get("vendor") or cached.get("vendor") or "",
            "product_type": (
                product.category
                or mapped_fields.get("product_type")
                or cached.get("product_type")
                or ""
            ),
            "tags": build_tags(product) or mapped_fields.get("tags") or cached.get("tags") or "",
            "published": False,
            "variants": [build_default_variant(product, mapped_fields)],
            "images": [],
        }
    }

    logger.info("template_applied",
                title=result["product"]["title"],
                template_examples=len(template.examples),
                example_cached_at=latest_example.cached_at)

    return result
