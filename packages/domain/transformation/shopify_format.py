"""
Shopify product payload helpers shared by the cache and AI paths

Every payload leaving the transform pipeline has the shape
{"product": {...}} with published=False, an empty image list and at
least one variant. Images are added manually in Shopify after review.
"""
import copy
from typing import Any, Dict

from packages.domain.transformation.schemas import SourceProduct

DEFAULT_VARIANT_OPTION = "Default Title"


def build_default_variant(product: SourceProduct, mapped_fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the single variant from the product's own price/SKU/quantity/barcode.

    Mapped fields (variants.*) are the fallback when the record lacks the
    AIMSii column.
    """
    price = product.price or mapped_fields.get("variants.price") or "0"
    quantity = product.quantity or mapped_fields.get("variants.inventory_quantity") or 0

    return {
        "price": str(price),
        "sku": product.sku or str(mapped_fields.get("variants.sku") or ""),
        "inventory_quantity": _as_quantity(quantity),
        "barcode": product.barcode or str(mapped_fields.get("variants.barcode") or ""),
        "option1": DEFAULT_VARIANT_OPTION,
    }


def _as_quantity(value: Any) -> Any:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return value


def build_tags(product: SourceProduct) -> str:
    """Comma-separated tags from the product's category, subcategory and brand"""
    return ", ".join(t for t in (product.category, product.subcategory, product.mfg) if t)


def normalize_shopify_payload(
    payload: Dict[str, Any],
    product: SourceProduct,
    mapped_fields: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Enforce the draft/no-images/has-variant invariants on a generated payload.

    Wraps a bare product object in {"product": ...}. Applying this to its own
    output returns an equal payload.

    Raises:
        ValueError: If the payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")

    normalized = copy.deepcopy(payload)
    if not isinstance(normalized.get("product"), dict):
        normalized = {"product": normalized}

    inner = normalized["product"]
    inner["published"] = False
    inner["images"] = []

    if not inner.get("variants"):
        inner["variants"] = [build_default_variant(product, mapped_fields)]

    return normalized
