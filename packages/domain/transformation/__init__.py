"""
Transformation Module - AI-assisted AIMSii → Shopify product transformation

Two learned artifacts keep AI spend down:
1. Field mapping (one-time): AI maps AIMSii columns to Shopify fields
2. Transform cache (ongoing): AI output is stored per category|subcategory|brand
   and reused for similar products

Cache strategy:
- First product for a category/brand → AI call
- Similar products afterwards → template hit (free)
- Hit threshold 0.8 on a 0.4/0.3/0.3 category/subcategory/brand score

Example flow:
- Yamaha FS800 (Fretted > Acoustic) → AI → cached under fretted|acoustic|yamaha
- Yamaha FG830 (Fretted > Acoustic) → similarity 1.0 → built from the cached example
"""

from packages.domain.transformation.schemas import (
    FieldMapping,
    SourceProduct,
    TransformCache,
    TransformResult,
    TransformSource,
)

__all__ = [
    'FieldMapping',
    'SourceProduct',
    'TransformCache',
    'TransformResult',
    'TransformSource',
]
