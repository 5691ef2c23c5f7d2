"""
Transform Service - Orchestrates AIMSii → Shopify product transformation

Flow:
1. Apply the field mapping to the record (direct + combined fields)
2. Look up the product's category|subcategory|brand template
3. Best similarity >= 0.8 → build from the cached example (no AI call)
4. Otherwise → AI generates the payload → normalize → cache → persist

Example:
- First Yamaha acoustic guitar: AI call, cached under fretted|acoustic|yamaha
- Second Yamaha acoustic guitar: similarity 1.0, cache hit (FREE)
- A Fender acoustic guitar: different key, AI call, new template

Cost:
- Each miss is one AI call; hits cost nothing. The cache converges on the
  store's category/brand mix after the first few syncs.
"""
import asyncio
import json
from typing import Any, Dict, Optional

import structlog

from packages.common.ai_provider import AIProvider, extract_json
from packages.common.errors import GenerationError, TransformError
from packages.common.metrics import (
    CACHE_SAVE_FAILURES,
    TRANSFORM_CACHE_HITS,
    TRANSFORM_CACHE_MISSES,
    TRANSFORM_FAILURES,
)
from packages.domain.transformation.field_mapping import apply_field_mappings
from packages.domain.transformation.schemas import (
    CacheStatsReport,
    FieldMapping,
    SourceProduct,
    TransformCache,
    TransformResult,
    TransformSource,
)
from packages.domain.transformation.shopify_format import normalize_shopify_payload
from packages.domain.transformation.similarity import (
    CACHE_HIT_THRESHOLD,
    best_match,
    generate_cache_key,
)
from packages.domain.transformation.template_applier import apply_template
from packages.domain.transformation.transform_cache import TransformCacheRepository

logger = structlog.get_logger()

TRANSFORM_SYSTEM_PROMPT = """You are a product data transformation expert for musical instruments and retail products.

Transform the provided product data into Shopify-compatible JSON format.

CRITICAL RULES:
1. Create engaging, SEO-friendly product titles
2. Generate detailed, formatted HTML descriptions that highlight product features
3. Use proper product categorization
4. Add relevant tags for searchability
5. DO NOT include or reference images - images will be added manually later
6. ALWAYS set published: false (products must be drafts)

The product should sound professional and appealing to musicians and music enthusiasts."""

POPULATE_SYSTEM_PROMPT = """You are helping populate missing product information for an e-commerce store.
Generate professional, relevant content for musical instruments and retail products."""


class TransformService:
    """
    Single entry point for turning one inventory record into a Shopify payload.

    The service owns the in-memory cache; transforms are serialized by one
    lock so a lookup and its write-back never interleave with another
    transform.

    Usage:
        service = TransformService(ai_provider, TransformCacheRepository(path))
        result = await service.transform_product(record, field_mapping)
        print(result.source, result.shopify_product["product"]["title"])
    """

    def __init__(
        self,
        ai_provider: AIProvider,
        cache_repository: TransformCacheRepository,
        cache: Optional[TransformCache] = None,
        hit_threshold: float = CACHE_HIT_THRESHOLD,
    ):
        self.ai_provider = ai_provider
        self.repository = cache_repository
        self.cache = cache
        self.hit_threshold = hit_threshold
        self._lock = asyncio.Lock()

    def initialize_cache(self) -> TransformCache:
        """Load the cache on first use; later calls return the same object"""
        if self.cache is None:
            self.cache = self.repository.load()
        return self.cache

    def get_cache_stats(self) -> Optional[CacheStatsReport]:
        if self.cache is None:
            return None
        return self.repository.get_cache_stats(self.cache)

    async def transform_product(
        self,
        record: Dict[str, Any],
        field_mapping: FieldMapping,
        row_index: Optional[int] = None,
    ) -> TransformResult:
        """
        Transform one inventory record, reusing a cached template when possible.

        Args:
            record: Raw AIMSii record (e.g. {"Mfg": "Yamaha", "Cat Desc": "Fretted", ...})
            field_mapping: Resolved field mapping
            row_index: Position in the batch, used for error correlation when
                the record has no SKU

        Returns:
            TransformResult with the normalized {"product": {...}} payload

        Raises:
            TransformError: If the AI call fails or returns unusable output
        """
        async with self._lock:
            cache = self.initialize_cache()
            product = SourceProduct.from_record(record)
            mapped_fields = apply_field_mappings(record, field_mapping)
            cache_key = generate_cache_key(product)

            template = self.repository.lookup(cache_key, cache)
            similarity = best_match(product, template) if template is not None else None

            if similarity is not None and similarity >= self.hit_threshold:
                shopify_product = apply_template(product, template, mapped_fields)

                cache.stats.cache_hits += 1
                cache.stats.total_transformations += 1
                TRANSFORM_CACHE_HITS.inc()

                logger.info("transform_cache_hit",
                            product=product.identity,
                            cache_key=cache_key,
                            similarity=similarity)

                return TransformResult(
                    shopify_product=shopify_product,
                    source=TransformSource.CACHE,
                    cache_key=cache_key,
                    similarity=similarity,
                )

            logger.info("transform_cache_miss",
                        product=product.identity,
                        cache_key=cache_key,
                        best_similarity=similarity)

            identity = product.sku or (f"row {row_index}" if row_index is not None else product.identity)
            shopify_product = await self._generate_payload(record, product, mapped_fields, identity)

            cache.stats.cache_misses += 1
            cache.stats.total_transformations += 1
            TRANSFORM_CACHE_MISSES.inc()

            self.repository.add_example(product, shopify_product, cache)
            self._persist(cache)

            return TransformResult(
                shopify_product=shopify_product,
                source=TransformSource.AI,
                cache_key=cache_key,
                similarity=similarity,
            )

    async def _generate_payload(
        self,
        record: Dict[str, Any],
        product: SourceProduct,
        mapped_fields: Dict[str, Any],
        identity: str,
    ) -> Dict[str, Any]:
        user_prompt = f"""Transform this product into Shopify format:

Source Product Data:
{json.dumps(record, indent=2, default=str)}

Mapped Fields (use these as a starting point):
{json.dumps(mapped_fields, indent=2, default=str)}

Generate a complete Shopify product with:
- Professional title combining brand, model, and description
- Rich HTML description highlighting features and benefits
- Appropriate product type and tags
- Variant with price, SKU, quantity, and barcode
- NO images array (images handled separately)
- published: false (draft mode)

Return ONLY valid JSON matching the Shopify product structure."""

        try:
            response_text = await self.ai_provider.generate(
                TRANSFORM_SYSTEM_PROMPT,
                user_prompt,
                temperature=0.3,
                response_format="json",
            )
            payload = normalize_shopify_payload(extract_json(response_text), product, mapped_fields)
        except (GenerationError, ValueError) as e:
            TRANSFORM_FAILURES.inc()
            logger.error("transform_failed", product=identity, error=str(e))
            raise TransformError(identity, str(e)) from e

        logger.info("transform_generated",
                    product=identity,
                    title=payload["product"].get("title"))
        return payload

    def _persist(self, cache: TransformCache) -> None:
        try:
            self.repository.save(cache)
        except OSError as e:
            # In-memory cache stays ahead of disk until the next successful save
            CACHE_SAVE_FAILURES.inc()
            logger.error("transform_cache_save_failed",
                         path=str(self.repository.cache_path),
                         error=str(e))

    async def populate_missing_fields(
        self,
        record: Dict[str, Any],
        shopify_product: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Fill an empty body_html and/or tags with one AI call.

        Returns the payload unchanged (and makes no call) when nothing is
        missing.

        Raises:
            TransformError: If the AI call fails or returns unusable output
        """
        inner = shopify_product.get("product", shopify_product)
        missing = [name for name in ("body_html", "tags") if not str(inner.get(name) or "").strip()]
        if not missing:
            return shopify_product

        product = SourceProduct.from_record(record)
        logger.info("populating_missing_fields", product=product.identity, fields=missing)

        requests = []
        if "body_html" in missing:
            requests.append("- Professional HTML product description (2-3 paragraphs highlighting features and benefits)")
        if "tags" in missing:
            requests.append("- Relevant search tags (comma-separated)")

        user_prompt = (
            f"Product: {product.mfg or ''} {product.model or ''} - {product.desc or ''}\n"
            f"Category: {product.category or ''} > {product.subcategory or ''}\n\n"
            "Generate:\n" + "\n".join(requests) + "\n\n"
            'Return JSON with: { "body_html": "...", "tags": "..." }'
        )

        try:
            response_text = await self.ai_provider.generate(
                POPULATE_SYSTEM_PROMPT,
                user_prompt,
                temperature=0.4,
                response_format="json",
            )
            generated = extract_json(response_text)
            if not isinstance(generated, dict):
                raise ValueError(f"Expected a JSON object, got {type(generated).__name__}")
        except (GenerationError, ValueError) as e:
            logger.error("populate_missing_fields_failed", product=product.identity, error=str(e))
            raise TransformError(product.identity, str(e)) from e

        for name in missing:
            if generated.get(name):
                inner[name] = generated[name]

        return shopify_product
