"""
Transform Cache - Reusable AI transformations grouped by category and brand

Every AI-generated Shopify payload is stored as an example under the
product's category|subcategory|brand key (last 5 per key). Later products
in the same bucket that score high enough against a stored example are
built from that example instead of calling the AI again.

Cache Strategy:
1. First product for a category/brand → AI call → cached as an example
2. Next product in the same bucket → template hit → no AI call
3. Novel brands or categories → AI call → bucket grows

The whole cache is one JSON document on disk (see to_document()). The
repository only reads and writes it; hit/miss counters are updated by the
transform service so they reflect end-to-end outcomes.
"""
import copy
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from packages.common.errors import CacheCorruptError
from packages.common.json_store import read_json, write_json_atomic
from packages.domain.transformation.schemas import (
    CacheExample,
    CacheStats,
    CacheStatsReport,
    CacheTemplate,
    ExampleSourceProduct,
    SourceProduct,
    TemplateMatch,
    TransformCache,
)
from packages.domain.transformation.similarity import (
    USABLE_TEMPLATE_THRESHOLD,
    best_match,
    generate_cache_key,
)

logger = structlog.get_logger()

DEFAULT_MAX_EXAMPLES = 5


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a Z suffix"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TransformCacheRepository:
    """
    Repository for the persisted transform cache document.

    Usage:
        repo = TransformCacheRepository("ai-transformation-cache.json")
        cache = repo.load()
        match = repo.find_matching_template(product, cache)
        ...
        repo.add_example(product, shopify_payload, cache)
        repo.save(cache)
    """

    def __init__(
        self,
        cache_path: str | Path,
        max_examples: int = DEFAULT_MAX_EXAMPLES,
        similarity_threshold: float = USABLE_TEMPLATE_THRESHOLD,
    ):
        self.cache_path = Path(cache_path)
        self.max_examples = max_examples
        self.similarity_threshold = similarity_threshold

    def load(self) -> TransformCache:
        """
        Load the cache from disk.

        Returns:
            Persisted cache, or a new empty cache if no file exists

        Raises:
            CacheCorruptError: If the file is not valid JSON or not a cache document
        """
        if not self.cache_path.exists():
            logger.info("transform_cache_not_found",
                        path=str(self.cache_path),
                        message="Starting with an empty cache")
            return TransformCache(stats=CacheStats(created_at=utc_now_iso()))

        try:
            document = read_json(self.cache_path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error("transform_cache_corrupt",
                         path=str(self.cache_path),
                         error=str(e))
            raise CacheCorruptError(str(self.cache_path), f"invalid JSON: {e}") from e

        try:
            cache = TransformCache.model_validate(document)
        except ValidationError as e:
            logger.error("transform_cache_corrupt",
                         path=str(self.cache_path),
                         error=str(e))
            raise CacheCorruptError(str(self.cache_path), f"invalid structure: {e}") from e

        logger.info("transform_cache_loaded",
                    path=str(self.cache_path),
                    templates=len(cache.templates),
                    total_transformations=cache.stats.total_transformations)
        return cache

    def save(self, cache: TransformCache) -> None:
        """
        Persist the whole cache, stamping stats.lastUpdated.

        Raises:
            OSError: If the document cannot be written
        """
        cache.stats.last_updated = utc_now_iso()
        write_json_atomic(self.cache_path, cache.to_document())

        logger.debug("transform_cache_saved",
                     path=str(self.cache_path),
                     templates=len(cache.templates))

    def lookup(self, cache_key: str, cache: TransformCache) -> Optional[CacheTemplate]:
        """Template stored under cache_key, if any (pure read)"""
        return cache.templates.get(cache_key)

    def find_matching_template(
        self,
        product: SourceProduct,
        cache: TransformCache,
    ) -> Optional[TemplateMatch]:
        """
        Find a usable template for product.

        Returns:
            TemplateMatch when the product's bucket has examples and the best
            similarity reaches the usable threshold, otherwise None
        """
        cache_key = generate_cache_key(product)
        template = self.lookup(cache_key, cache)

        if template is None:
            return None

        similarity = best_match(product, template)
        if similarity is None or similarity < self.similarity_threshold:
            logger.debug("template_below_threshold",
                         cache_key=cache_key,
                         similarity=similarity,
                         threshold=self.similarity_threshold)
            return None

        return TemplateMatch(cache_key=cache_key, template=template, similarity=similarity)

    def add_example(
        self,
        product: SourceProduct,
        shopify_product: Dict[str, Any],
        cache: TransformCache,
    ) -> CacheTemplate:
        """
        Append a transformation to the product's template (in memory only).

        Creates the template on first use and keeps only the most recent
        max_examples examples, oldest evicted first.
        """
        cache_key = generate_cache_key(product)
        now = utc_now_iso()

        template = cache.templates.get(cache_key)
        if template is None:
            template = CacheTemplate(
                category=product.category or "unknown",
                subcategory=product.subcategory or "",
                brand=product.mfg or "unknown",
                examples=[],
                created_at=now,
            )
            cache.templates[cache_key] = template
            logger.info("template_created", cache_key=cache_key)

        template.examples.append(CacheExample(
            source_product=ExampleSourceProduct.from_product(product),
            shopify_product=copy.deepcopy(shopify_product),
            cached_at=now,
        ))

        if len(template.examples) > self.max_examples:
            template.examples = template.examples[-self.max_examples:]

        template.last_used = now

        logger.info("transformation_cached",
                    cache_key=cache_key,
                    examples=len(template.examples))
        return template

    def get_cache_stats(self, cache: TransformCache) -> CacheStatsReport:
        """Cache statistics for monitoring"""
        stats = cache.stats
        if stats.total_transformations > 0:
            hit_rate = round(stats.cache_hits / stats.total_transformations * 100, 1)
        else:
            hit_rate = 0.0

        return CacheStatsReport(
            templates=len(cache.templates),
            total_transformations=stats.total_transformations,
            cache_hits=stats.cache_hits,
            cache_misses=stats.cache_misses,
            hit_rate=hit_rate,
            created_at=stats.created_at,
            last_updated=stats.last_updated,
        )
