#!/usr/bin/env python3
"""
Run AIMSii records through the AI transform pipeline and report cache performance.

Nothing is created in Shopify; transformed payloads are printed or written
to a file for review. The transform cache and field mapping files are
updated exactly as a real sync would update them.

Usage:
    python scripts/transform_products.py <records.json> [output.json]

Example:
    python scripts/transform_products.py vendor-samples/aimsii-export.json previews.json
"""
import asyncio
import json
import os
import sys

# Add parent directory to path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packages.common.ai_provider import AIProvider
from packages.common.config import get_settings
from packages.common.errors import TransformError
from packages.common.logging_setup import configure_logging
from packages.domain.transformation.field_mapping import FieldMappingResolver
from packages.domain.transformation.transform_cache import TransformCacheRepository
from packages.domain.transformation.transform_service import TransformService


async def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/transform_products.py <records.json> [output.json]")
        sys.exit(1)

    settings = get_settings()
    configure_logging(settings.log_level, json_logs=False)

    with open(sys.argv[1], encoding="utf-8") as f:
        records = json.load(f)

    ai_provider = AIProvider(settings)
    resolver = FieldMappingResolver(
        ai_provider,
        settings.field_mapping_path,
        sample_size=settings.mapping_sample_size,
    )
    service = TransformService(
        ai_provider,
        TransformCacheRepository(
            settings.transform_cache_path,
            max_examples=settings.max_examples_per_template,
            similarity_threshold=settings.cache_similarity_threshold,
        ),
        hit_threshold=settings.cache_hit_threshold,
    )

    field_mapping = await resolver.resolve(records)
    service.initialize_cache()

    print(f"Transforming {len(records)} records...\n")

    previews = []
    failures = 0
    for index, record in enumerate(records):
        try:
            result = await service.transform_product(record, field_mapping, row_index=index)
        except TransformError as e:
            failures += 1
            print(f"[{index + 1}/{len(records)}] FAILED {e.identity}: {e.message}")
            continue

        title = result.shopify_product["product"].get("title")
        print(f"[{index + 1}/{len(records)}] {result.source.value:5s} {result.cache_key:40s} {title}")
        previews.append(result.shopify_product)

    if len(sys.argv) > 2:
        with open(sys.argv[2], "w", encoding="utf-8") as f:
            json.dump(previews, f, indent=2)
        print(f"\nWrote {len(previews)} payloads to {sys.argv[2]}")

    stats = service.get_cache_stats()
    print("\nCache Performance:")
    print(f"  Templates: {stats.templates}")
    print(f"  Hit rate: {stats.hit_rate}%")
    print(f"  Hits: {stats.cache_hits}  Misses: {stats.cache_misses}")
    print(f"  Failures: {failures}")


if __name__ == "__main__":
    asyncio.run(main())
