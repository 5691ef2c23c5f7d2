#!/usr/bin/env python3
"""
Print statistics for the persisted transform cache.

Usage:
    python scripts/cache_stats.py [cache.json]
"""
import os
import sys

# Add parent directory to path so we can import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packages.common.config import get_settings
from packages.domain.transformation.transform_cache import TransformCacheRepository


def main():
    path = sys.argv[1] if len(sys.argv) > 1 else get_settings().transform_cache_path

    repository = TransformCacheRepository(path)
    cache = repository.load()
    stats = repository.get_cache_stats(cache)

    print(f"Transform cache: {path}")
    print(f"  Templates: {stats.templates}")
    print(f"  Total transformations: {stats.total_transformations}")
    print(f"  Cache hits: {stats.cache_hits}")
    print(f"  Cache misses: {stats.cache_misses}")
    print(f"  Hit rate: {stats.hit_rate}%")
    print(f"  Created: {stats.created_at}")
    print(f"  Last updated: {stats.last_updated}")

    if cache.templates:
        print("\nTemplates:")
        for key, template in sorted(cache.templates.items()):
            print(f"  {key:45s} {len(template.examples)} examples, last used {template.last_used}")


if __name__ == "__main__":
    main()
