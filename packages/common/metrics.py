"""
Prometheus counters for the transform pipeline (exposed at /metrics)
"""
from prometheus_client import Counter

TRANSFORM_CACHE_HITS = Counter(
    "transform_cache_hits_total",
    "Products transformed from a cached template without an AI call",
)

TRANSFORM_CACHE_MISSES = Counter(
    "transform_cache_misses_total",
    "Products transformed with an AI generation call",
)

TRANSFORM_FAILURES = Counter(
    "transform_failures_total",
    "Product transforms that raised TransformError",
)

CACHE_SAVE_FAILURES = Counter(
    "transform_cache_save_failures_total",
    "Cache write-backs that failed to persist (in-memory state kept)",
)

AI_GENERATION_CALLS = Counter(
    "ai_generation_calls_total",
    "Text generation calls by provider and outcome",
    ["provider", "outcome"],
)
