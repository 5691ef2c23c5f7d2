"""
Sync Service - Orchestrates one AIMSii → Shopify sync run

Flow (per record):
1. Skip records without a SKU
2. Skip SKUs that already exist in Shopify (no duplicates)
3. Dry run stops here
4. Transform with the AI learning system (cache first, AI on miss)
5. Optionally fill an empty description/tags
6. Create the product as an unpublished draft

Products are processed sequentially; a failed record is logged and
counted, and the run continues with the next one.
"""
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog

from packages.common.config import Settings
from packages.domain.sync.collaborators import InventorySource, ProductCatalog
from packages.domain.sync.schemas import SyncReason, SyncRecordResult, SyncStats
from packages.domain.transformation.field_mapping import FieldMappingResolver
from packages.domain.transformation.schemas import FieldMapping
from packages.domain.transformation.transform_service import TransformService

logger = structlog.get_logger()

CACHE_REPORT_INTERVAL = 10


def should_sync_category(category: Optional[str], enabled: bool, allowed: Iterable[str]) -> bool:
    """
    Check a record's category against the configured filter.

    Everything passes when filtering is off or the allowed list is empty.
    Comparison is case-insensitive.
    """
    if not enabled:
        return True

    allowed = [a.lower() for a in allowed]
    if not allowed:
        return True

    return (category or "").lower() in allowed


def _record_sku(record: Dict[str, Any]) -> Optional[str]:
    sku = record.get("Sku") or record.get("sku")
    return str(sku).strip() if sku not in (None, "") else None


def _record_category(record: Dict[str, Any]) -> Optional[str]:
    return record.get("Cat Desc") or record.get("category")


class SyncService:
    """
    Runs inventory records through the transform pipeline into Shopify.

    Usage:
        service = SyncService(settings, inventory, catalog, transform_service, resolver)
        stats = await service.sync_products()
        print(f"Created {stats.created}, failed {stats.failed}")
    """

    def __init__(
        self,
        settings: Settings,
        inventory: InventorySource,
        catalog: ProductCatalog,
        transform_service: TransformService,
        mapping_resolver: FieldMappingResolver,
    ):
        self.settings = settings
        self.inventory = inventory
        self.catalog = catalog
        self.transform_service = transform_service
        self.mapping_resolver = mapping_resolver

    async def process_record(
        self,
        record: Dict[str, Any],
        field_mapping: FieldMapping,
        row_index: Optional[int] = None,
    ) -> SyncRecordResult:
        """
        Process one inventory record end to end.

        Never raises for per-record problems; the outcome is in the result.
        """
        sku = _record_sku(record)
        if not sku:
            logger.warning("record_missing_sku", row_index=row_index)
            return SyncRecordResult(success=False, reason=SyncReason.MISSING_SKU)

        try:
            existing = await self.catalog.find_product_by_sku(sku)
            if existing:
                logger.warning("product_already_exists",
                               sku=sku,
                               shopify_id=existing.get("id"))
                return SyncRecordResult(
                    success=False,
                    reason=SyncReason.ALREADY_EXISTS,
                    sku=sku,
                    shopify_id=_as_id(existing.get("id")),
                )

            if self.settings.dry_run:
                logger.info("dry_run_skip_transform", sku=sku)
                return SyncRecordResult(success=True, reason=SyncReason.DRY_RUN, sku=sku)

            result = await self.transform_service.transform_product(record, field_mapping, row_index=row_index)
            payload = result.shopify_product

            if self.settings.populate_missing_fields:
                payload = await self.transform_service.populate_missing_fields(record, payload)

            payload["product"]["published"] = False

            created = await self.catalog.create_product_draft(payload)

        except Exception as e:
            logger.exception("record_processing_failed", sku=sku, row_index=row_index, error=str(e))
            return SyncRecordResult(
                success=False,
                reason=SyncReason.PROCESSING_ERROR,
                sku=sku,
                error=str(e),
            )

        title = payload["product"].get("title")
        logger.info("product_draft_created",
                    sku=sku,
                    shopify_id=created.get("id"),
                    title=title,
                    source=result.source.value)

        return SyncRecordResult(
            success=True,
            reason=SyncReason.CREATED,
            sku=sku,
            shopify_id=_as_id(created.get("id")),
            title=title,
            transform_source=result.source.value,
        )

    async def sync_products(self, records: Optional[List[Dict[str, Any]]] = None) -> SyncStats:
        """
        Run one sync.

        Args:
            records: Records to process; fetched from the inventory source for
                the lookback window when omitted

        Raises:
            MappingGenerationError: If no field mapping can be resolved
            CacheCorruptError: If the persisted transform cache is unreadable
        """
        started = time.monotonic()
        stats = SyncStats()

        logger.info("sync_started",
                    lookback_hours=self.settings.lookback_hours,
                    filter_by_category=self.settings.filter_by_category,
                    categories=self.settings.category_filter,
                    dry_run=self.settings.dry_run,
                    review_mode=self.settings.review_mode)

        try:
            field_mapping = await self.mapping_resolver.resolve()
            self.transform_service.initialize_cache()

            if records is None:
                since = datetime.now(timezone.utc) - timedelta(hours=self.settings.lookback_hours)
                records = await self.inventory.fetch_records(since)

            records = [
                r for r in records
                if should_sync_category(
                    _record_category(r),
                    self.settings.filter_by_category,
                    self.settings.category_filter,
                )
            ]

            if self.settings.review_mode and len(records) > self.settings.batch_size:
                logger.info("review_mode_batch_limit",
                            available=len(records),
                            batch_size=self.settings.batch_size)
                records = records[:self.settings.batch_size]

            stats.total = len(records)
            logger.info("records_to_process", count=stats.total)

            for index, record in enumerate(records):
                result = await self.process_record(record, field_mapping, row_index=index)
                stats.record(result)

                if (index + 1) % CACHE_REPORT_INTERVAL == 0:
                    self._log_cache_performance("cache_performance")

        finally:
            stats.duration_seconds = round(time.monotonic() - started, 2)
            logger.info("sync_complete", **stats.model_dump())
            self._log_cache_performance("cache_performance_final")

        return stats

    def _log_cache_performance(self, event: str) -> None:
        report = self.transform_service.get_cache_stats()
        if report is None:
            return
        logger.info(event,
                    templates=report.templates,
                    hit_rate=report.hit_rate,
                    cache_hits=report.cache_hits,
                    cache_misses=report.cache_misses,
                    ai_calls_avoided=report.cache_hits)


def _as_id(value: Any) -> Optional[str]:
    return None if value is None else str(value)
