"""
Sync Module - Pushes new AIMSii inventory into Shopify as product drafts

Per record: SKU check → duplicate check → transform → create draft.
A failing record is counted and logged; the batch keeps going.
"""

from packages.domain.sync.schemas import SyncReason, SyncRecordResult, SyncStats
from packages.domain.sync.sync_service import SyncService, should_sync_category

__all__ = [
    'SyncReason',
    'SyncRecordResult',
    'SyncStats',
    'SyncService',
    'should_sync_category',
]
