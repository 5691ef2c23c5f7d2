"""
Data schemas for the sync module
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SyncReason(str, Enum):
    """Outcome of processing one inventory record"""
    CREATED = "created"
    DRY_RUN = "dry_run"
    MISSING_SKU = "missing_sku"
    ALREADY_EXISTS = "already_exists"
    PROCESSING_ERROR = "processing_error"


class SyncRecordResult(BaseModel):
    """Result of processing one record"""
    success: bool
    reason: SyncReason
    sku: Optional[str] = None
    shopify_id: Optional[str] = None
    title: Optional[str] = None
    transform_source: Optional[str] = Field(None, description="cache or ai")
    error: Optional[str] = None


class SyncStats(BaseModel):
    """Counters for one sync run"""
    total: int = 0
    created: int = 0
    skipped: int = 0
    already_exists: int = 0
    failed: int = 0
    duration_seconds: float = 0.0

    def record(self, result: SyncRecordResult) -> None:
        if result.success:
            self.created += 1
        elif result.reason == SyncReason.ALREADY_EXISTS:
            self.already_exists += 1
        elif result.reason == SyncReason.MISSING_SKU:
            self.skipped += 1
        else:
            self.failed += 1
