"""
Interfaces for the systems the sync talks to.

Concrete AIMSii and Shopify clients live outside this package; anything
with these methods can be passed to SyncService.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol


class InventorySource(Protocol):
    """Where inventory records come from (AIMSii API, spreadsheet export)"""

    async def fetch_records(self, since: datetime) -> List[Dict[str, Any]]:
        """Records added or changed since the given time"""
        ...

    async def get_sample_records(self, count: int) -> List[Dict[str, Any]]:
        """A handful of representative records for field mapping generation"""
        ...


class ProductCatalog(Protocol):
    """Where product drafts are created (Shopify Admin API)"""

    async def find_product_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        """Existing product with this SKU, or None"""
        ...

    async def create_product_draft(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create an unpublished product; returns at least {"id": ...}"""
        ...
