"""
Data schemas for the transformation module

Persisted documents (field mapping, transform cache) use the camelCase
keys of the on-disk JSON through aliases; dump with by_alias=True.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_text(value: Any) -> Optional[str]:
    """Coerce spreadsheet/API scalars to strings, None stays None"""
    if value is None:
        return None
    return str(value)


class SourceProduct(BaseModel):
    """
    Typed view over one AIMSii inventory record.

    AIMSii exports use column names like "Mfg" and "Cat Desc"; records that
    come from other sources may use category/subcategory/vendor/brand
    instead, which from_record() resolves as fallbacks. The raw record is
    kept by the caller; this view only carries the fields the cache and
    template logic read.
    """
    model_config = ConfigDict(extra="ignore")

    mfg: Optional[str] = Field(None, alias="Mfg", description="Manufacturer / brand")
    model: Optional[str] = Field(None, alias="Model", description="Model code")
    desc: Optional[str] = Field(None, alias="Desc", description="Short description")
    category: Optional[str] = Field(None, alias="Cat Desc")
    subcategory: Optional[str] = Field(None, alias="Sub Desc")
    sku: Optional[str] = Field(None, alias="Sku")
    price: Optional[Any] = Field(None, alias="Ourprice")
    quantity: Optional[Any] = Field(None, alias="Comp Qty")
    barcode: Optional[str] = Field(None, alias="Barcode")

    @field_validator("mfg", "model", "desc", "category", "subcategory", "sku", "barcode", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SourceProduct":
        """Build the typed view, applying the non-AIMSii field fallbacks"""
        return cls.model_validate({
            "Mfg": record.get("Mfg") or record.get("vendor") or record.get("brand"),
            "Model": record.get("Model"),
            "Desc": record.get("Desc"),
            "Cat Desc": record.get("Cat Desc") or record.get("category"),
            "Sub Desc": record.get("Sub Desc") or record.get("subcategory"),
            "Sku": record.get("Sku") or record.get("sku"),
            "Ourprice": record.get("Ourprice") or record.get("price"),
            "Comp Qty": record.get("Comp Qty") or record.get("quantity"),
            "Barcode": record.get("Barcode") or record.get("barcode"),
        })

    @property
    def identity(self) -> str:
        """Identity used for logs and error correlation"""
        return self.sku or " ".join(p for p in (self.mfg, self.model) if p) or "unknown"


class ExampleSourceProduct(BaseModel):
    """Subset of a source record kept with each cached example"""
    model_config = ConfigDict(populate_by_name=True)

    mfg: Optional[str] = Field(None, alias="Mfg")
    model: Optional[str] = Field(None, alias="Model")
    desc: Optional[str] = Field(None, alias="Desc")
    category: Optional[str] = Field(None, alias="Cat Desc")
    subcategory: Optional[str] = Field(None, alias="Sub Desc")

    @field_validator("mfg", "model", "desc", "category", "subcategory", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)

    @classmethod
    def from_product(cls, product: SourceProduct) -> "ExampleSourceProduct":
        return cls(
            mfg=product.mfg,
            model=product.model,
            desc=product.desc,
            category=product.category,
            subcategory=product.subcategory,
        )


class CacheExample(BaseModel):
    """One (source, generated output) pair"""
    model_config = ConfigDict(populate_by_name=True)

    source_product: ExampleSourceProduct = Field(..., alias="sourceProduct")
    shopify_product: Dict[str, Any] = Field(..., alias="shopifyProduct")
    cached_at: str = Field(..., alias="cachedAt")


class CacheTemplate(BaseModel):
    """
    Bucket of recent examples sharing one cache key.

    category/subcategory/brand are copies of the values seen when the
    template was created; lookups always re-derive the key from the product.
    """
    model_config = ConfigDict(populate_by_name=True)

    category: str = "unknown"
    subcategory: str = ""
    brand: str = "unknown"
    examples: List[CacheExample] = Field(default_factory=list)
    created_at: str = Field(..., alias="createdAt")
    last_used: Optional[str] = Field(None, alias="lastUsed")


class CacheStats(BaseModel):
    """Running counters; total_transformations == cache_hits + cache_misses"""
    model_config = ConfigDict(populate_by_name=True)

    total_transformations: int = Field(0, alias="totalTransformations")
    cache_hits: int = Field(0, alias="cacheHits")
    cache_misses: int = Field(0, alias="cacheMisses")
    created_at: Optional[str] = Field(None, alias="createdAt")
    last_updated: Optional[str] = Field(None, alias="lastUpdated")


class TransformCache(BaseModel):
    """Root of the persisted transform cache document"""
    model_config = ConfigDict(populate_by_name=True)

    templates: Dict[str, CacheTemplate] = Field(default_factory=dict)
    stats: CacheStats = Field(default_factory=CacheStats)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TemplateMatch(BaseModel):
    """Template found for a product together with its best similarity"""
    cache_key: str
    template: CacheTemplate
    similarity: float = Field(..., ge=0.0, le=1.0)


class CacheStatsReport(BaseModel):
    """Cache statistics for reporting (hit_rate is a percentage)"""
    model_config = ConfigDict(populate_by_name=True)

    templates: int
    total_transformations: int = Field(..., alias="totalTransformations")
    cache_hits: int = Field(..., alias="cacheHits")
    cache_misses: int = Field(..., alias="cacheMisses")
    hit_rate: float = Field(..., alias="hitRate")
    created_at: Optional[str] = Field(None, alias="createdAt")
    last_updated: Optional[str] = Field(None, alias="lastUpdated")


class CombinedField(BaseModel):
    """Target field built from several source fields, e.g. "{Mfg} {Model}" """
    template: str
    fields: List[str] = Field(default_factory=list)


class FieldMappingMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    generated_at: Optional[str] = Field(None, alias="generatedAt")
    version: Optional[str] = None
    sample_size: Optional[int] = Field(None, alias="sampleSize")
    note: Optional[str] = None

    @field_validator("generated_at", "version", "note", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return _as_text(v)


class FieldMapping(BaseModel):
    """
    Mapping from AIMSii record fields to Shopify product fields.

    Generated once from a sample of records and persisted; hand edits to
    the persisted file are picked up on the next load.
    """
    model_config = ConfigDict(populate_by_name=True)

    direct_mappings: Dict[str, str] = Field(default_factory=dict, alias="directMappings")
    combined_fields: Dict[str, CombinedField] = Field(default_factory=dict, alias="combinedFields")
    generation_rules: Dict[str, Any] = Field(default_factory=dict, alias="generationRules")
    metadata: FieldMappingMetadata = Field(default_factory=FieldMappingMetadata)

    @field_validator("direct_mappings", mode="before")
    @classmethod
    def drop_unmapped_fields(cls, v):
        """Entries without a source column name (e.g. barcode: null) are skipped"""
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        return {k: s for k, s in v.items() if isinstance(s, str) and s}

    @field_validator("combined_fields", mode="before")
    @classmethod
    def drop_template_less_fields(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        combined = {}
        for name, combination in v.items():
            if not isinstance(combination, dict):
                continue
            template = combination.get("template")
            if not isinstance(template, str) or not template:
                continue
            fields = combination.get("fields") or []
            combined[name] = {
                "template": template,
                "fields": [f for f in fields if isinstance(f, str)] if isinstance(fields, list) else [],
            }
        return combined

    @field_validator("generation_rules", mode="before")
    @classmethod
    def default_rules(cls, v):
        return {} if v is None else v

    @field_validator("metadata", mode="before")
    @classmethod
    def default_metadata(cls, v):
        return {} if not isinstance(v, (dict, FieldMappingMetadata)) else v

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TransformSource(str, Enum):
    """Where a transform result came from"""
    CACHE = "cache"   # Applied a cached template, no AI call
    AI = "ai"         # Generated by the AI provider and cached


class TransformResult(BaseModel):
    """
    Output of one product transform.

    shopify_product is the normalized {"product": {...}} payload handed to
    the product-creation collaborator.
    """
    shopify_product: Dict[str, Any]
    source: TransformSource
    cache_key: str
    similarity: Optional[float] = Field(None, ge=0.0, le=1.0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "shopify_product": {
                    "product": {
                        "title": "Yamaha FS800 Acoustic Guitar",
                        "body_html": "<p>...</p>",
                        "vendor": "Yamaha",
                        "product_type": "Fretted",
                        "tags": "Fretted, Acoustic, Yamaha",
                        "published": False,
                        "variants": [{"price": "199.99", "sku": "FS800", "inventory_quantity": 3,
                                      "barcode": "", "option1": "Default Title"}],
                        "images": [],
                    }
                },
                "source": "cache",
                "cache_key": "fretted|acoustic|yamaha",
                "similarity": 1.0,
            }
        }
    )
