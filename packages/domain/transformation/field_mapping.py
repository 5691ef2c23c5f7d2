"""
Field Mapping - AI-discovered mapping from AIMSii fields to Shopify fields

One-time setup: a small sample of inventory records is sent to the AI,
which proposes direct mappings, combined fields (templates such as
"{Mfg} {Model} {Desc}") and free-text generation rules. The result is
persisted and reused until the file is deleted, so it can be reviewed
and hand-edited.

Images are never mapped; they are added manually in Shopify.
"""
import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import structlog
from pydantic import ValidationError

from packages.common.ai_provider import AIProvider, extract_json
from packages.common.errors import GenerationError, MappingGenerationError
from packages.common.json_store import read_json, write_json_atomic
from packages.domain.transformation.schemas import FieldMapping
from packages.domain.transformation.transform_cache import utc_now_iso

logger = structlog.get_logger()

DEFAULT_SAMPLE_SIZE = 5
MAPPING_VERSION = "1.0"

MAPPING_SYSTEM_PROMPT = """You are a data mapping expert specializing in e-commerce product data.
Your task is to analyze sample product records from an AIMSii inventory system and create optimal field mappings to Shopify's product schema.

AIMSii is a retail inventory management system. Analyze the provided sample records and determine:
1. Which AIMSii fields map to which Shopify fields
2. Which fields should be combined (e.g., manufacturer + model for title)
3. Which fields can be used to generate missing Shopify fields (e.g., description, tags)

IMPORTANT: DO NOT include or reference images. Images will be added manually later.

Required Shopify fields to map:
- title: Product title (should be descriptive and SEO-friendly)
- body_html: HTML product description
- vendor: Manufacturer/brand
- product_type: Product category
- tags: Comma-separated tags for searchability
- variants.price: Selling price
- variants.sku: Stock keeping unit
- variants.inventory_quantity: Available quantity
- variants.barcode: Product barcode (if available)

Respond with a JSON object containing:
1. directMappings: {"shopify_field": "aimsii_field"} simple 1-to-1 mappings
2. combinedFields: {"shopify_field": {"template": "{FieldA} {FieldB}", "fields": ["FieldA", "FieldB"]}}
3. generationRules: {"shopify_field": "instruction for generating this field"}
4. metadata: Any insights about the data structure"""


class SampleSource(Protocol):
    """Anything that can hand out sample inventory records"""

    async def get_sample_records(self, count: int) -> List[Dict[str, Any]]:
        ...


def apply_field_mappings(record: Dict[str, Any], mapping: FieldMapping) -> Dict[str, Any]:
    """
    Apply a field mapping to one source record (pure, no I/O).

    Direct mappings skip missing, None and empty values. Combined fields
    substitute {field} placeholders (missing values become "") and collapse
    whitespace. Generation-rule fields are left for the AI.

    Example:
        combinedFields={"title": {"template": "{Mfg} {Model}", "fields": ["Mfg", "Model"]}}
        {"Mfg": "Yamaha", "Model": "FS800"} → {"title": "Yamaha FS800"}
    """
    result: Dict[str, Any] = {}

    for shopify_field, source_field in mapping.direct_mappings.items():
        value = record.get(source_field)
        if value is not None and value != "":
            result[shopify_field] = value

    for shopify_field, combination in mapping.combined_fields.items():
        if not combination.template:
            continue
        value = combination.template
        for source_field in combination.fields:
            field_value = record.get(source_field)
            value = value.replace(
                "{" + source_field + "}",
                "" if field_value is None else str(field_value),
            )
        result[shopify_field] = re.sub(r"\s+", " ", value).strip()

    return result


def validate_mappings(mapping: Any) -> bool:
    """
    Check that a mapping document is usable.

    Missing sections are logged, not fatal; a non-object is.

    Raises:
        MappingGenerationError: If mapping is not a JSON object
    """
    if isinstance(mapping, FieldMapping):
        mapping = mapping.to_document()

    if not isinstance(mapping, dict):
        raise MappingGenerationError("Invalid mappings: must be an object")

    for section in ("directMappings", "combinedFields", "generationRules"):
        if not mapping.get(section):
            logger.warning("mapping_section_missing", section=section)

    return True


class FieldMappingResolver:
    """
    Loads or generates the field mapping once per process.

    Usage:
        resolver = FieldMappingResolver(ai_provider, "ai-field-mappings.json",
                                        sample_source=inventory)
        mapping = await resolver.resolve()
    """

    def __init__(
        self,
        ai_provider: AIProvider,
        mapping_path: str | Path,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        sample_source: Optional[SampleSource] = None,
    ):
        self.ai_provider = ai_provider
        self.mapping_path = Path(mapping_path)
        self.sample_size = sample_size
        self.sample_source = sample_source
        self._mapping: Optional[FieldMapping] = None

    def load(self) -> Optional[FieldMapping]:
        """
        Load the persisted mapping.

        Returns:
            FieldMapping, or None if no mapping has been saved yet

        Raises:
            MappingGenerationError: If the persisted file is unreadable
        """
        try:
            document = read_json(self.mapping_path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MappingGenerationError(
                f"Field mapping file {self.mapping_path} is not valid JSON",
                details={"path": str(self.mapping_path), "error": str(e)}
            ) from e

        if document is None:
            logger.info("field_mapping_not_found", path=str(self.mapping_path))
            return None

        validate_mappings(document)
        try:
            mapping = FieldMapping.model_validate(document)
        except ValidationError as e:
            raise MappingGenerationError(
                f"Field mapping file {self.mapping_path} has an invalid structure",
                details={"path": str(self.mapping_path), "error": str(e)}
            ) from e

        logger.info("field_mapping_loaded",
                    path=str(self.mapping_path),
                    generated_at=mapping.metadata.generated_at)
        return mapping

    def save(self, mapping: FieldMapping) -> None:
        """Persist the mapping for reuse and manual review"""
        write_json_atomic(self.mapping_path, mapping.to_document())
        logger.info("field_mapping_saved", path=str(self.mapping_path))

    async def generate(self, sample_records: List[Dict[str, Any]]) -> FieldMapping:
        """
        Ask the AI to derive a mapping from sample records.

        Raises:
            MappingGenerationError: If the AI call fails or returns an unusable mapping
        """
        logger.info("field_mapping_generation_started", sample_size=len(sample_records))

        user_prompt = f"""Analyze these sample AIMSii product records and create optimal Shopify field mappings:

{json.dumps(sample_records, indent=2, default=str)}

Create a comprehensive mapping strategy that will work for all products in this inventory system.
Focus on musical instruments and retail products.

Remember: DO NOT include image mappings. Images will be handled manually."""

        try:
            response_text = await self.ai_provider.generate(
                MAPPING_SYSTEM_PROMPT,
                user_prompt,
                temperature=0.1,
                response_format="json",
            )
        except GenerationError as e:
            logger.error("field_mapping_generation_failed", error=str(e))
            raise MappingGenerationError(
                "AI field mapping generation failed",
                details={"error": str(e)}
            ) from e

        try:
            document = extract_json(response_text)
            validate_mappings(document)

            # AI insights are kept; the bookkeeping keys are always ours
            metadata = document.get("metadata")
            document["metadata"] = {
                **(metadata if isinstance(metadata, dict) else {}),
                "generatedAt": utc_now_iso(),
                "version": MAPPING_VERSION,
                "sampleSize": len(sample_records),
                "note": "Images not included - will be added manually",
            }
            for key in ("generated_at", "sample_size"):
                document["metadata"].pop(key, None)

            mapping = FieldMapping.model_validate(document)
        except (ValueError, ValidationError) as e:
            logger.error("field_mapping_parse_failed",
                         response=response_text[:500],
                         error=str(e))
            raise MappingGenerationError(
                "AI returned an unusable field mapping",
                details={"error": str(e)}
            ) from e

        logger.info("field_mapping_generated",
                    direct_mappings=len(mapping.direct_mappings),
                    combined_fields=len(mapping.combined_fields),
                    generation_rules=len(mapping.generation_rules))
        return mapping

    async def resolve(self, sample_records: Optional[List[Dict[str, Any]]] = None) -> FieldMapping:
        """
        Return the field mapping, generating and persisting it on first use.

        Args:
            sample_records: Records to analyze if no mapping exists yet
                (defaults to sample_source.get_sample_records(sample_size))

        Raises:
            MappingGenerationError: If no mapping exists and none can be generated
        """
        if self._mapping is not None:
            return self._mapping

        mapping = self.load()
        if mapping is not None:
            self._mapping = mapping
            return mapping

        if sample_records is None and self.sample_source is not None:
            sample_records = await self.sample_source.get_sample_records(self.sample_size)

        if not sample_records:
            raise MappingGenerationError(
                "No field mapping saved and no sample records available to generate one",
                details={"path": str(self.mapping_path)}
            )

        logger.warning("field_mapping_missing",
                       message="Generating field mapping with AI (one-time setup)",
                       sample_size=len(sample_records[:self.sample_size]))

        mapping = await self.generate(sample_records[:self.sample_size])
        self.save(mapping)
        self._mapping = mapping
        return mapping
