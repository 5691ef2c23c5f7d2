"""
Unit tests for field mapping resolution and application.

Run: pytest tests/unit/test_field_mapping.py -v
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from packages.common.errors import MappingGenerationError
from packages.domain.transformation.field_mapping import (
    FieldMappingResolver,
    apply_field_mappings,
    validate_mappings,
)
from packages.domain.transformation.schemas import FieldMapping
from tests.conftest import FakeAIProvider

GENERATED_MAPPING = {
    "directMappings": {"vendor": "Mfg", "variants.sku": "Sku"},
    "combinedFields": {"title": {"template": "{Mfg} {Model}", "fields": ["Mfg", "Model"]}},
    "generationRules": {"body_html": "Describe the instrument"},
    "metadata": {"insight": "Cat Desc holds the department"},
}


class TestApplyFieldMappings:
    """Tests for apply_field_mappings()"""

    def test_direct_and_combined_fields(self, field_mapping, yamaha_fs800):
        result = apply_field_mappings(yamaha_fs800, field_mapping)

        assert result["vendor"] == "Yamaha"
        assert result["variants.sku"] == "YAM-FS800"
        assert result["title"] == "Yamaha FS800 Guitar"

    def test_direct_mappings_skip_empty_values(self, field_mapping):
        result = apply_field_mappings({"Mfg": "", "Cat Desc": None, "Model": "FS800"}, field_mapping)

        assert "vendor" not in result
        assert "product_type" not in result

    def test_combined_fields_collapse_whitespace(self, field_mapping):
        result = apply_field_mappings({"Mfg": "Yamaha", "Desc": "Guitar"}, field_mapping)

        assert result["title"] == "Yamaha Guitar"

    def test_generation_rules_are_not_applied(self, field_mapping, yamaha_fs800):
        result = apply_field_mappings(yamaha_fs800, field_mapping)

        assert "body_html" not in result


class TestValidateMappings:
    """Tests for validate_mappings()"""

    def test_accepts_partial_mapping(self):
        assert validate_mappings({"directMappings": {"vendor": "Mfg"}}) is True

    def test_accepts_model(self, field_mapping):
        assert validate_mappings(field_mapping) is True

    def test_rejects_non_object(self):
        with pytest.raises(MappingGenerationError):
            validate_mappings(["vendor", "Mfg"])


class TestFieldMappingResolver:
    """Tests for FieldMappingResolver"""

    def test_generates_and_persists_when_missing(self, mapping_path, yamaha_fs800):
        ai = FakeAIProvider([GENERATED_MAPPING])
        resolver = FieldMappingResolver(ai, mapping_path)

        mapping = asyncio.run(resolver.resolve([yamaha_fs800]))

        assert mapping.direct_mappings["vendor"] == "Mfg"
        assert mapping.metadata.version == "1.0"
        assert mapping.metadata.sample_size == 1
        assert mapping.metadata.note == "Images not included - will be added manually"
        assert mapping.metadata.generated_at.endswith("Z")
        assert len(ai.calls) == 1
        assert ai.calls[0]["temperature"] == 0.1

        document = json.loads(mapping_path.read_text(encoding="utf-8"))
        assert document["combinedFields"]["title"]["template"] == "{Mfg} {Model}"
        assert document["metadata"]["sampleSize"] == 1
        assert document["metadata"]["insight"] == "Cat Desc holds the department"

    def test_resolve_is_idempotent(self, mapping_path, yamaha_fs800):
        ai = FakeAIProvider([GENERATED_MAPPING])
        resolver = FieldMappingResolver(ai, mapping_path)

        first = asyncio.run(resolver.resolve([yamaha_fs800]))
        second = asyncio.run(resolver.resolve([yamaha_fs800]))
        third = asyncio.run(FieldMappingResolver(ai, mapping_path).resolve([yamaha_fs800]))

        assert first is second
        assert third.to_document() == first.to_document()
        assert len(ai.calls) == 1

    def test_loads_hand_edited_file(self, mapping_path, field_mapping):
        mapping_path.write_text(json.dumps(field_mapping.to_document()), encoding="utf-8")
        ai = FakeAIProvider()

        mapping = asyncio.run(FieldMappingResolver(ai, mapping_path).resolve())

        assert mapping.to_document() == field_mapping.to_document()
        assert ai.calls == []

    def test_limits_sample_size(self, mapping_path, yamaha_fs800):
        ai = FakeAIProvider([GENERATED_MAPPING])
        resolver = FieldMappingResolver(ai, mapping_path, sample_size=2)

        mapping = asyncio.run(resolver.resolve([yamaha_fs800] * 7))

        assert mapping.metadata.sample_size == 2

    def test_uses_sample_source(self, mapping_path, yamaha_fs800):
        ai = FakeAIProvider([GENERATED_MAPPING])
        source = AsyncMock()
        source.get_sample_records.return_value = [yamaha_fs800]
        resolver = FieldMappingResolver(ai, mapping_path, sample_size=3, sample_source=source)

        asyncio.run(resolver.resolve())

        source.get_sample_records.assert_awaited_once_with(3)

    def test_generation_failure_raises_and_persists_nothing(self, mapping_path, yamaha_fs800, failing_generation):
        ai = FakeAIProvider([failing_generation])
        resolver = FieldMappingResolver(ai, mapping_path)

        with pytest.raises(MappingGenerationError):
            asyncio.run(resolver.resolve([yamaha_fs800]))

        assert not mapping_path.exists()

    def test_unparseable_response_raises(self, mapping_path, yamaha_fs800):
        ai = FakeAIProvider(["I think Mfg maps to vendor."])
        resolver = FieldMappingResolver(ai, mapping_path)

        with pytest.raises(MappingGenerationError):
            asyncio.run(resolver.resolve([yamaha_fs800]))

        assert not mapping_path.exists()

    def test_non_object_response_raises(self, mapping_path, yamaha_fs800):
        ai = FakeAIProvider([["vendor", "Mfg"]])
        resolver = FieldMappingResolver(ai, mapping_path)

        with pytest.raises(MappingGenerationError):
            asyncio.run(resolver.resolve([yamaha_fs800]))

    def test_no_samples_raises(self, mapping_path):
        resolver = FieldMappingResolver(FakeAIProvider(), mapping_path)

        with pytest.raises(MappingGenerationError):
            asyncio.run(resolver.resolve())

    def test_corrupt_mapping_file_raises(self, mapping_path):
        mapping_path.write_text("{oops", encoding="utf-8")
        resolver = FieldMappingResolver(FakeAIProvider(), mapping_path)

        with pytest.raises(MappingGenerationError):
            resolver.load()

    def test_fenced_response_is_accepted(self, mapping_path, yamaha_fs800):
        fenced = "```json\n" + json.dumps(GENERATED_MAPPING) + "\n```"
        ai = FakeAIProvider([fenced])

        mapping = asyncio.run(FieldMappingResolver(ai, mapping_path).resolve([yamaha_fs800]))

        assert isinstance(mapping, FieldMapping)


class TestLenientMappingResponses:
    """AI responses with gaps or loose metadata still produce a mapping"""

    def test_null_direct_mapping_is_skipped(self, mapping_path, yamaha_fs800):
        response = {
            "directMappings": {"vendor": "Mfg", "variants.barcode": None, "variants.price": ""},
            "combinedFields": {"title": {"template": "{Mfg} {Model}", "fields": ["Mfg", "Model"]}},
            "generationRules": {"body_html": "Describe it"},
        }
        ai = FakeAIProvider([response])

        mapping = asyncio.run(FieldMappingResolver(ai, mapping_path).resolve([yamaha_fs800]))

        assert mapping.direct_mappings == {"vendor": "Mfg"}
        assert apply_field_mappings(yamaha_fs800, mapping) == {"vendor": "Yamaha", "title": "Yamaha FS800"}
        assert mapping_path.exists()

    def test_template_less_combined_field_is_skipped(self, mapping_path, yamaha_fs800):
        response = {
            "directMappings": {"vendor": "Mfg"},
            "combinedFields": {
                "title": {"template": "{Mfg} {Model}", "fields": ["Mfg", "Model"]},
                "tags": {"fields": ["Cat Desc", "Sub Desc"]},
                "body_html": None,
                "handle": "{Mfg}-{Model}",
            },
        }
        ai = FakeAIProvider([response])

        mapping = asyncio.run(FieldMappingResolver(ai, mapping_path).resolve([yamaha_fs800]))

        assert list(mapping.combined_fields) == ["title"]

    def test_ai_metadata_is_overwritten(self, mapping_path, yamaha_fs800):
        response = dict(GENERATED_MAPPING, metadata={"version": 2, "sampleSize": "five", "notes": ["Sku is unique"]})
        ai = FakeAIProvider([response])

        mapping = asyncio.run(FieldMappingResolver(ai, mapping_path).resolve([yamaha_fs800]))

        assert mapping.metadata.version == "1.0"
        assert mapping.metadata.sample_size == 1
        assert mapping.to_document()["metadata"]["notes"] == ["Sku is unique"]

    def test_non_object_metadata_is_replaced(self, mapping_path, yamaha_fs800):
        response = dict(GENERATED_MAPPING, metadata="Cat Desc holds the department")
        ai = FakeAIProvider([response])

        mapping = asyncio.run(FieldMappingResolver(ai, mapping_path).resolve([yamaha_fs800]))

        assert mapping.metadata.version == "1.0"

    def test_hand_edited_file_with_numeric_version_loads(self, mapping_path, field_mapping):
        document = field_mapping.to_document()
        document["metadata"]["version"] = 2
        document["directMappings"]["variants.barcode"] = None
        mapping_path.write_text(json.dumps(document), encoding="utf-8")

        mapping = FieldMappingResolver(FakeAIProvider(), mapping_path).load()

        assert mapping.metadata.version == "2"
        assert "variants.barcode" not in mapping.direct_mappings
