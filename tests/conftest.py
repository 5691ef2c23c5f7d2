"""
Shared test fixtures.

The AI provider is always a fake; no test reaches Anthropic or Gemini.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import json
from typing import Any, Dict, List

import pytest

from packages.common.config import Settings
from packages.common.errors import GenerationError
from packages.domain.transformation.schemas import FieldMapping
from packages.domain.transformation.transform_cache import TransformCacheRepository
from packages.domain.transformation.transform_service import TransformService


# ===================
# FAKE AI PROVIDER
# ===================

class FakeAIProvider:
    """
    Stand-in for AIProvider.

    Responses are consumed in order; a response that is an Exception is
    raised instead of returned. When the queue is empty, a generic Shopify
    payload built from the prompt call count is returned.
    """

    def __init__(self, responses: List[Any] = None):
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, system_prompt, user_prompt, temperature=0.2, response_format="json"):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "temperature": temperature,
            "response_format": response_format,
        })
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response if isinstance(response, str) else json.dumps(response)
        return json.dumps(generated_payload(f"Generated Product {len(self.calls)}"))


def generated_payload(title: str = "Yamaha FS800 Concert Acoustic Guitar") -> Dict[str, Any]:
    """A payload as the AI would return it (inner shape, published, with images)"""
    return {
        "title": title,
        "body_html": "<p>The {{Mfg}} {{model}} is a great {{subcategory}} instrument.</p>",
        "vendor": "Yamaha",
        "product_type": "Fretted",
        "tags": "guitar, acoustic",
        "published": True,
        "images": [{"src": "https://example.com/guitar.jpg"}],
    }


# ===================
# RECORDS
# ===================

@pytest.fixture
def yamaha_fs800() -> Dict[str, Any]:
    return {
        "Mfg": "Yamaha",
        "Model": "FS800",
        "Desc": "Guitar",
        "Cat Desc": "Fretted",
        "Sub Desc": "Acoustic",
        "Sku": "YAM-FS800",
        "Ourprice": "199.99",
        "Comp Qty": "3",
        "Barcode": "086792948231",
    }


@pytest.fixture
def yamaha_fg830() -> Dict[str, Any]:
    return {
        "Mfg": "Yamaha",
        "Model": "FG830",
        "Desc": "Dreadnought",
        "Cat Desc": "Fretted",
        "Sub Desc": "Acoustic",
        "Sku": "YAM-FG830",
        "Ourprice": 249.5,
        "Comp Qty": 2,
    }


@pytest.fixture
def fender_strat() -> Dict[str, Any]:
    return {
        "Mfg": "Fender",
        "Model": "Player Strat",
        "Desc": "Electric Guitar",
        "Cat Desc": "Fretted",
        "Sub Desc": "Electric",
        "Sku": "FEN-STRAT",
        "Ourprice": "899.00",
        "Comp Qty": "1",
    }


@pytest.fixture
def field_mapping() -> FieldMapping:
    return FieldMapping.model_validate({
        "directMappings": {
            "vendor": "Mfg",
            "product_type": "Cat Desc",
            "variants.price": "Ourprice",
            "variants.sku": "Sku",
        },
        "combinedFields": {
            "title": {"template": "{Mfg} {Model} {Desc}", "fields": ["Mfg", "Model", "Desc"]},
        },
        "generationRules": {
            "body_html": "Write 2-3 paragraphs about the product",
        },
        "metadata": {"generatedAt": "2025-01-01T00:00:00.000Z", "version": "1.0", "sampleSize": 5},
    })


# ===================
# SERVICES
# ===================

@pytest.fixture
def fake_ai() -> FakeAIProvider:
    return FakeAIProvider()


@pytest.fixture
def cache_path(tmp_path) -> Path:
    return tmp_path / "ai-transformation-cache.json"


@pytest.fixture
def mapping_path(tmp_path) -> Path:
    return tmp_path / "ai-field-mappings.json"


@pytest.fixture
def cache_repository(cache_path) -> TransformCacheRepository:
    return TransformCacheRepository(cache_path)


@pytest.fixture
def transform_service(fake_ai, cache_repository) -> TransformService:
    return TransformService(fake_ai, cache_repository)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        anthropic_api_key=None,
        gemini_api_key=None,
        field_mapping_path=str(tmp_path / "ai-field-mappings.json"),
        transform_cache_path=str(tmp_path / "ai-transformation-cache.json"),
        dry_run=False,
        review_mode=False,
        populate_missing_fields=False,
        filter_by_category=False,
        allowed_categories="",
        focus_categories="",
    )


@pytest.fixture
def failing_generation() -> GenerationError:
    return GenerationError("All AI providers failed: anthropic", details={"errors": {"anthropic": "timeout"}})
