"""
Transform API - Run single records through the AI learning system

Lets the review UI preview what a record will look like in Shopify and
inspect the learned artifacts (field mapping, cache statistics).
"""
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from packages.domain.transformation.field_mapping import FieldMappingResolver
from packages.domain.transformation.schemas import CacheStatsReport, SourceProduct, TransformResult
from packages.domain.transformation.similarity import generate_cache_key
from packages.domain.transformation.transform_service import TransformService

logger = structlog.get_logger()
router = APIRouter()


class TransformRequest(BaseModel):
    """One AIMSii record to transform"""
    record: Dict[str, Any] = Field(..., description="Raw AIMSii record, e.g. {\"Mfg\": \"Yamaha\", ...}")
    sample_records: Optional[List[Dict[str, Any]]] = Field(
        None,
        description="Records used to generate the field mapping if none is saved yet",
    )
    populate_missing_fields: bool = False


def get_transform_service(request: Request) -> TransformService:
    return request.app.state.transform_service


def get_mapping_resolver(request: Request) -> FieldMappingResolver:
    return request.app.state.mapping_resolver


@router.post("", response_model=TransformResult)
async def transform_record(
    body: TransformRequest,
    service: TransformService = Depends(get_transform_service),
    resolver: FieldMappingResolver = Depends(get_mapping_resolver),
) -> TransformResult:
    """
    Transform one record into a Shopify product draft payload.

    Nothing is created in Shopify; the payload is returned for preview.
    """
    field_mapping = await resolver.resolve(body.sample_records)
    result = await service.transform_product(body.record, field_mapping)

    if body.populate_missing_fields:
        result.shopify_product = await service.populate_missing_fields(body.record, result.shopify_product)

    logger.info("transform_request_complete",
                cache_key=result.cache_key,
                source=result.source.value)
    return result


@router.get("/cache/stats", response_model=CacheStatsReport)
async def get_cache_stats(
    service: TransformService = Depends(get_transform_service),
) -> CacheStatsReport:
    """Transform cache hit rate and template count"""
    service.initialize_cache()
    return service.get_cache_stats()


@router.get("/field-mapping")
async def get_field_mapping(
    resolver: FieldMappingResolver = Depends(get_mapping_resolver),
) -> Dict[str, Any]:
    """The saved field mapping document, as stored on disk"""
    mapping = resolver.load()
    if mapping is None:
        raise HTTPException(status_code=404, detail="No field mapping has been generated yet")
    return mapping.to_document()


class TemplateMatchResponse(BaseModel):
    """Whether a record already has a usable cached template"""
    cache_key: str
    usable: bool = Field(..., description="Best similarity reaches the usable-template threshold")
    would_hit: bool = Field(..., description="Best similarity reaches the cache hit threshold")
    similarity: Optional[float] = None
    examples: int = 0


@router.post("/cache/match", response_model=TemplateMatchResponse)
async def match_template(
    body: TransformRequest,
    service: TransformService = Depends(get_transform_service),
) -> TemplateMatchResponse:
    """
    Preview the cache lookup for a record without transforming it.

    Read-only: no AI call, no stats change.
    """
    cache = service.initialize_cache()
    product = SourceProduct.from_record(body.record)
    match = service.repository.find_matching_template(product, cache)

    if match is None:
        return TemplateMatchResponse(
            cache_key=generate_cache_key(product),
            usable=False,
            would_hit=False,
        )

    return TemplateMatchResponse(
        cache_key=match.cache_key,
        usable=True,
        would_hit=match.similarity >= service.hit_threshold,
        similarity=match.similarity,
        examples=len(match.template.examples),
    )
