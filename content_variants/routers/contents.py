"""Content endpoints (basic CRUD-ish stuff)."""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from content_variants.dependencies import get_cache, get_store
from content_variants.schemas import ContentCreate, ContentResponse, ContentUpdate
from content_variants.services import content_service
from content_variants.store.base import VariantStore
from content_variants.utils.cache import CacheService

# NOTE: prefix means all routes in here start with /contents
router = APIRouter(prefix="/contents", tags=["contents"])


@router.post("", response_model=ContentResponse, status_code=201)
def create_content_endpoint(
    content_data: ContentCreate,
    store: VariantStore = Depends(get_store),
    cache: CacheService = Depends(get_cache)
):
    """
    Create a new content together with its variants (at least two).

    At most one variant may be flagged default; if none is, the first one is.
    """
    return content_service.create_content(store, cache, content_data)


@router.get("", response_model=List[ContentResponse])
def list_contents_endpoint(
    language: Optional[str] = Query(None, description="Only contents in this language (en, tr)"),
    store: VariantStore = Depends(get_store),
    cache: CacheService = Depends(get_cache)
):
    return content_service.list_contents(store, cache, language)


@router.get("/{content_id}", response_model=ContentResponse)
def get_content_endpoint(
    content_id: int,
    store: VariantStore = Depends(get_store),
    cache: CacheService = Depends(get_cache)
):
    """Get content by id (service handles not found)."""
    return content_service.get_content_by_id(store, cache, content_id)


@router.put("/{content_id}", response_model=ContentResponse)
def update_content_endpoint(
    content_id: int,
    content_data: ContentUpdate,
    store: VariantStore = Depends(get_store),
    cache: CacheService = Depends(get_cache)
):
    return content_service.update_content(store, cache, content_id, content_data)


@router.delete("/{content_id}", status_code=204)
def delete_content_endpoint(
    content_id: int,
    store: VariantStore = Depends(get_store),
    cache: CacheService = Depends(get_cache)
):
    """Delete a content. Its variants and view history go with it."""
    content_service.delete_content(store, cache, content_id)
    return Response(status_code=204)
