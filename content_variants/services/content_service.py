"""Service for content management (the CRUD-ish part).

Reads are cached for a while; any write drops the cached views it can affect.
"""
import logging
from typing import List, Optional
from fastapi import HTTPException
from content_variants.config import settings
from content_variants.schemas import ContentCreate, ContentResponse, ContentUpdate, SUPPORTED_LANGUAGES
from content_variants.store.base import VariantStore
from content_variants.utils.cache import CacheService, safe_clear, safe_get, safe_remove_by_pattern, safe_set

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "contents"


def create_content(store: VariantStore, cache: CacheService, content_data: ContentCreate) -> ContentResponse:
    """
    Create a new content with its variants.
    If no variant is flagged default the first one becomes default.
    """
    try:
        content = store.create_content(content_data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    # Nobody has seen the new content yet, only the list views are stale
    safe_remove_by_pattern(cache, f"{CACHE_KEY_PREFIX}:all")
    safe_remove_by_pattern(cache, f"{CACHE_KEY_PREFIX}:language:*")

    logger.info("Created content %s with %d variants", content.id, content.variant_count)
    return content


def get_content_by_id(store: VariantStore, cache: CacheService, content_id: int) -> ContentResponse:
    """Get content by ID, with caching"""
    cache_key = f"{CACHE_KEY_PREFIX}:{content_id}"
    cached = safe_get(cache, cache_key)
    if cached is not None:
        return cached

    content = store.get_content(content_id)
    if content is None:
        raise HTTPException(status_code=404, detail="Content not found")

    safe_set(cache, cache_key, content, settings.content_cache_ttl)
    return content


def list_contents(store: VariantStore, cache: CacheService, language: Optional[str] = None) -> List[ContentResponse]:
    """All contents, optionally only one language"""
    if language is not None and language not in SUPPORTED_LANGUAGES:
        raise HTTPException(status_code=400, detail=f"Unsupported language: {language}")

    cache_key = f"{CACHE_KEY_PREFIX}:language:{language}" if language else f"{CACHE_KEY_PREFIX}:all"
    cached = safe_get(cache, cache_key)
    if cached is not None:
        return cached

    contents = store.list_contents(language)
    safe_set(cache, cache_key, contents, settings.content_cache_ttl)
    return contents


def update_content(store: VariantStore, cache: CacheService, content_id: int, content_data: ContentUpdate) -> ContentResponse:
    content = store.update_content(content_id, content_data)
    if content is None:
        raise HTTPException(status_code=404, detail="Content not found")

    # title/language show up in lists, single views and per-user views
    safe_clear(cache, "content update")
    return content


def delete_content(store: VariantStore, cache: CacheService, content_id: int):
    if not store.delete_content(content_id):
        raise HTTPException(status_code=404, detail="Content not found")

    safe_clear(cache, "content delete")
    logger.info("Deleted content %s", content_id)
