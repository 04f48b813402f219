"""FastAPI dependencies wiring store, cache and engine together."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from content_variants.database import get_db
from content_variants.services.resolution_service import VariantResolutionEngine
from content_variants.store.sql import SqlVariantStore
from content_variants.utils.cache import CacheService


def get_cache(request: Request) -> CacheService:
    """The one cache instance, created at app setup (see main.py)."""
    return request.app.state.cache


def get_store(db: Session = Depends(get_db)) -> SqlVariantStore:
    return SqlVariantStore(db)


def get_engine(
    store: SqlVariantStore = Depends(get_store),
    cache: CacheService = Depends(get_cache)
) -> VariantResolutionEngine:
    return VariantResolutionEngine(store, cache)
