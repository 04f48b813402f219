"""Variant endpoints.

This is where users get their (sticky) variant and admins move the default.
"""
from typing import List
from fastapi import APIRouter, Depends
from content_variants.dependencies import get_engine
from content_variants.outcomes import unwrap
from content_variants.schemas import ContentForUserResponse, VariantCreate, VariantResponse
from content_variants.services.resolution_service import VariantResolutionEngine

router = APIRouter(prefix="/contents", tags=["variants"])


@router.get("/{content_id}/variants", response_model=List[VariantResponse])
def list_variants_endpoint(
    content_id: int,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    return unwrap(engine.list_variants(content_id))


@router.post("/{content_id}/variants", response_model=VariantResponse, status_code=201)
def add_variant_endpoint(
    content_id: int,
    variant_data: VariantCreate,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    """Add a variant. If it's flagged default it replaces the current default."""
    return unwrap(engine.add_variant(content_id, variant_data))


@router.get("/{content_id}/variants/default", response_model=VariantResponse)
def get_default_variant_endpoint(
    content_id: int,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    return unwrap(engine.get_default_variant(content_id))


@router.put("/{content_id}/variants/{variant_id}/set-default", response_model=VariantResponse)
def set_default_variant_endpoint(
    content_id: int,
    variant_id: int,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    """
    Make this variant the default for new users.
    Users who already saw the content keep what they got.
    """
    return unwrap(engine.set_default_variant(content_id, variant_id))


@router.get("/{content_id}/variants/user/{user_id}", response_model=VariantResponse)
def get_user_variant_endpoint(
    content_id: int,
    user_id: str,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    """
    Get (or assign on first call) the variant this user sees.
    Calling it again always returns the same variant.
    """
    return unwrap(engine.resolve_variant_for_user(content_id, user_id))


@router.get("/{content_id}/for-user/{user_id}", response_model=ContentForUserResponse)
def get_content_for_user_endpoint(
    content_id: int,
    user_id: str,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    """Content rendered for one user (cached for a few minutes)."""
    return unwrap(engine.get_content_for_user(content_id, user_id))
