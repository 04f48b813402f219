"""User view-history endpoints."""
from typing import List
from fastapi import APIRouter, Depends
from content_variants.dependencies import get_engine
from content_variants.outcomes import unwrap
from content_variants.schemas import HistoryEntryResponse
from content_variants.services.resolution_service import VariantResolutionEngine

router = APIRouter(prefix="/users", tags=["history"])


@router.get("/{user_id}/content-history/{content_id}", response_model=HistoryEntryResponse)
def get_content_history_endpoint(
    user_id: str,
    content_id: int,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    """Which variant the user is bound to for this content, and how often they viewed it."""
    return unwrap(engine.get_assignment(user_id, content_id))


@router.get("/{user_id}/view-history", response_model=List[HistoryEntryResponse])
def get_view_history_endpoint(
    user_id: str,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    """Everything the user has viewed, most recent first."""
    return engine.get_user_history(user_id)


@router.delete("/{user_id}/history")
def forget_user_endpoint(
    user_id: str,
    engine: VariantResolutionEngine = Depends(get_engine)
):
    """Drop the user's assignments; next view assigns them from scratch."""
    removed = engine.forget_user(user_id)
    return {"user_id": user_id, "removed": removed}
