"""Variant store interface.

Everything the resolution engine needs from durable storage. Implementations
hand back pydantic records, never ORM objects, and own their own transactions.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from content_variants.exceptions import AssignmentConflictError
from content_variants.schemas import (
    AssignmentResponse,
    ContentCreate,
    ContentResponse,
    ContentUpdate,
    HistoryEntryResponse,
    VariantCreate,
    VariantResponse,
)


class VariantStore(ABC):

    # contents

    @abstractmethod
    def create_content(self, content_data: ContentCreate) -> ContentResponse:
        """Create a content and all its variants in one transaction.

        Exactly one variant ends up default; the first one if none was flagged.
        Raises ValueError when more than one variant is flagged default.
        """

    @abstractmethod
    def get_content(self, content_id: int) -> Optional[ContentResponse]:
        ...

    @abstractmethod
    def list_contents(self, language: Optional[str] = None) -> List[ContentResponse]:
        ...

    @abstractmethod
    def update_content(self, content_id: int, content_data: ContentUpdate) -> Optional[ContentResponse]:
        """Edit the content row only. Variant flags are never touched here."""

    @abstractmethod
    def delete_content(self, content_id: int) -> bool:
        """Delete a content with its variants and history rows."""

    # variants

    @abstractmethod
    def list_variants(self, content_id: int) -> List[VariantResponse]:
        ...

    @abstractmethod
    def get_variant(self, variant_id: int) -> Optional[VariantResponse]:
        ...

    @abstractmethod
    def get_default_variant(self, content_id: int) -> Optional[VariantResponse]:
        """Return the default variant, None if there is none.

        Raises IntegrityViolationError if more than one is flagged.
        """

    @abstractmethod
    def add_variant(self, content_id: int, variant_data: VariantCreate) -> Optional[VariantResponse]:
        """Add a variant; None if the content doesn't exist.

        If it is flagged default (or the content has no default yet) it becomes
        the only default, in the same transaction as the insert.
        """

    @abstractmethod
    def set_default_variant(self, content_id: int, variant_id: int) -> bool:
        """Make variant_id the single default of content_id, atomically.

        Returns False (and changes nothing) if the variant isn't one of the
        content's variants.
        """

    # assignments

    @abstractmethod
    def get_assignment(self, user_id: str, content_id: int) -> Optional[AssignmentResponse]:
        ...

    @abstractmethod
    def create_assignment(self, user_id: str, content_id: int, variant_id: int) -> AssignmentResponse:
        """Insert a fresh assignment with view_count 1.

        Raises AssignmentConflictError if the (user, content) pair exists.
        """

    @abstractmethod
    def touch_assignment(self, user_id: str, content_id: int) -> Optional[AssignmentResponse]:
        """Bump view_count and last_accessed_at. The variant never changes.

        Returns None if there is no assignment to touch.
        """

    def upsert_assignment(self, user_id: str, content_id: int, variant_id: int) -> AssignmentResponse:
        """Touch the existing assignment or create one bound to variant_id.

        variant_id is only used for a new row; an existing row keeps its
        variant. A lost insert race falls back to touching the winner's row.
        """
        touched = self.touch_assignment(user_id, content_id)
        if touched is not None:
            return touched
        try:
            return self.create_assignment(user_id, content_id, variant_id)
        except AssignmentConflictError:
            touched = self.touch_assignment(user_id, content_id)
            if touched is None:
                # winner got deleted in between, nothing sensible left to do
                raise
            return touched

    @abstractmethod
    def get_user_history(self, user_id: str) -> List[HistoryEntryResponse]:
        """All of a user's assignments, most recently accessed first."""

    @abstractmethod
    def delete_user_history(self, user_id: str) -> int:
        ...
