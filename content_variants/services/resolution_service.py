"""Stateful variant resolution.

Decides which variant a user sees for a content and remembers it. The first
contact binds the user to whatever is default at that moment; every later
contact returns that same variant and only bumps the view telemetry, no
matter how the default changes afterwards.

The per-user content view is cached for a few minutes, but the cache only
saves us rebuilding the response. The history touch always hits the store.
"""
import logging
from typing import List

from content_variants.config import settings
from content_variants.exceptions import AssignmentConflictError, IntegrityViolationError
from content_variants.outcomes import Outcome
from content_variants.schemas import (
    ContentForUserResponse,
    HistoryEntryResponse,
    VariantCreate,
    VariantResponse,
)
from content_variants.store.base import VariantStore
from content_variants.utils.cache import safe_clear, safe_get, safe_remove, safe_remove_by_pattern, safe_set

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "contents"


def user_content_key(user_id: str, content_id: int) -> str:
    return f"{CACHE_KEY_PREFIX}:user-content:{user_id}:{content_id}"


class VariantResolutionEngine:

    def __init__(self, store: VariantStore, cache, user_content_ttl: float = settings.user_content_cache_ttl):
        self.store = store
        self.cache = cache
        self.user_content_ttl = user_content_ttl

    # resolution

    def _bound_variant(self, variant_id: int, content_id: int) -> Outcome[VariantResponse]:
        variant = self.store.get_variant(variant_id)
        if variant is None:
            # the history row points at a variant that isn't there anymore
            logger.error("Assignment on content %s references missing variant %s", content_id, variant_id)
            return Outcome.integrity_violation(
                f"Assigned variant {variant_id} of content {content_id} no longer exists"
            )
        return Outcome.success(variant)

    def resolve_variant_for_user(self, content_id: int, user_id: str) -> Outcome[VariantResponse]:
        """Return the user's variant for a content, assigning one on first contact.

        Exactly one history write per call: a touch if the user was seen
        before, an insert otherwise. Outcomes:
        - ok: the variant
        - not_found: the content has no variants at all
        - integrity_violation: variants exist but not exactly one is default
        """
        touched = self.store.touch_assignment(user_id, content_id)
        if touched is not None:
            return self._bound_variant(touched.variant_id, content_id)

        try:
            default = self.store.get_default_variant(content_id)
        except IntegrityViolationError as exc:
            logger.error("Refusing to resolve content %s for user %s: %s", content_id, user_id, exc)
            return Outcome.integrity_violation(str(exc))

        if default is None:
            if self.store.list_variants(content_id):
                logger.error("Content %s has variants but no default", content_id)
                return Outcome.integrity_violation(f"Content {content_id} has no default variant")
            return Outcome.not_found(f"Content {content_id} has no variants")

        try:
            assignment = self.store.create_assignment(user_id, content_id, default.id)
        except AssignmentConflictError:
            # a concurrent first view won, use whatever it bound
            assignment = self.store.touch_assignment(user_id, content_id)
            if assignment is None:
                # the insert was refused but there is no row to fall back on
                logger.error("Assignment insert for user %s on content %s refused without a winner", user_id, content_id)
                return Outcome.integrity_violation(
                    f"Could not assign a variant of content {content_id} to user {user_id}"
                )
            return self._bound_variant(assignment.variant_id, content_id)

        logger.debug("User %s bound to variant %s of content %s", user_id, default.id, content_id)
        return Outcome.success(default)

    def get_content_for_user(self, content_id: int, user_id: str) -> Outcome[ContentForUserResponse]:
        """Content plus the caller's variant, served from cache when possible."""
        key = user_content_key(user_id, content_id)

        touched = None
        cached = safe_get(self.cache, key)
        if cached is not None:
            # the response body is reused, the view still has to be counted
            touched = self.store.touch_assignment(user_id, content_id)
            if touched is not None and touched.variant_id == cached.user_variant.id:
                return Outcome.success(cached)
            # cached view disagrees with the stored binding (or it's gone)
            logger.info("Stale cache entry %s, rebuilding from the store", key)
            safe_remove(self.cache, key)

        content = self.store.get_content(content_id)
        if content is None:
            return Outcome.not_found(f"Content {content_id} not found")

        if touched is not None:
            # this read's history write already happened, don't count it twice
            resolved = self._bound_variant(touched.variant_id, content_id)
        else:
            resolved = self.resolve_variant_for_user(content_id, user_id)
        if not resolved.is_ok:
            return resolved

        view = ContentForUserResponse(
            id=content.id,
            title=content.title,
            description=content.description,
            language=content.language,
            variant_count=content.variant_count,
            user_id=user_id,
            user_variant=resolved.value,
        )
        safe_set(self.cache, key, view, self.user_content_ttl)
        return Outcome.success(view)

    # variant administration

    def list_variants(self, content_id: int) -> Outcome[List[VariantResponse]]:
        if self.store.get_content(content_id) is None:
            return Outcome.not_found(f"Content {content_id} not found")
        return Outcome.success(self.store.list_variants(content_id))

    def get_default_variant(self, content_id: int) -> Outcome[VariantResponse]:
        try:
            default = self.store.get_default_variant(content_id)
        except IntegrityViolationError as exc:
            logger.error("%s", exc)
            return Outcome.integrity_violation(str(exc))
        if default is None:
            return Outcome.not_found(f"No default variant for content {content_id}")
        return Outcome.success(default)

    def set_default_variant(self, content_id: int, variant_id: int) -> Outcome[VariantResponse]:
        """Switch the default. Users already assigned keep their variant.

        Every cached per-user view goes, since we can't tell which ones were
        first-contact resolutions against the old default.
        """
        if not self.store.set_default_variant(content_id, variant_id):
            return Outcome.rejected(f"Variant {variant_id} does not belong to content {content_id}")

        logger.info("Default variant of content %s set to %s", content_id, variant_id)
        safe_clear(self.cache, "default variant change")
        return Outcome.success(self.store.get_variant(variant_id))

    def add_variant(self, content_id: int, variant_data: VariantCreate) -> Outcome[VariantResponse]:
        variant = self.store.add_variant(content_id, variant_data)
        if variant is None:
            return Outcome.not_found(f"Content {content_id} not found")

        logger.info("Variant %s added to content %s (default=%s)", variant.id, content_id, variant.is_default)
        safe_clear(self.cache, "variant add")
        return Outcome.success(variant)

    # history

    def get_assignment(self, user_id: str, content_id: int) -> Outcome[HistoryEntryResponse]:
        assignment = self.store.get_assignment(user_id, content_id)
        if assignment is None:
            return Outcome.not_found(f"User {user_id} has not viewed content {content_id}")

        content = self.store.get_content(content_id)
        variant = self.store.get_variant(assignment.variant_id)
        return Outcome.success(HistoryEntryResponse(
            **assignment.model_dump(),
            content_title=content.title if content else "",
            variant_data=variant.data if variant else "",
        ))

    def get_user_history(self, user_id: str) -> List[HistoryEntryResponse]:
        return self.store.get_user_history(user_id)

    def forget_user(self, user_id: str) -> int:
        """Drop all of a user's assignments and their cached views."""
        removed = self.store.delete_user_history(user_id)
        safe_remove_by_pattern(self.cache, f"{CACHE_KEY_PREFIX}:user-content:{user_id}:*")
        logger.info("Forgot %d assignments of user %s", removed, user_id)
        return removed
