"""In-memory variant store.

Reference implementation of VariantStore, handy for tests and local runs.
A single lock plays the role of the database transaction.
"""
import itertools
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from content_variants.exceptions import AssignmentConflictError, IntegrityViolationError
from content_variants.schemas import (
    AssignmentResponse,
    ContentCreate,
    ContentResponse,
    ContentUpdate,
    HistoryEntryResponse,
    VariantCreate,
    VariantResponse,
)
from content_variants.store.base import VariantStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryVariantStore(VariantStore):

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._contents: Dict[int, dict] = {}
        self._variants: Dict[int, dict] = {}
        # keyed by (user_id, content_id), which is what keeps it unique
        self._assignments: Dict[Tuple[str, int], dict] = {}

    # helpers (call with the lock held)

    def _content_variants(self, content_id: int) -> List[dict]:
        return sorted(
            (v for v in self._variants.values() if v["content_id"] == content_id),
            key=lambda v: v["id"],
        )

    def _content_record(self, row: dict) -> ContentResponse:
        variants = [VariantResponse(**v) for v in self._content_variants(row["id"])]
        return ContentResponse(**row, variant_count=len(variants), variants=variants)

    # contents

    def create_content(self, content_data: ContentCreate) -> ContentResponse:
        flags = [v.is_default for v in content_data.variants]
        if sum(flags) > 1:
            raise ValueError("At most one variant can be marked as default")
        if not any(flags):
            flags[0] = True

        now = self._clock()
        with self._lock:
            content_id = next(self._ids)
            row = {
                "id": content_id,
                "title": content_data.title,
                "description": content_data.description,
                "language": content_data.language,
                "created_at": now,
                "updated_at": None,
            }
            self._contents[content_id] = row
            for variant_data, is_default in zip(content_data.variants, flags):
                variant_id = next(self._ids)
                self._variants[variant_id] = {
                    "id": variant_id,
                    "content_id": content_id,
                    "data": variant_data.data,
                    "is_default": is_default,
                    "created_at": now,
                    "updated_at": None,
                }
            return self._content_record(row)

    def get_content(self, content_id: int) -> Optional[ContentResponse]:
        with self._lock:
            row = self._contents.get(content_id)
            return self._content_record(row) if row else None

    def list_contents(self, language: Optional[str] = None) -> List[ContentResponse]:
        with self._lock:
            return [
                self._content_record(row)
                for row in sorted(self._contents.values(), key=lambda r: r["id"])
                if language is None or row["language"] == language
            ]

    def update_content(self, content_id: int, content_data: ContentUpdate) -> Optional[ContentResponse]:
        with self._lock:
            row = self._contents.get(content_id)
            if row is None:
                return None
            row.update(content_data.model_dump(), updated_at=self._clock())
            return self._content_record(row)

    def delete_content(self, content_id: int) -> bool:
        with self._lock:
            if self._contents.pop(content_id, None) is None:
                return False
            for variant in self._content_variants(content_id):
                del self._variants[variant["id"]]
            for key in [k for k in self._assignments if k[1] == content_id]:
                del self._assignments[key]
            return True

    # variants

    def list_variants(self, content_id: int) -> List[VariantResponse]:
        with self._lock:
            return [VariantResponse(**v) for v in self._content_variants(content_id)]

    def get_variant(self, variant_id: int) -> Optional[VariantResponse]:
        with self._lock:
            row = self._variants.get(variant_id)
            return VariantResponse(**row) if row else None

    def get_default_variant(self, content_id: int) -> Optional[VariantResponse]:
        with self._lock:
            defaults = [v for v in self._content_variants(content_id) if v["is_default"]]
        if len(defaults) > 1:
            raise IntegrityViolationError(content_id, len(defaults))
        return VariantResponse(**defaults[0]) if defaults else None

    def add_variant(self, content_id: int, variant_data: VariantCreate) -> Optional[VariantResponse]:
        now = self._clock()
        with self._lock:
            if content_id not in self._contents:
                return None
            existing = self._content_variants(content_id)
            make_default = variant_data.is_default or not any(v["is_default"] for v in existing)
            if make_default:
                for v in existing:
                    if v["is_default"]:
                        v.update(is_default=False, updated_at=now)
            variant_id = next(self._ids)
            row = {
                "id": variant_id,
                "content_id": content_id,
                "data": variant_data.data,
                "is_default": make_default,
                "created_at": now,
                "updated_at": None,
            }
            self._variants[variant_id] = row
            return VariantResponse(**row)

    def set_default_variant(self, content_id: int, variant_id: int) -> bool:
        now = self._clock()
        with self._lock:
            target = self._variants.get(variant_id)
            if target is None or target["content_id"] != content_id:
                return False
            for v in self._content_variants(content_id):
                is_default = v["id"] == variant_id
                if v["is_default"] != is_default:
                    v.update(is_default=is_default, updated_at=now)
            return True

    # assignments

    def get_assignment(self, user_id: str, content_id: int) -> Optional[AssignmentResponse]:
        with self._lock:
            row = self._assignments.get((user_id, content_id))
            return AssignmentResponse(**row) if row else None

    def create_assignment(self, user_id: str, content_id: int, variant_id: int) -> AssignmentResponse:
        now = self._clock()
        with self._lock:
            key = (user_id, content_id)
            if key in self._assignments:
                raise AssignmentConflictError(user_id, content_id)
            row = {
                "id": next(self._ids),
                "user_id": user_id,
                "content_id": content_id,
                "variant_id": variant_id,
                "first_viewed_at": now,
                "last_accessed_at": now,
                "view_count": 1,
            }
            self._assignments[key] = row
            return AssignmentResponse(**row)

    def touch_assignment(self, user_id: str, content_id: int) -> Optional[AssignmentResponse]:
        now = self._clock()
        with self._lock:
            row = self._assignments.get((user_id, content_id))
            if row is None:
                return None
            row["view_count"] += 1
            row["last_accessed_at"] = max(now, row["last_accessed_at"])
            return AssignmentResponse(**row)

    def get_user_history(self, user_id: str) -> List[HistoryEntryResponse]:
        with self._lock:
            rows = [row for (uid, _), row in self._assignments.items() if uid == user_id]
            rows.sort(key=lambda r: r["last_accessed_at"], reverse=True)
            return [
                HistoryEntryResponse(
                    **row,
                    content_title=self._contents[row["content_id"]]["title"],
                    variant_data=self._variants[row["variant_id"]]["data"],
                )
                for row in rows
            ]

    def delete_user_history(self, user_id: str) -> int:
        with self._lock:
            keys = [k for k in self._assignments if k[0] == user_id]
            for key in keys:
                del self._assignments[key]
            return len(keys)
