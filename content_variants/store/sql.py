"""SQLAlchemy-backed variant store.

One instance per request/session. Every public write commits on success and
rolls back on any error, so nothing half-written survives a failed request.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import case, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from content_variants.exceptions import AssignmentConflictError, IntegrityViolationError
from content_variants.models import Content, ContentVariant, UserContentVariantHistory
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

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _content_record(content: Content) -> ContentResponse:
    variants = [VariantResponse.model_validate(v) for v in content.variants]
    return ContentResponse(
        id=content.id,
        title=content.title,
        description=content.description,
        language=content.language,
        created_at=content.created_at,
        updated_at=content.updated_at,
        variant_count=len(variants),
        variants=variants,
    )


class SqlVariantStore(VariantStore):

    def __init__(self, db: Session, clock: Callable[[], datetime] = _utcnow):
        self.db = db
        self._clock = clock

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except BaseException:
            # BaseException on purpose: a cancelled request must not leave
            # a pending flush behind either
            self.db.rollback()
            raise

    def _load_content(self, content_id: int) -> Optional[Content]:
        stmt = (
            select(Content)
            .options(selectinload(Content.variants))
            .where(Content.id == content_id)
        )
        return self.db.execute(stmt).scalars().first()

    # contents

    def create_content(self, content_data: ContentCreate) -> ContentResponse:
        flags = [v.is_default for v in content_data.variants]
        if sum(flags) > 1:
            raise ValueError("At most one variant can be marked as default")
        if not any(flags):
            flags[0] = True

        with self._transaction():
            content = Content(
                title=content_data.title,
                description=content_data.description,
                language=content_data.language,
            )
            self.db.add(content)
            self.db.flush()  # Get the content ID

            for variant_data, is_default in zip(content_data.variants, flags):
                self.db.add(ContentVariant(
                    content_id=content.id,
                    data=variant_data.data,
                    is_default=is_default,
                ))
            content_id = content.id

        # expire_on_commit dropped the loaded state, reload with variants
        self.db.expire_all()
        return _content_record(self._load_content(content_id))

    def get_content(self, content_id: int) -> Optional[ContentResponse]:
        content = self._load_content(content_id)
        return _content_record(content) if content else None

    def list_contents(self, language: Optional[str] = None) -> List[ContentResponse]:
        stmt = select(Content).options(selectinload(Content.variants)).order_by(Content.id)
        if language:
            stmt = stmt.where(Content.language == language)
        return [_content_record(c) for c in self.db.execute(stmt).scalars().all()]

    def update_content(self, content_id: int, content_data: ContentUpdate) -> Optional[ContentResponse]:
        with self._transaction():
            content = self.db.get(Content, content_id)
            if content is None:
                return None
            content.title = content_data.title
            content.description = content_data.description
            content.language = content_data.language
            content.updated_at = self._clock()

        self.db.expire_all()
        return _content_record(self._load_content(content_id))

    def delete_content(self, content_id: int) -> bool:
        with self._transaction():
            content = self.db.get(Content, content_id)
            if content is None:
                return False
            # ORM cascade takes variants and history rows with it
            self.db.delete(content)
        return True

    # variants

    def list_variants(self, content_id: int) -> List[VariantResponse]:
        stmt = (
            select(ContentVariant)
            .where(ContentVariant.content_id == content_id)
            .order_by(ContentVariant.id)
        )
        return [VariantResponse.model_validate(v) for v in self.db.execute(stmt).scalars().all()]

    def get_variant(self, variant_id: int) -> Optional[VariantResponse]:
        variant = self.db.get(ContentVariant, variant_id)
        return VariantResponse.model_validate(variant) if variant else None

    def get_default_variant(self, content_id: int) -> Optional[VariantResponse]:
        stmt = select(ContentVariant).where(
            ContentVariant.content_id == content_id,
            ContentVariant.is_default.is_(True),
        )
        defaults = self.db.execute(stmt).scalars().all()
        if len(defaults) > 1:
            raise IntegrityViolationError(content_id, len(defaults))
        return VariantResponse.model_validate(defaults[0]) if defaults else None

    def _make_sole_default(self, content_id: int, variant_id: int):
        # clear + set as one UPDATE so no reader sees zero or two defaults
        self.db.execute(
            update(ContentVariant)
            .where(ContentVariant.content_id == content_id)
            .values(
                is_default=case((ContentVariant.id == variant_id, True), else_=False),
                updated_at=self._clock(),
            )
            .execution_options(synchronize_session=False)
        )

    def add_variant(self, content_id: int, variant_data: VariantCreate) -> Optional[VariantResponse]:
        with self._transaction():
            if self.db.get(Content, content_id) is None:
                return None
            has_default = self.db.execute(
                select(ContentVariant.id).where(
                    ContentVariant.content_id == content_id,
                    ContentVariant.is_default.is_(True),
                )
            ).first() is not None

            variant = ContentVariant(content_id=content_id, data=variant_data.data, is_default=False)
            self.db.add(variant)
            self.db.flush()
            variant_id = variant.id

            if variant_data.is_default or not has_default:
                self._make_sole_default(content_id, variant_id)

        self.db.expire_all()
        return self.get_variant(variant_id)

    def set_default_variant(self, content_id: int, variant_id: int) -> bool:
        with self._transaction():
            belongs = self.db.execute(
                select(ContentVariant.id).where(
                    ContentVariant.id == variant_id,
                    ContentVariant.content_id == content_id,
                )
            ).first()
            if belongs is None:
                return False
            self._make_sole_default(content_id, variant_id)

        self.db.expire_all()
        return True

    # assignments

    def _history_row(self, user_id: str, content_id: int) -> Optional[UserContentVariantHistory]:
        stmt = select(UserContentVariantHistory).where(
            UserContentVariantHistory.user_id == user_id,
            UserContentVariantHistory.content_id == content_id,
        )
        return self.db.execute(stmt).scalars().first()

    def get_assignment(self, user_id: str, content_id: int) -> Optional[AssignmentResponse]:
        row = self._history_row(user_id, content_id)
        return AssignmentResponse.model_validate(row) if row else None

    def create_assignment(self, user_id: str, content_id: int, variant_id: int) -> AssignmentResponse:
        now = self._clock()
        row = UserContentVariantHistory(
            user_id=user_id,
            content_id=content_id,
            variant_id=variant_id,
            first_viewed_at=now,
            last_accessed_at=now,
            view_count=1,
        )
        try:
            with self._transaction():
                self.db.add(row)
                self.db.flush()
        except IntegrityError:
            # only the unique (user_id, content_id) index means someone beat
            # us to it; a foreign key failure has no winner row to fall back on
            if self._history_row(user_id, content_id) is None:
                raise
            logger.info("Assignment race lost for user %s on content %s", user_id, content_id)
            raise AssignmentConflictError(user_id, content_id)

        self.db.refresh(row)
        return AssignmentResponse.model_validate(row)

    def touch_assignment(self, user_id: str, content_id: int) -> Optional[AssignmentResponse]:
        with self._transaction():
            # increment in SQL so concurrent touches don't lose counts
            result = self.db.execute(
                update(UserContentVariantHistory)
                .where(
                    UserContentVariantHistory.user_id == user_id,
                    UserContentVariantHistory.content_id == content_id,
                )
                .values(
                    view_count=UserContentVariantHistory.view_count + 1,
                    last_accessed_at=self._clock(),
                )
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            return None

        self.db.expire_all()
        return self.get_assignment(user_id, content_id)

    def get_user_history(self, user_id: str) -> List[HistoryEntryResponse]:
        stmt = (
            select(UserContentVariantHistory, Content.title, ContentVariant.data)
            .join(Content, Content.id == UserContentVariantHistory.content_id)
            .join(ContentVariant, ContentVariant.id == UserContentVariantHistory.variant_id)
            .where(UserContentVariantHistory.user_id == user_id)
            .order_by(
                UserContentVariantHistory.last_accessed_at.desc(),
                UserContentVariantHistory.id.desc(),
            )
        )
        entries = []
        for row, title, data in self.db.execute(stmt).all():
            entry = AssignmentResponse.model_validate(row)
            entries.append(HistoryEntryResponse(
                **entry.model_dump(),
                content_title=title,
                variant_data=data,
            ))
        return entries

    def delete_user_history(self, user_id: str) -> int:
        with self._transaction():
            result = self.db.execute(
                delete(UserContentVariantHistory)
                .where(UserContentVariantHistory.user_id == user_id)
                .execution_options(synchronize_session=False)
            )
        self.db.expire_all()
        return result.rowcount
