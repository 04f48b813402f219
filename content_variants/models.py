"""SQLAlchemy models for contents, their variants, and per-user variant history.

These map to the tables in SQLite.
"""
from sqlalchemy import Boolean, Column, Integer, String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from content_variants.database import Base


class Content(Base):
    """A content item - what users actually get served is one of its variants"""
    __tablename__ = "contents"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    language = Column(String(2), nullable=False, index=True)  # en, tr
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    variants = relationship(
        "ContentVariant",
        back_populates="content",
        cascade="all, delete-orphan",
        order_by="ContentVariant.id",
    )
    history = relationship("UserContentVariantHistory", back_populates="content", cascade="all, delete-orphan")


class ContentVariant(Base):
    """One alternate rendering of a content; exactly one per content is the default"""
    __tablename__ = "content_variants"

    id = Column(Integer, primary_key=True, index=True)
    content_id = Column(Integer, ForeignKey("contents.id", ondelete="CASCADE"), nullable=False)
    data = Column(Text, nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    content = relationship("Content", back_populates="variants")
    history = relationship("UserContentVariantHistory", back_populates="variant", cascade="all, delete")

    __table_args__ = (
        Index('idx_content_variants_content_id', 'content_id'),
    )


class UserContentVariantHistory(Base):
    """Sticky binding of a user to the variant they saw first, plus view telemetry"""
    __tablename__ = "user_content_variant_history"

    id = Column(Integer, primary_key=True, index=True)
    # user ids are opaque here, there is no users table to point at
    user_id = Column(String, nullable=False)
    content_id = Column(Integer, ForeignKey("contents.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Integer, ForeignKey("content_variants.id", ondelete="CASCADE"), nullable=False)
    first_viewed_at = Column(DateTime(timezone=True), nullable=False)
    last_accessed_at = Column(DateTime(timezone=True), nullable=False)
    view_count = Column(Integer, nullable=False, default=1)

    # Relationships
    content = relationship("Content", back_populates="history")
    variant = relationship("ContentVariant", back_populates="history")

    # Unique constraint is what makes concurrent first views safe
    __table_args__ = (
        Index('idx_history_user_content', 'user_id', 'content_id', unique=True),
        Index('idx_history_user_last_accessed', 'user_id', 'last_accessed_at'),
    )
