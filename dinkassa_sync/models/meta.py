# dinkassa_sync/models/meta.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from dinkassa_sync.database import Base


class PostMeta(Base):
    """
    Key/value metadata attached to a storefront product (post).
    Holds the Dinkassa.se id, category name, pending-operation mask and
    pending quantity delta of each product.
    """
    __tablename__ = "post_meta"

    id = Column(Integer, primary_key=True)
    post_id = Column(Integer, nullable=False, index=True)
    meta_key = Column(String(255), nullable=False, index=True)
    meta_value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_post_meta_post_id_meta_key", "post_id", "meta_key"),
    )

    def __repr__(self):
        return f"<PostMeta(post_id={self.post_id}, key='{self.meta_key}', value={self.meta_value!r})>"


class Term(Base):
    """A category, or the sentinel container that tracks failed remote deletes."""
    __tablename__ = "terms"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(200), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Term(id={self.id}, slug='{self.slug}')>"


class TermMeta(Base):
    """
    Key/value metadata attached to a term. A key may hold several rows,
    which is how deleted-item records accumulate on the sentinel term.
    """
    __tablename__ = "term_meta"

    id = Column(Integer, primary_key=True)
    term_id = Column(Integer, nullable=False, index=True)
    meta_key = Column(String(255), nullable=False, index=True)
    meta_value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_term_meta_term_id_meta_key", "term_id", "meta_key"),
    )

    def __repr__(self):
        return f"<TermMeta(term_id={self.term_id}, key='{self.meta_key}', value={self.meta_value!r})>"
