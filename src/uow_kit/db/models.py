"""
uow_kit.db.models

Example record types used by the HTTP host and the test-suite.

Responsibilities:
- Blog: soft-deletable, row-versioned, with a `posts` collection navigation
- Post: soft-deletable, row-versioned, with a `blog` reference navigation
- Tag: plain record (no soft-delete fields, no concurrency token)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uow_kit.db.base import Base, new_row_version
from uow_kit.db.soft_delete import SoftDeleteMixin, utcnow


class Blog(SoftDeleteMixin, Base):
    __tablename__ = "blogs"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    row_version: Mapped[bytes] = mapped_column(LargeBinary(16), nullable=False)

    posts: Mapped[list[Post]] = relationship(
        back_populates="blog",
        # No expunge/refresh cascade: detaching or reloading a blog leaves its posts alone.
        cascade="save-update, merge, delete, delete-orphan",
        order_by="Post.id",
    )

    __mapper_args__ = {"version_id_col": row_version, "version_id_generator": new_row_version}

    def __repr__(self) -> str:
        return f"<Blog id={self.id} name={self.name!r} deleted={self.is_deleted}>"


class Post(SoftDeleteMixin, Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(primary_key=True)
    blog_id: Mapped[int] = mapped_column(ForeignKey("blogs.id"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    row_version: Mapped[bytes] = mapped_column(LargeBinary(16), nullable=False)

    blog: Mapped[Blog] = relationship(back_populates="posts")

    __mapper_args__ = {"version_id_col": row_version, "version_id_generator": new_row_version}


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    label: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)


# --- Module Notes -----------------------------------------------------------
# Soft-delete and row-version support are discovered from these mappings by
# `uow_kit.db.capabilities`; record types opt in by shape, not by base class.
