"""
uow_kit.services.blog_service

Blog management flows on top of a unit of work.

Responsibilities:
- Decide when a unit of work commits for each blog use case.
- Carry client-held row versions into optimistic-concurrency checks.
- Soft-delete and restore blogs; read and append posts.
"""

from __future__ import annotations

from sqlalchemy import func

from uow_kit.db.models import Blog, Post
from uow_kit.db.soft_delete import mark_restored
from uow_kit.db.unit_of_work import UnitOfWork
from uow_kit.observability.logging import get_logger

log = get_logger(__name__)


class DuplicateBlogNameError(ValueError):
    pass


class BlogService:
    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow
        self._blogs = uow.repository(Blog)

    async def list_blogs(self, *, newest_first: bool = False) -> list[Blog]:
        return await self._blogs.get_all_no_tracking_ordered(
            Blog.created_at if newest_first else Blog.name, descending=newest_first
        )

    async def list_deleted(self) -> list[Blog]:
        return await self._blogs.get_all_with_filter(Blog.is_deleted.is_(True))

    async def get(self, blog_id: int) -> Blog | None:
        return await self._blogs.get_by_id_with_includes(blog_id, Blog.posts)

    async def create(self, *, name: str) -> Blog:
        # Names stay unique across deleted blogs too, so a restore can never collide.
        if await self._blogs.exists_ignoring_soft_delete(func.lower(Blog.name) == name.lower()):
            raise DuplicateBlogNameError(name)
        blog = Blog(name=name)
        self._blogs.add(blog)
        await self._uow.commit()
        log.info("blog_created", blog_id=blog.id)
        return blog

    async def rename(self, *, blog_id: int, name: str, row_version: bytes) -> Blog | None:
        """
        Apply an edit made against `row_version`.

        Raises `ConcurrencyConflictError` when the blog changed since that version was read.
        """

        current = await self._blogs.get_by_id(blog_id)
        edited = await self._blogs.get_by_id_no_tracking(blog_id)
        if current is None or edited is None:
            return None

        edited.name = name
        self._blogs.apply_values(current, edited)
        self._blogs.set_original_row_version(current, row_version)
        self._blogs.update(current)
        await self._uow.commit()
        return current

    async def soft_delete(self, blog_id: int) -> bool:
        blog = await self._blogs.get_by_id(blog_id)
        if blog is None:
            return False
        self._blogs.soft_delete(blog)
        await self._uow.commit()
        log.info("blog_soft_deleted", blog_id=blog_id)
        return True

    async def restore(self, blog_id: int) -> Blog | None:
        blog = await self._blogs.get_by_id_ignoring_soft_delete(blog_id)
        if blog is None:
            return None
        if blog.is_deleted:
            mark_restored(blog, self._blogs.capabilities)
            await self._uow.commit()
            log.info("blog_restored", blog_id=blog_id)
        return blog

    async def list_posts(self, blog_id: int) -> list[Post] | None:
        blog = await self._blogs.get_by_id_no_tracking(blog_id)
        if blog is None:
            return None
        return await self._blogs.reload_collection(blog, Blog.posts)

    async def add_post(self, *, blog_id: int, title: str, body: str = "") -> Post | None:
        blog = await self._blogs.get_by_id(blog_id)
        if blog is None:
            return None
        await self._blogs.load_collection(blog, Blog.posts)
        post = Post(title=title, body=body)
        blog.posts.append(post)
        await self._uow.commit()
        return post
