"""
uow_kit.api.routers.blogs

Blog endpoints backed by one unit of work per request.

Responsibilities:
- List, read, create, rename, soft-delete and restore blogs.
- Read and append posts.
- Map concurrency conflicts to 409 and missing blogs to 404.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_204_NO_CONTENT,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
)

from uow_kit.api.deps import blog_service
from uow_kit.db.errors import ConcurrencyConflictError
from uow_kit.db.models import Blog, Post
from uow_kit.services.blog_service import BlogService, DuplicateBlogNameError

router = APIRouter(prefix="/v1/blogs", tags=["blogs"])


class BlogCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class BlogRenameRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    # Hex-encoded row version the client read; the update only applies against it.
    row_version: str


class PostCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    body: str = ""


class PostResponse(BaseModel):
    id: int
    blog_id: int
    title: str
    body: str

    @classmethod
    def of(cls, post: Post) -> PostResponse:
        return cls(id=post.id, blog_id=post.blog_id, title=post.title, body=post.body)


class BlogResponse(BaseModel):
    id: int
    name: str
    created_at: datetime
    is_deleted: bool
    deleted_at: datetime | None
    row_version: str
    posts: list[PostResponse] | None = None

    @classmethod
    def of(cls, blog: Blog, *, posts: list[Post] | None = None) -> BlogResponse:
        return cls(
            id=blog.id,
            name=blog.name,
            created_at=blog.created_at,
            is_deleted=blog.is_deleted,
            deleted_at=blog.deleted_at,
            row_version=blog.row_version.hex(),
            posts=[PostResponse.of(p) for p in posts] if posts is not None else None,
        )


def _not_found() -> HTTPException:
    return HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Blog not found")


@router.get("", response_model=list[BlogResponse])
async def list_blogs(
    newest_first: bool = False, svc: BlogService = Depends(blog_service)
) -> list[BlogResponse]:
    return [BlogResponse.of(b) for b in await svc.list_blogs(newest_first=newest_first)]


@router.get("/deleted", response_model=list[BlogResponse])
async def list_deleted_blogs(svc: BlogService = Depends(blog_service)) -> list[BlogResponse]:
    return [BlogResponse.of(b) for b in await svc.list_deleted()]


@router.get("/{blog_id}", response_model=BlogResponse)
async def get_blog(blog_id: int, svc: BlogService = Depends(blog_service)) -> BlogResponse:
    blog = await svc.get(blog_id)
    if blog is None:
        raise _not_found()
    return BlogResponse.of(blog, posts=blog.posts)


@router.post("", response_model=BlogResponse, status_code=HTTP_201_CREATED)
async def create_blog(
    body: BlogCreateRequest, svc: BlogService = Depends(blog_service)
) -> BlogResponse:
    try:
        blog = await svc.create(name=body.name)
    except DuplicateBlogNameError:
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail="Blog name already in use")
    return BlogResponse.of(blog)


@router.put("/{blog_id}", response_model=BlogResponse)
async def rename_blog(
    blog_id: int, body: BlogRenameRequest, svc: BlogService = Depends(blog_service)
) -> BlogResponse:
    try:
        row_version = bytes.fromhex(body.row_version)
    except ValueError:
        raise HTTPException(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY, detail="row_version must be hex encoded"
        )

    try:
        blog = await svc.rename(blog_id=blog_id, name=body.name, row_version=row_version)
    except ConcurrencyConflictError:
        # Client must re-read the blog (fresh row version) before retrying.
        raise HTTPException(
            status_code=HTTP_409_CONFLICT, detail="Blog was modified by someone else"
        )
    if blog is None:
        raise _not_found()
    return BlogResponse.of(blog)


@router.delete("/{blog_id}", status_code=HTTP_204_NO_CONTENT)
async def delete_blog(blog_id: int, svc: BlogService = Depends(blog_service)) -> None:
    if not await svc.soft_delete(blog_id):
        raise _not_found()


@router.post("/{blog_id}/restore", response_model=BlogResponse)
async def restore_blog(blog_id: int, svc: BlogService = Depends(blog_service)) -> BlogResponse:
    blog = await svc.restore(blog_id)
    if blog is None:
        raise _not_found()
    return BlogResponse.of(blog)


@router.get("/{blog_id}/posts", response_model=list[PostResponse])
async def list_posts(blog_id: int, svc: BlogService = Depends(blog_service)) -> list[PostResponse]:
    posts = await svc.list_posts(blog_id)
    if posts is None:
        raise _not_found()
    return [PostResponse.of(p) for p in posts]


@router.post("/{blog_id}/posts", response_model=PostResponse, status_code=HTTP_201_CREATED)
async def add_post(
    blog_id: int, body: PostCreateRequest, svc: BlogService = Depends(blog_service)
) -> PostResponse:
    post = await svc.add_post(blog_id=blog_id, title=body.title, body=body.body)
    if post is None:
        raise _not_found()
    return PostResponse.of(post)
