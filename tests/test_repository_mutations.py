"""
tests.test_repository_mutations

Add/update/delete, soft delete, value copy, row versions and detach semantics.
"""

from __future__ import annotations

import gc
import weakref

import pytest
from sqlalchemy import inspect, select

from uow_kit.db.errors import ConcurrencyConflictError, IdentityConflictError, MissingKeyError
from uow_kit.db.models import Blog, Post, Tag
from uow_kit.db.soft_delete import utcnow
from uow_kit.db.tracking import EntryState
from uow_kit.db.unit_of_work import UnitOfWork


async def _read_blog(sessionmaker, blog_id: int) -> Blog | None:
    async with UnitOfWork(sessionmaker) as uow:
        return await uow.repository(Blog).get_by_id_ignoring_soft_delete(blog_id)


@pytest.mark.asyncio
async def test_add_commit_get_round_trip(uow: UnitOfWork, sessionmaker) -> None:
    blogs = uow.repository(Blog)
    added = Blog(name="Round trip")
    blogs.add(added)
    assert blogs.get_entry(added).state is EntryState.added
    assert added.id is None

    assert await uow.commit() == 1

    loaded = await _read_blog(sessionmaker, added.id)
    assert loaded is not added
    assert (loaded.id, loaded.name, loaded.created_at, loaded.is_deleted, loaded.deleted_at) == (
        added.id,
        added.name,
        added.created_at,
        False,
        None,
    )
    assert loaded.row_version == added.row_version
    assert len(loaded.row_version) == 16


@pytest.mark.asyncio
async def test_update_detached_record_overwrites_row(sessionmaker, make_blog) -> None:
    blog = await make_blog("A")
    first_version = blog.row_version
    blog.name = "B"

    async with UnitOfWork(sessionmaker) as uow:
        blogs = uow.repository(Blog)
        blogs.update(blog)
        assert blogs.get_entry(blog).state is EntryState.modified
        assert await uow.commit() == 1

    stored = await _read_blog(sessionmaker, blog.id)
    assert stored.name == "B"
    assert stored.row_version != first_version
    async with UnitOfWork(sessionmaker) as uow:
        assert len(await uow.repository(Blog).get_all_no_tracking()) == 1


@pytest.mark.asyncio
async def test_update_transient_record_with_key_checks_its_row_version(
    sessionmaker, make_blog
) -> None:
    blog = await make_blog("A")

    async with UnitOfWork(sessionmaker) as uow:
        uow.repository(Blog).update(Blog(id=blog.id, name="fresh", row_version=blog.row_version))
        assert await uow.commit() == 1

    async with UnitOfWork(sessionmaker) as uow:
        uow.repository(Blog).update(Blog(id=blog.id, name="stale", row_version=blog.row_version))
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await uow.commit()

    assert exc_info.value.record_type is Blog
    assert exc_info.value.key == blog.id
    assert (await _read_blog(sessionmaker, blog.id)).name == "fresh"


@pytest.mark.asyncio
async def test_update_without_key_is_rejected(uow: UnitOfWork) -> None:
    with pytest.raises(MissingKeyError):
        uow.repository(Blog).update(Blog(name="no key"))


@pytest.mark.asyncio
async def test_delete_removes_row_physically(uow: UnitOfWork, sessionmaker, make_blog) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)
    blog = await blogs.get_by_id(seeded.id)

    await blogs.delete(blog)

    assert blogs.get_entry(blog).state is EntryState.deleted
    assert await uow.commit() == 1
    assert await _read_blog(sessionmaker, seeded.id) is None


@pytest.mark.asyncio
async def test_delete_of_unsaved_record_just_forgets_it(uow: UnitOfWork) -> None:
    blogs = uow.repository(Blog)
    blog = Blog(name="never saved")
    blogs.add(blog)

    await blogs.delete(blog)

    assert blogs.get_entry(blog).state is EntryState.detached
    assert await uow.commit() == 0


@pytest.mark.asyncio
async def test_soft_delete_sets_flag_and_timestamp(uow: UnitOfWork, sessionmaker, make_blog) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)
    blog = await blogs.get_by_id(seeded.id)
    before = utcnow()

    assert blogs.soft_delete(blog) is True

    assert blogs.get_entry(blog).state is EntryState.modified
    assert blog.is_deleted is True
    assert before <= blog.deleted_at <= utcnow()
    assert await uow.commit() == 1

    stored = await _read_blog(sessionmaker, seeded.id)
    assert stored.is_deleted is True
    assert stored.deleted_at == blog.deleted_at


@pytest.mark.asyncio
async def test_soft_delete_twice_keeps_record_deleted(uow: UnitOfWork, sessionmaker, make_blog) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)
    blog = await blogs.get_by_id(seeded.id)

    blogs.soft_delete(blog)
    await uow.commit()
    blogs.soft_delete(blog)
    await uow.commit()

    stored = await _read_blog(sessionmaker, seeded.id)
    assert stored.is_deleted is True
    assert stored.deleted_at is not None


@pytest.mark.asyncio
async def test_soft_delete_of_detached_record_attaches_it(sessionmaker, make_blog) -> None:
    blog = await make_blog("A")

    async with UnitOfWork(sessionmaker) as uow:
        assert uow.repository(Blog).soft_delete(blog) is True
        assert await uow.commit() == 1

    assert (await _read_blog(sessionmaker, blog.id)).is_deleted is True


@pytest.mark.asyncio
async def test_soft_delete_without_fields_is_an_observable_no_op(
    uow: UnitOfWork, sessionmaker
) -> None:
    tags = uow.repository(Tag)
    tag = Tag(label="python")
    tags.add(tag)
    await uow.commit()
    snapshot = (await uow.session.execute(select(Tag.id, Tag.label))).all()

    assert tags.capabilities.supports_soft_delete is False
    assert tags.soft_delete(tag) is False
    assert tags.get_entry(tag).state is EntryState.unchanged
    assert await uow.commit() == 0

    async with UnitOfWork(sessionmaker) as other:
        assert (await other.session.execute(select(Tag.id, Tag.label))).all() == snapshot


@pytest.mark.asyncio
async def test_apply_values_copies_columns_but_not_identity_or_token(
    uow: UnitOfWork, make_blog
) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)
    target = await blogs.get_by_id(seeded.id)
    source = await blogs.get_by_id_no_tracking(seeded.id)
    source.name = "Edited"
    source.row_version = b"\xff" * 16

    blogs.apply_values(target, source)

    assert target.name == "Edited"
    assert target.id == seeded.id
    assert target.row_version == seeded.row_version
    assert blogs.get_entry(target).state is EntryState.modified
    assert blogs.get_entry(source).state is EntryState.detached


@pytest.mark.asyncio
async def test_set_original_row_version_drives_the_conflict_check(
    sessionmaker, make_blog
) -> None:
    seeded = await make_blog("A")

    async with UnitOfWork(sessionmaker) as uow:
        blogs = uow.repository(Blog)
        blog = await blogs.get_by_id(seeded.id)
        blogs.set_original_row_version(blog, b"\x01" * 16)
        assert blogs.get_entry(blog).original_token == b"\x01" * 16
        blog.name = "changed"
        with pytest.raises(ConcurrencyConflictError):
            await uow.commit()

    async with UnitOfWork(sessionmaker) as uow:
        blogs = uow.repository(Blog)
        blog = await blogs.get_by_id(seeded.id)
        blogs.set_original_row_version(blog, seeded.row_version)
        blog.name = "changed"
        assert await uow.commit() == 1

    assert (await _read_blog(sessionmaker, seeded.id)).name == "changed"


@pytest.mark.asyncio
async def test_entry_tokens_are_independent(uow: UnitOfWork, make_blog) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)
    entry = blogs.get_entry(await blogs.get_by_id(seeded.id))

    entry.current_token = b"\x02" * 16
    entry.original_token = b"\x03" * 16

    assert entry.current_token == b"\x02" * 16
    assert entry.original_token == b"\x03" * 16


@pytest.mark.asyncio
async def test_clear_row_version_prevents_spurious_conflict(sessionmaker, make_blog) -> None:
    stale = await make_blog("A")

    async with UnitOfWork(sessionmaker) as other:
        blog = await other.repository(Blog).get_by_id(stale.id)
        blog.name = "concurrent"
        await other.commit()

    async with UnitOfWork(sessionmaker) as uow:
        blogs = uow.repository(Blog)
        blogs.clear_row_version(stale)
        entry = blogs.get_entry(stale)
        assert (entry.current_token, entry.original_token) == (None, None)

        stale.name = "last write"
        blogs.update(stale)
        assert await uow.commit() == 1

    stored = await _read_blog(sessionmaker, stale.id)
    assert stored.name == "last write"
    assert stored.row_version is not None


@pytest.mark.asyncio
async def test_row_version_operations_are_no_ops_without_token(uow: UnitOfWork) -> None:
    tags = uow.repository(Tag)
    tag = Tag(label="rust")
    tags.add(tag)
    await uow.commit()

    tags.set_original_row_version(tag, b"\x01")
    tags.clear_row_version(tag)

    entry = tags.get_entry(tag)
    assert entry.current_token is None
    assert entry.original_token is None
    assert entry.state is EntryState.unchanged


@pytest.mark.asyncio
async def test_entry_state_transitions(uow: UnitOfWork) -> None:
    blogs = uow.repository(Blog)
    blog = Blog(name="A")
    entry = blogs.get_entry(blog)
    assert entry.state is EntryState.detached

    blogs.add(blog)
    assert entry.state is EntryState.added

    await uow.commit()
    assert entry.state is EntryState.unchanged

    blog.name = "B"
    assert entry.state is EntryState.modified

    blogs.detach(blog)
    assert entry.state is EntryState.detached
    assert not entry.is_tracked


@pytest.mark.asyncio
async def test_detached_record_changes_are_not_committed(
    uow: UnitOfWork, sessionmaker, make_blog
) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)
    blog = await blogs.get_by_id(seeded.id)
    assert blogs.is_tracked_by_key(lambda b: b.id == seeded.id)

    blogs.detach(blog)
    blog.name = "ghost"

    assert not blogs.is_tracked_by_key(lambda b: b.id == seeded.id)
    assert await uow.commit() == 0
    assert (await _read_blog(sessionmaker, seeded.id)).name == "A"


@pytest.mark.asyncio
async def test_detach_of_untracked_record_is_harmless(uow: UnitOfWork, make_blog) -> None:
    blog = await make_blog("A")

    uow.repository(Blog).detach(blog)

    assert inspect(blog).detached


@pytest.mark.asyncio
async def test_detach_where(uow: UnitOfWork, make_blog) -> None:
    for name in ("alpha", "amber", "beta"):
        await make_blog(name)
    blogs = uow.repository(Blog)
    await blogs.get_all()
    gc.collect()

    blogs.detach_where(lambda b: b.name.startswith("a"))

    assert blogs.is_tracked_by_key(lambda b: b.name == "beta")
    assert not blogs.is_tracked_by_key(lambda b: b.name.startswith("a"))


@pytest.mark.asyncio
async def test_tracked_record_survives_caller_dropping_it(uow: UnitOfWork, make_blog) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)

    await blogs.get_by_id(seeded.id)
    gc.collect()

    assert blogs.is_tracked_by_key(lambda b: b.id == seeded.id)
    with pytest.raises(IdentityConflictError):
        blogs.update(Blog(id=seeded.id, name="second instance", row_version=seeded.row_version))


@pytest.mark.asyncio
async def test_detached_record_is_released(uow: UnitOfWork, make_blog) -> None:
    seeded = await make_blog("A")
    blogs = uow.repository(Blog)
    blog = await blogs.get_by_id(seeded.id)
    ref = weakref.ref(blog)

    blogs.detach(blog)
    del blog
    gc.collect()

    assert ref() is None
    assert not blogs.is_tracked_by_key(lambda b: True)


@pytest.mark.asyncio
async def test_detaching_parent_keeps_children_tracked(
    uow: UnitOfWork, sessionmaker, make_blog
) -> None:
    seeded = await make_blog("A", posts=["p1"])
    blogs = uow.repository(Blog)
    posts = uow.repository(Post)
    blog = await blogs.get_by_id(seeded.id)
    await blogs.load_collection(blog, Blog.posts)
    post = blog.posts[0]

    blogs.detach(blog)

    assert blogs.get_entry(blog).state is EntryState.detached
    assert posts.get_entry(post).state is EntryState.unchanged

    post.title = "edited"
    assert await uow.commit() == 1

    async with UnitOfWork(sessionmaker) as other:
        stored = await other.repository(Post).get_by_id(post.id)
        assert stored.title == "edited"
