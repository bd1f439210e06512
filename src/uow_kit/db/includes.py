"""
uow_kit.db.includes

Typed eager-load paths.

An include path is a relationship attribute (``Blog.posts``) or a sequence of them
walking outward from the queried type (``(Blog.posts, Post.tags)``). Each path becomes
one chained ``selectinload`` option; path resolution is left to SQLAlchemy.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any, Union

from sqlalchemy.orm import QueryableAttribute, selectinload
from sqlalchemy.orm.interfaces import LoaderOption

IncludePath = Union[QueryableAttribute[Any], Sequence[QueryableAttribute[Any]]]


def _steps(path: IncludePath) -> list[QueryableAttribute[Any]]:
    if isinstance(path, QueryableAttribute):
        return [path]
    steps = list(path)
    if not steps:
        raise ValueError("include path must name at least one relationship")
    return steps


def load_options(paths: Iterable[IncludePath]) -> list[LoaderOption]:
    options: list[LoaderOption] = []
    for path in paths:
        first, *rest = _steps(path)
        option = selectinload(first)
        for step in rest:
            option = option.selectinload(step)
        options.append(option)
    return options
