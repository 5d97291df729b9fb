"""
Collections that cannot be empty.

Batch operations (upgrades, info lookups, satisfaction checks) are meaningless on zero packages, so
their entry points take these types instead of plain sets and lists. Use nonempty_set and
nonempty_list to turn an arbitrary iterable into one of these, handling the empty case at the call
site.
"""

import collections.abc
import typing

T = typing.TypeVar("T")


class NonEmptySet[T](frozenset[T]):
    def __new__(cls, items: collections.abc.Iterable[T] = ()) -> typing.Self:
        instance = super().__new__(cls, items)
        if len(instance) == 0:
            raise ValueError(f"{cls.__name__} requires at least one element")
        return instance

    def __repr__(self) -> str:
        return f"{type(self).__name__}({set(self)!r})"


class NonEmptyList[T](tuple[T, ...]):
    def __new__(cls, items: collections.abc.Iterable[T] = ()) -> typing.Self:
        instance = super().__new__(cls, items)
        if len(instance) == 0:
            raise ValueError(f"{cls.__name__} requires at least one element")
        return instance

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self)!r})"


def nonempty_set(items: collections.abc.Iterable[T]) -> NonEmptySet[T] | None:
    items = frozenset(items)
    if len(items) == 0:
        return None
    return NonEmptySet(items)


def nonempty_list(items: collections.abc.Iterable[T]) -> NonEmptyList[T] | None:
    items = tuple(items)
    if len(items) == 0:
        return None
    return NonEmptyList(items)
