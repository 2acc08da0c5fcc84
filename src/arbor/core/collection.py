"""Ordered collection that only accepts instances of one type."""

from __future__ import annotations

from typing import Generic, Iterator, TypeVar

from arbor.core.errors import TypeMismatchError

T = TypeVar("T")


class TypedCollection(Generic[T]):
    """Insertion-ordered sequence whose members are all instances of *item_type*.

    Membership and removal work by identity, not equality, so two
    distinct nodes with the same title are never confused.

    Removing an element that is not present is a no-op.
    """

    def __init__(self, item_type: type[T]) -> None:
        if not isinstance(item_type, type):
            raise TypeMismatchError(
                f"TypedCollection needs a type, got {item_type!r}"
            )
        self._item_type = item_type
        self._items: list[T] = []

    @property
    def item_type(self) -> type[T]:
        """Return the type every member must be an instance of."""
        return self._item_type

    def add_item(self, item: T) -> None:
        """Append *item*.

        Raises:
            TypeMismatchError: If *item* is not an instance of :attr:`item_type`.
        """
        if not isinstance(item, self._item_type):
            raise TypeMismatchError(
                f"Expected {self._item_type.__name__}, got {type(item).__name__}"
            )
        self._items.append(item)

    def remove_item(self, item: T) -> None:
        """Remove the first member that *is* ``item``; do nothing if absent."""
        for index, existing in enumerate(self._items):
            if existing is item:
                del self._items[index]
                return

    def get_item(self, index: int) -> T | None:
        """Return the member at *index*, or ``None`` when out of range.

        Negative indexes are treated as out of range.
        """
        if 0 <= index < len(self._items):
            return self._items[index]
        return None

    def has_items(self) -> bool:
        """Return ``True`` if the collection is non-empty."""
        return bool(self._items)

    def clone(self) -> TypedCollection[T]:
        """Return a shallow copy bound to the same type with its own storage."""
        copy: TypedCollection[T] = TypedCollection(self._item_type)
        copy._items = list(self._items)
        return copy

    def to_list(self) -> list[T]:
        """Return the members as a new list."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __contains__(self, item: object) -> bool:
        return any(existing is item for existing in self._items)

    def __repr__(self) -> str:
        return f"TypedCollection({self._item_type.__name__}, {self._items!r})"
