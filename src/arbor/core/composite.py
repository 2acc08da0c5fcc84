"""Composite tree node shared by suites and specs.

A node with children acts as a *suite*; a node without children acts as
a *spec*.  The role is derived from :meth:`Composite.has_children` and is
never stored.

Every node carries a materialized :attr:`Composite.path`: the chain of
nodes from the root down to and including itself.  Paths are computed
when a node is attached or detached, for the node and its whole subtree,
so ``node.path == node.parent.path + [node]`` holds for every attached
node no matter in which order the tree was assembled.
"""

from __future__ import annotations

import weakref

from arbor.core.collection import TypedCollection
from arbor.core.errors import NotFoundError, TypeMismatchError


class Composite:
    """A tree node holding a title, a weak parent reference, children and a path.

    The parent link is weak, but the materialized :attr:`path` holds
    strong references to every ancestor.  A live descendant therefore
    keeps its whole ancestry alive, and :attr:`parent` only returns
    ``None`` for a root or after :meth:`remove_child`.  Detaching a node
    rebuilds its path and releases those ancestors.

    Attributes:
        title: Human-readable name set by the build strategy.
    """

    def __init__(self, title: str = "") -> None:
        self.title = title
        self._parent: weakref.ReferenceType[Composite] | None = None
        self.children: TypedCollection[Composite] = TypedCollection(Composite)
        self._path: TypedCollection[Composite] = TypedCollection(Composite)
        self._path.add_item(self)

    @property
    def parent(self) -> Composite | None:
        """Return the parent node, or ``None`` for a root or a detached node."""
        if self._parent is None:
            return None
        return self._parent()

    @property
    def path(self) -> TypedCollection[Composite]:
        """Return the ancestry chain from the root to this node, inclusive."""
        return self._path

    @property
    def depth(self) -> int:
        """Return the length of :attr:`path`; a root has depth 1."""
        return len(self._path)

    @property
    def is_suite(self) -> bool:
        """Return ``True`` when this node currently acts as a suite."""
        return self.has_children()

    def add_child(self, child: Composite) -> None:
        """Attach *child* as the last child of this node.

        Sets ``child.parent`` to this node and recomputes the path of
        *child* and all of its descendants.  This node's own path is
        untouched.

        Raises:
            TypeMismatchError: If *child* is not a :class:`Composite`, is
                already attached to a parent, or is this node or one of
                its ancestors.
        """
        if not isinstance(child, Composite):
            raise TypeMismatchError(
                f"Expected Composite, got {type(child).__name__}"
            )
        if child.parent is not None:
            raise TypeMismatchError(
                f"Node {child.title!r} is already attached to {child.parent.title!r}"
            )
        if child in self._path:
            raise TypeMismatchError(
                f"Attaching {child.title!r} under {self.title!r} would create a cycle"
            )
        self.children.add_item(child)
        child._parent = weakref.ref(self)
        child._rebase(self._path)

    def remove_child(self, child: Composite) -> None:
        """Detach *child* from this node.

        The detached node becomes a root again: its parent is cleared and
        the paths of its subtree start at the detached node.

        Raises:
            NotFoundError: If *child* is not a child of this node.
        """
        if child not in self.children:
            title = getattr(child, "title", child)
            raise NotFoundError(f"{title!r} is not a child of {self.title!r}")
        self.children.remove_item(child)
        child._parent = None
        child._rebase(None)

    def get_child(self, index: int) -> Composite | None:
        """Return the child at *index*, or ``None`` if there is none."""
        return self.children.get_item(index)

    def has_children(self) -> bool:
        """Return ``True`` if this node has at least one child."""
        return self.children.has_items()

    def _rebase(self, parent_path: TypedCollection[Composite] | None) -> None:
        if parent_path is None:
            path: TypedCollection[Composite] = TypedCollection(Composite)
        else:
            path = parent_path.clone()
        path.add_item(self)
        self._path = path
        for child in self.children:
            child._rebase(path)

    def __repr__(self) -> str:
        role = "suite" if self.has_children() else "spec"
        return f"Composite({self.title!r}, {role}, depth={self.depth})"
