"""Lazy rose trees of shrink candidates."""

from __future__ import annotations

from itertools import chain
from typing import Any, Callable, Generic, Iterable, Iterator, Sequence, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class LazySeq(Generic[T]):
    """Restartable view over an iterable that is consumed on demand.

    Items are pulled from the wrapped iterable only when an iteration reaches
    them, and are cached so later iterations see the same objects.
    """

    __slots__ = ("_source", "_cache")

    def __init__(self, source: Iterable[T]) -> None:
        self._source: Iterator[T] | None = iter(source)
        self._cache: list[T] = []

    def __iter__(self) -> Iterator[T]:
        index = 0
        while True:
            if index < len(self._cache):
                yield self._cache[index]
                index += 1
                continue
            if self._source is None:
                return
            try:
                item = next(self._source)
            except StopIteration:
                self._source = None
                return
            self._cache.append(item)

    def __repr__(self) -> str:
        state = "exhausted" if self._source is None else "pending"
        return f"LazySeq(cached={len(self._cache)}, {state})"


class RoseTree(Generic[T]):
    """A value and an ordered, lazily computed sequence of simpler trees."""

    __slots__ = ("value", "children")

    def __init__(self, value: T, children: Iterable["RoseTree[T]"] = ()) -> None:
        self.value = value
        self.children: LazySeq[RoseTree[T]] = LazySeq(children)

    def materialize(self, depth: int | None = None) -> tuple[T, list[Any]]:
        """Return nested ``(value, [children])`` tuples, down to `depth` levels."""

        if depth == 0:
            return (self.value, [])
        next_depth = None if depth is None else depth - 1
        return (self.value, [child.materialize(next_depth) for child in self.children])

    def __repr__(self) -> str:
        return f"RoseTree({self.value!r})"


def pure(value: T) -> RoseTree[T]:
    return RoseTree(value)


def make_rose(value: T, children: Iterable[RoseTree[T]]) -> RoseTree[T]:
    return RoseTree(value, children)


def fmap(f: Callable[[T], U], tree: RoseTree[T]) -> RoseTree[U]:
    """Apply `f` to every node, preserving the tree shape."""

    return RoseTree(f(tree.value), (fmap(f, child) for child in tree.children))


def join(tree: RoseTree[RoseTree[T]]) -> RoseTree[T]:
    """Flatten a tree of trees.

    Shrinks of the outer tree come first, then the inner root's own children.
    """

    inner = tree.value
    return RoseTree(
        inner.value,
        chain((join(child) for child in tree.children), inner.children),
    )


def bind(tree: RoseTree[T], k: Callable[[T], RoseTree[U]]) -> RoseTree[U]:
    return join(fmap(k, tree))


def filter_tree(pred: Callable[[T], bool], tree: RoseTree[T]) -> RoseTree[T]:
    """Drop every descendant whose value fails `pred`. The root is kept."""

    return RoseTree(
        tree.value,
        (filter_tree(pred, child) for child in tree.children if pred(child.value)),
    )


def collapse(tree: RoseTree[T]) -> RoseTree[T]:
    """Expose grandchildren as direct children, after the children."""

    return RoseTree(
        tree.value,
        chain(
            (collapse(child) for child in tree.children),
            (collapse(grandchild) for child in tree.children for grandchild in child.children),
        ),
    )


def permutations(trees: Sequence[RoseTree[T]]) -> Iterator[list[RoseTree[T]]]:
    """Yield copies of `trees` with one tree replaced by one of its children."""

    for index, tree in enumerate(trees):
        for child in tree.children:
            replaced = list(trees)
            replaced[index] = child
            yield replaced


def _exclude_each(trees: Sequence[RoseTree[T]]) -> Iterator[list[RoseTree[T]]]:
    for index in range(len(trees)):
        yield [*trees[:index], *trees[index + 1 :]]


def remove(trees: Sequence[RoseTree[T]]) -> Iterator[list[RoseTree[T]]]:
    """Yield single-element removals, then single-element shrinks."""

    return chain(_exclude_each(trees), permutations(trees))


def zip_trees(f: Callable[..., U], trees: Sequence[RoseTree[Any]]) -> RoseTree[U]:
    """Combine sibling trees with `f`, shrinking one position at a time."""

    trees = list(trees)
    return RoseTree(
        f(*(tree.value for tree in trees)),
        (zip_trees(f, candidate) for candidate in permutations(trees)),
    )


def shrink(f: Callable[..., U], trees: Sequence[RoseTree[Any]]) -> RoseTree[U]:
    """Combine sibling trees with `f`, shrinking by dropping or shrinking elements."""

    trees = list(trees)
    if not trees:
        return RoseTree(f())
    return RoseTree(
        f(*(tree.value for tree in trees)),
        (shrink(f, candidate) for candidate in remove(trees)),
    )


def _bisect(f: Callable[..., U], trees: list[RoseTree[Any]]) -> Iterator[RoseTree[U]]:
    if len(trees) < 4:
        return
    half = len(trees) // 2
    yield shrink(f, trees[:half])
    yield shrink(f, trees[half:])


def shrink_vector(f: Callable[..., U], trees: Sequence[RoseTree[Any]]) -> RoseTree[U]:
    """Like :func:`shrink`, but try the empty collection and both halves first."""

    trees = list(trees)
    tree = shrink(f, trees)
    if not trees:
        return tree
    return RoseTree(
        tree.value,
        chain((RoseTree(f()),), _bisect(f, trees), tree.children),
    )
