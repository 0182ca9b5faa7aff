"""Collection generators, including distinct-element collections."""

from __future__ import annotations

from collections.abc import Mapping
from functools import reduce
import logging
import operator
from typing import Any, Callable, Hashable, Iterable, Sequence, TypeVar

from rosegen import rose
from rosegen.config import DEFAULT_MAX_TRIES
from rosegen.errors import ExhaustionContext, ExhaustionHandler, distinct_exhausted
from rosegen.generators import (
    Generator,
    _require_generator,
    _require_max_tries,
    choose,
    fmap,
    gen_bind,
    gen_pure,
    gen_tuple,
    pure,
    rand_range,
    sized,
    tuple_of,
)
from rosegen.rng import RandomSource
from rosegen.rose import RoseTree

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
C = TypeVar("C")


def _into(empty: C, items: Iterable[Any]) -> C:
    return type(empty)(items)  # type: ignore[call-arg]


def _check_counts(
    num_elements: int | None,
    min_elements: int | None,
    max_elements: int | None,
) -> tuple[int | None, int | None, int | None]:
    counts = [None if n is None else operator.index(n) for n in (num_elements, min_elements, max_elements)]
    num_elements, min_elements, max_elements = counts
    if any(n is not None and n < 0 for n in counts):
        raise ValueError("element counts must be >= 0")
    if num_elements is not None and (min_elements is not None or max_elements is not None):
        raise ValueError("num_elements cannot be combined with min_elements or max_elements")
    if min_elements is not None and max_elements is not None and min_elements > max_elements:
        raise ValueError(f"min_elements {min_elements} exceeds max_elements {max_elements}")
    return num_elements, min_elements, max_elements


def _list_of(*values: Any) -> list[Any]:
    return list(values)


def vector(
    gen: Generator[T],
    num_elements: int | None = None,
    min_elements: int | None = None,
    max_elements: int | None = None,
) -> Generator[list[T]]:
    """Lists of values from `gen`.

    Without counts the length is drawn from ``[0, size]``. Shrinks drop
    elements (empty list first) before shrinking individual elements.
    """

    _require_generator(gen, "vector")
    num_elements, min_elements, max_elements = _check_counts(num_elements, min_elements, max_elements)

    if num_elements is not None:
        return fmap(list, tuple_of(*([gen] * num_elements)))

    def assemble(count_tree: RoseTree[int]) -> Generator[list[T]]:
        return gen_bind(
            gen_tuple([gen] * count_tree.value),
            lambda trees: gen_pure(rose.shrink_vector(_list_of, trees)),
        )

    if min_elements is None and max_elements is None:
        return gen_bind(sized(lambda size: choose(0, size)), assemble)

    low = min_elements or 0
    count_gen = choose(low, max_elements) if max_elements is not None else sized(lambda size: choose(low, low + size))

    def in_bounds(values: list[T]) -> bool:
        return low <= len(values) and (max_elements is None or len(values) <= max_elements)

    return gen_bind(
        count_gen,
        lambda count_tree: gen_bind(assemble(count_tree), lambda tree: gen_pure(rose.filter_tree(in_bounds, tree))),
    )


def _swap(values: list[T], indexes: tuple[int, int]) -> list[T]:
    i, j = indexes
    swapped = list(values)
    swapped[i], swapped[j] = swapped[j], swapped[i]
    return swapped


def shuffle(coll: Iterable[T]) -> Generator[list[T]]:
    """Random permutations of `coll`, shrinking toward the original order."""

    values = list(coll)
    if not values:
        return pure([])
    index_gen = choose(0, len(values) - 1)
    swaps = vector(tuple_of(index_gen, index_gen), min_elements=0, max_elements=2 * len(values))
    return fmap(lambda instructions: reduce(_swap, instructions, values), swaps)


def shuffle_items(source: RandomSource, items: Sequence[T]) -> list[T]:
    """Fisher-Yates shuffle of `items` driven by `source`. Not a generator."""

    shuffled = list(items)
    last = len(shuffled) - 1
    for index in range(len(shuffled)):
        swap_source, source = source.split()
        other = rand_range(swap_source, index, last)
        shuffled[index], shuffled[other] = shuffled[other], shuffled[index]
    return shuffled


def _distinct_by(key_fn: Callable[[Any], Hashable], coll: Any) -> bool:
    items = coll.items() if isinstance(coll, Mapping) else coll
    keys = [key_fn(item) for item in items]
    return len(set(keys)) == len(keys)


def _assemble_distinct(
    empty: C,
    key_fn: Callable[[Any], Hashable],
    ordered: bool,
    gen: Generator[Any],
    source: RandomSource,
    size: int,
    num_elements: int,
    min_elements: int,
    max_tries: int,
    make_error: ExhaustionHandler,
) -> RoseTree[C]:
    trees: list[RoseTree[Any]] = []
    seen: set[Hashable] = set()
    tries = 0
    while len(trees) < num_elements:
        if tries == max_tries:
            if len(trees) < min_elements:
                raise make_error(ExhaustionContext(gen=gen, max_tries=max_tries, num_elements=num_elements))
            break
        draw_source, source = source.split()
        tree = gen.evaluate(draw_source, size)
        key = key_fn(tree.value)
        if key in seen:
            tries += 1
            size += 1
            LOGGER.debug("Duplicate key %r, collision %d/%d", key, tries, max_tries)
            continue
        trees.append(tree)
        seen.add(key)
        tries = 0

    if ordered:
        trees = shuffle_items(source, trees)
    return rose.shrink_vector(lambda *values: _into(empty, values), trees)


def distinct_collection(
    empty: C,
    key_fn: Callable[[Any], Hashable],
    allow_duplicates_after_shrink: bool,
    ordered: bool,
    gen: Generator[Any],
    *,
    num_elements: int | None = None,
    min_elements: int | None = None,
    max_elements: int | None = None,
    max_tries: int = DEFAULT_MAX_TRIES,
    on_exhausted: ExhaustionHandler | None = None,
) -> Generator[C]:
    """Collections shaped like `empty` whose elements have distinct keys.

    Elements are drawn one at a time; a duplicate key is retried at a larger
    size. Giving up after `max_tries` consecutive duplicates is an error only
    when fewer than the minimum number of elements were collected. Ordered
    collections are shuffled so earlier positions are not biased toward
    simpler elements. Unless `allow_duplicates_after_shrink` is set, every
    shrink candidate is checked again for distinct keys.
    """

    _require_generator(gen, "distinct_collection")
    max_tries = _require_max_tries(max_tries)
    num_elements, min_elements, max_elements = _check_counts(num_elements, min_elements, max_elements)
    make_error = on_exhausted or distinct_exhausted

    def with_distinctness(size_ok: Callable[[C], bool]) -> Callable[[C], bool]:
        if allow_duplicates_after_shrink:
            return size_ok
        return lambda coll: size_ok(coll) and _distinct_by(key_fn, coll)

    def assembling(count: int, minimum: int, keep: Callable[[C], bool]) -> Generator[C]:
        def evaluate(source: RandomSource, size: int) -> RoseTree[C]:
            tree = _assemble_distinct(
                empty, key_fn, ordered, gen, source, size, count, minimum, max_tries, make_error
            )
            return rose.filter_tree(keep, tree)

        return Generator(evaluate)

    if num_elements is not None:
        exact = num_elements
        return assembling(exact, exact, with_distinctness(lambda coll: len(coll) == exact))

    low = min_elements or 0
    high = max_elements
    keep = with_distinctness(lambda coll: low <= len(coll) and (high is None or len(coll) <= high))
    count_gen = choose(low, high) if high is not None else sized(lambda size: choose(low, low + size))
    return gen_bind(count_gen, lambda count_tree: assembling(count_tree.value, low, keep))


def vector_distinct_by(key_fn: Callable[[T], Hashable], gen: Generator[T], **opts: Any) -> Generator[list[T]]:
    return distinct_collection([], key_fn, False, True, gen, **opts)


def vector_distinct(gen: Generator[T], **opts: Any) -> Generator[list[T]]:
    """Lists of values from `gen` with no repeated element."""

    return vector_distinct_by(lambda value: value, gen, **opts)


def tuple_distinct(gen: Generator[T], **opts: Any) -> Generator[tuple[T, ...]]:
    return distinct_collection((), lambda value: value, False, True, gen, **opts)


def set_of(gen: Generator[T], **opts: Any) -> Generator[set[T]]:
    return distinct_collection(set(), lambda value: value, True, False, gen, **opts)


def dict_of(key_gen: Generator[Any], val_gen: Generator[Any], **opts: Any) -> Generator[dict[Any, Any]]:
    """Dicts with keys from `key_gen` and values from `val_gen`."""

    return distinct_collection({}, operator.itemgetter(0), True, False, tuple_of(key_gen, val_gen), **opts)
