"""Generators and the combinators that compose them."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import chain, cycle, islice
import logging
import math
import operator
from typing import Any, Callable, Generic, Iterable, Iterator, Sequence, TypeVar

from rosegen import rose
from rosegen.config import DEFAULT_MAX_SIZE, DEFAULT_MAX_TRIES, DEFAULT_SAMPLE_COUNT, DEFAULT_SIZE
from rosegen.errors import ExhaustionContext, ExhaustionHandler, such_that_exhausted
from rosegen.rng import RandomSource, lazy_random_states, make_random
from rosegen.rose import RoseTree

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")

_LONG_MAX = (1 << 63) - 1


@dataclass(frozen=True)
class Generator(Generic[T]):
    """Immutable description of how to draw a shrinkable value.

    `fn` maps ``(source, size)`` to a :class:`~rosegen.rose.RoseTree` and must
    be a pure function of its arguments.
    """

    fn: Callable[[RandomSource, int], RoseTree[T]]

    def evaluate(self, source: RandomSource, size: int) -> RoseTree[T]:
        return self.fn(source, size)

    def map(self, f: Callable[[T], U]) -> "Generator[U]":
        return fmap(f, self)

    def bind(self, f: Callable[[T], "Generator[U]"]) -> "Generator[U]":
        return bind(self, f)


def _require_generator(value: Any, caller: str) -> Generator[Any]:
    if not isinstance(value, Generator):
        raise TypeError(f"{caller} expects a Generator, got {type(value).__name__}")
    return value


def _require_max_tries(max_tries: int) -> int:
    max_tries = operator.index(max_tries)
    if max_tries < 1:
        raise ValueError("max_tries must be >= 1")
    return max_tries


# Internal combinators that operate on whole trees rather than values.


def gen_pure(tree: RoseTree[T]) -> Generator[T]:
    return Generator(lambda _source, _size: tree)


def gen_fmap(k: Callable[[Any], Any], gen: Generator[Any]) -> Generator[Any]:
    return Generator(lambda source, size: k(gen.evaluate(source, size)))


def gen_bind(gen: Generator[Any], k: Callable[[Any], Generator[Any]]) -> Generator[Any]:
    def evaluate(source: RandomSource, size: int) -> Any:
        first, second = source.split()
        inner = gen.evaluate(first, size)
        return k(inner).evaluate(second, size)

    return Generator(evaluate)


def gen_tuple(gens: Sequence[Generator[Any]]) -> Generator[Any]:
    """Evaluate each generator on its own split, returning the list of trees."""

    gens = list(gens)

    def evaluate(source: RandomSource, size: int) -> list[RoseTree[Any]]:
        return [gen.evaluate(branch, size) for gen, branch in zip(gens, source.split_n(len(gens)))]

    return Generator(evaluate)


# Core combinators.


def pure(value: T) -> Generator[T]:
    """A generator that always returns `value` and never shrinks."""

    return gen_pure(rose.pure(value))


def fmap(f: Callable[[T], U], gen: Generator[T]) -> Generator[U]:
    _require_generator(gen, "fmap")
    return gen_fmap(lambda tree: rose.fmap(f, tree), gen)


def bind(gen: Generator[T], f: Callable[[T], Generator[U]]) -> Generator[U]:
    """Feed each value of `gen` into `f` and draw from the generator it returns.

    Shrinking tries the upstream value's shrinks first (each re-evaluated
    through `f`), then the shrinks of the downstream value.
    """

    _require_generator(gen, "bind")

    def downstream(tree: RoseTree[T]) -> Generator[U]:
        def evaluate(source: RandomSource, size: int) -> RoseTree[U]:
            return rose.join(
                rose.fmap(lambda value: _require_generator(f(value), "bind").evaluate(source, size), tree)
            )

        return Generator(evaluate)

    return gen_bind(gen, downstream)


def sized(builder: Callable[[int], Generator[T]]) -> Generator[T]:
    """Build a generator from the size parameter, then evaluate it at that size."""

    def evaluate(source: RandomSource, size: int) -> RoseTree[T]:
        return _require_generator(builder(size), "sized").evaluate(source, size)

    return Generator(evaluate)


def resize(n: int, gen: Generator[T]) -> Generator[T]:
    n = operator.index(n)
    if n < 0:
        raise ValueError("size must be >= 0")
    _require_generator(gen, "resize")
    return Generator(lambda source, _size: gen.evaluate(source, n))


def scale(f: Callable[[int], int], gen: Generator[T]) -> Generator[T]:
    _require_generator(gen, "scale")
    return sized(lambda size: resize(f(size), gen))


# Choice.


def rand_range(source: RandomSource, lower: int, upper: int) -> int:
    """Map one double drawn from `source` linearly onto ``[lower, upper]``."""

    if lower > upper:
        raise ValueError(f"lower bound {lower} exceeds upper bound {upper}")
    factor = source.rand_double()
    width = upper - lower + 1
    if width < _LONG_MAX:
        value = lower + math.floor(factor * width)
    else:
        # Float precision is lost on very wide ranges.
        value = math.floor(lower + factor * width)
    return max(lower, min(upper, value))


def _quot2(n: int) -> int:
    return n // 2 if n >= 0 else -((-n) // 2)


def _halvings(n: int) -> Iterator[int]:
    while n != 0:
        yield n
        n = _quot2(n)


def int_rose_tree(value: int) -> RoseTree[int]:
    """Shrink an integer toward zero by successively smaller halving steps."""

    return RoseTree(value, (int_rose_tree(value - step) for step in _halvings(value)))


def choose(lower: int, upper: int) -> Generator[int]:
    """Uniform integers in ``[lower, upper]``, shrinking toward zero within bounds."""

    lower = operator.index(lower)
    upper = operator.index(upper)
    if lower > upper:
        raise ValueError(f"choose requires lower <= upper, got {lower} > {upper}")

    def in_range(value: int) -> bool:
        return lower <= value <= upper

    def evaluate(source: RandomSource, _size: int) -> RoseTree[int]:
        return rose.filter_tree(in_range, int_rose_tree(rand_range(source, lower, upper)))

    return Generator(evaluate)


def one_of(gens: Iterable[Generator[T]]) -> Generator[T]:
    """Pick one of `gens` uniformly; shrinks toward earlier generators."""

    gens = list(gens)
    if not gens:
        raise ValueError("one_of requires at least one generator")
    for gen in gens:
        _require_generator(gen, "one_of")
    return bind(choose(0, len(gens) - 1), gens.__getitem__)


def _pick_index(weights: Sequence[int], n: int) -> int:
    running = 0
    for index, weight in enumerate(weights):
        running += weight
        if running > n:
            return index
    raise IndexError(f"draw {n} exceeds total weight {running}")


def frequency(pairs: Iterable[tuple[int, Generator[T]]]) -> Generator[T]:
    """Pick a generator with probability proportional to its weight.

    Shrinking first offers a draw from every generator listed before the
    chosen one, using the chosen draw's source and size, then the chosen
    value's own shrinks.
    """

    checked: list[tuple[int, Generator[T]]] = []
    for weight, gen in pairs:
        checked.append((operator.index(weight), _require_generator(gen, "frequency")))
    positive = [(weight, gen) for weight, gen in checked if weight > 0]
    if not positive:
        raise ValueError("frequency requires at least one positive weight")

    weights = [weight for weight, _ in positive]
    gens = [gen for _, gen in positive]
    index_gen = choose(0, sum(weights) - 1)

    def evaluate(source: RandomSource, size: int) -> RoseTree[T]:
        index_source, value_source = source.split()
        index = _pick_index(weights, index_gen.evaluate(index_source, size).value)
        tree = gens[index].evaluate(value_source, size)
        earlier = (gens[i].evaluate(value_source, size) for i in range(index))
        return RoseTree(tree.value, chain(earlier, tree.children))

    return Generator(evaluate)


def elements(coll: Iterable[T]) -> Generator[T]:
    """Pick an element of `coll`; shrinks toward the first element."""

    values = list(coll)
    if not values:
        raise ValueError("elements requires a non-empty collection")
    return gen_fmap(lambda tree: rose.fmap(values.__getitem__, tree), choose(0, len(values) - 1))


def _pack(*values: Any) -> tuple[Any, ...]:
    return values


def tuple_of(*gens: Generator[Any]) -> Generator[tuple[Any, ...]]:
    """Draw one value from each generator into a fixed-length tuple."""

    for gen in gens:
        _require_generator(gen, "tuple_of")
    return gen_fmap(lambda trees: rose.zip_trees(_pack, trees), gen_tuple(gens))


def no_shrink(gen: Generator[T]) -> Generator[T]:
    _require_generator(gen, "no_shrink")
    return gen_fmap(lambda tree: RoseTree(tree.value), gen)


def shrink_2(gen: Generator[T]) -> Generator[T]:
    """Also offer grandchildren as shrinks, so shrinking can skip a level."""

    _require_generator(gen, "shrink_2")
    return gen_fmap(rose.collapse, gen)


# Retry.


def such_that(
    pred: Callable[[T], bool],
    gen: Generator[T],
    max_tries: int = DEFAULT_MAX_TRIES,
    on_exhausted: ExhaustionHandler | None = None,
) -> Generator[T]:
    """Draw from `gen` until `pred` holds, growing the size after each miss.

    Shrinks are filtered by `pred`. After `max_tries` misses the exception
    built by `on_exhausted` (an :class:`~rosegen.errors.ExhaustionError` by
    default) is raised.
    """

    _require_generator(gen, "such_that")
    max_tries = _require_max_tries(max_tries)
    make_error = on_exhausted or such_that_exhausted

    def evaluate(source: RandomSource, size: int) -> RoseTree[T]:
        for attempt in range(max_tries):
            draw_source, source = source.split()
            tree = gen.evaluate(draw_source, size)
            if pred(tree.value):
                return rose.filter_tree(pred, tree)
            LOGGER.debug("such_that rejected draw %d/%d at size %d", attempt + 1, max_tries, size)
            size += 1
        raise make_error(ExhaustionContext(gen=gen, max_tries=max_tries, pred=pred))

    return Generator(evaluate)


# Sampling helpers.


def generate(gen: Generator[T], size: int = DEFAULT_SIZE, seed: int | None = None) -> T:
    """Draw a single value from `gen`."""

    _require_generator(gen, "generate")
    return gen.evaluate(make_random(seed), size).value


def sample_seq(
    gen: Generator[T],
    max_size: int = DEFAULT_MAX_SIZE,
    *,
    source: RandomSource | None = None,
) -> Iterator[T]:
    """Yield values from `gen` forever, cycling sizes through ``0 .. max_size - 1``."""

    _require_generator(gen, "sample_seq")
    if max_size < 1:
        raise ValueError("max_size must be >= 1")
    sources = lazy_random_states(source or make_random())
    for branch, size in zip(sources, cycle(range(max_size))):
        yield gen.evaluate(branch, size).value


def sample(
    gen: Generator[T],
    count: int = DEFAULT_SAMPLE_COUNT,
    *,
    max_size: int = DEFAULT_MAX_SIZE,
    source: RandomSource | None = None,
) -> list[T]:
    """Return `count` values from `gen` for inspection."""

    return list(islice(sample_seq(gen, max_size, source=source), count))
