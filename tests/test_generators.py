from __future__ import annotations

from collections import Counter
from typing import Any, Iterator

import pytest

from rosegen import rose
from rosegen.errors import ExhaustionError
from rosegen.generators import (
    Generator,
    _pick_index,
    bind,
    choose,
    elements,
    fmap,
    frequency,
    generate,
    no_shrink,
    one_of,
    pure,
    resize,
    sample,
    scale,
    shrink_2,
    sized,
    such_that,
    tuple_of,
)
from rosegen.rng import RandomSource, make_random
from rosegen.rose import RoseTree, make_rose


def _walk(tree: RoseTree[Any], depth: int) -> Iterator[Any]:
    yield tree.value
    if depth > 0:
        for child in tree.children:
            yield from _walk(child, depth - 1)


def _child_values(tree: RoseTree[Any]) -> list[Any]:
    return [child.value for child in tree.children]


def _fixed(tree: RoseTree[Any]) -> Generator[Any]:
    return Generator(lambda _source, _size: tree)


def _small_int() -> Generator[int]:
    return sized(lambda size: choose(-size, size))


def test_pure_ignores_source_and_never_shrinks() -> None:
    gen = pure("x")

    for seed in range(5):
        tree = gen.evaluate(make_random(seed), seed * 10)
        assert tree.value == "x"
        assert _child_values(tree) == []


def test_fmap_applies_to_every_node() -> None:
    base = choose(0, 1000)
    source = make_random(8)

    mapped = fmap(str, base).evaluate(source, 10)
    expected = rose.fmap(str, base.evaluate(source, 10))

    assert mapped.materialize(2) == expected.materialize(2)
    assert base.map(str).evaluate(source, 10).materialize(2) == expected.materialize(2)


def test_bind_shrinks_upstream_before_downstream() -> None:
    upstream = _fixed(make_rose(2, [make_rose(1, [make_rose(0, [])])]))

    def downstream(value: int) -> Generator[str]:
        return _fixed(make_rose(f"{value}", [make_rose(f"{value}-s", [])]))

    tree = bind(upstream, downstream).evaluate(make_random(0), 10)

    assert tree.materialize() == (
        "2",
        [
            ("1", [("0", [("0-s", [])]), ("1-s", [])]),
            ("2-s", []),
        ],
    )


def test_bind_evaluates_every_upstream_value_with_one_source() -> None:
    upstream = _fixed(make_rose(2, [make_rose(1, [])]))

    def downstream(value: int) -> Generator[tuple[int, int, int]]:
        return Generator(lambda source, size: make_rose((value, source.rand_long(), size), []))

    tree = upstream.bind(downstream).evaluate(make_random(3), 17)
    root_value, draw, size = tree.value
    (child,) = list(tree.children)

    assert root_value == 2
    assert size == 17
    assert child.value == (1, draw, 17)


def test_bind_rejects_non_generator_results() -> None:
    gen = bind(pure(1), lambda value: value + 1)  # type: ignore[arg-type, return-value]

    with pytest.raises(TypeError):
        gen.evaluate(make_random(0), 5)
    with pytest.raises(TypeError):
        bind(1, lambda value: pure(value))  # type: ignore[arg-type]


def test_sized_resize_and_scale() -> None:
    size_gen = sized(pure)
    source = make_random(1)

    assert size_gen.evaluate(source, 17).value == 17
    assert resize(5, size_gen).evaluate(source, 99).value == 5
    assert scale(lambda size: size * 2, size_gen).evaluate(source, 10).value == 20
    with pytest.raises(ValueError):
        resize(-1, size_gen)


@pytest.mark.parametrize(
    ("lower", "upper"),
    [
        (0, 0),
        (-5, 5),
        (5, 10),
        (-10, -3),
        (0, 2**32),
        (-(2**63), 2**63 - 1),
        (-(2**70), 2**70),
    ],
)
def test_choose_values_and_shrinks_stay_in_bounds(lower: int, upper: int) -> None:
    gen = choose(lower, upper)

    for seed in range(10):
        tree = gen.evaluate(make_random(seed), 30)
        assert lower <= tree.value <= upper
        for value in _walk(tree, 2):
            assert lower <= value <= upper


def test_choose_shrinks_are_simpler() -> None:
    for seed in range(20):
        tree = choose(5, 10).evaluate(make_random(seed), 30)
        assert all(5 <= value < tree.value for value in _child_values(tree))

    single = choose(3, 3).evaluate(make_random(0), 30)
    assert single.value == 3
    assert _child_values(single) == []


def test_choose_rejects_invalid_ranges() -> None:
    with pytest.raises(ValueError):
        choose(3, 2)
    with pytest.raises(TypeError):
        choose(0.5, 2)  # type: ignore[arg-type]


def test_one_of_shrinks_toward_earlier_generators() -> None:
    gen = one_of([pure("a"), pure("b"), pure("c")])
    expected = {"a": [], "b": ["a"], "c": ["a", "b"]}
    seen = set()

    for seed in range(200):
        tree = gen.evaluate(make_random(seed), 10)
        seen.add(tree.value)
        assert _child_values(tree) == expected[tree.value]

    assert seen == {"a", "b", "c"}


def test_one_of_validates_arguments() -> None:
    with pytest.raises(ValueError):
        one_of([])
    with pytest.raises(TypeError):
        one_of([pure(1), 2])  # type: ignore[list-item]


def test_pick_index_uses_running_sums() -> None:
    assert _pick_index([1, 3], 0) == 0
    assert [_pick_index([1, 3], n) for n in (1, 2, 3)] == [1, 1, 1]
    assert _pick_index([2, 2, 2], 5) == 2


def test_frequency_respects_weights_and_drops_zero_weights() -> None:
    gen = frequency([(0, pure("never")), (1, pure("a")), (3, pure("b"))])
    counts: Counter[str] = Counter()

    for seed in range(400):
        tree = gen.evaluate(make_random(seed), 10)
        counts[tree.value] += 1
        assert _child_values(tree) == ({"a": [], "b": ["a"]}[tree.value])

    assert "never" not in counts
    assert 240 <= counts["b"] <= 360


def test_frequency_redraws_earlier_alternatives_with_the_chosen_source() -> None:
    def tagged(tag: str) -> Generator[tuple[str, int, int]]:
        return Generator(lambda source, size: make_rose((tag, source.rand_long(), size), []))

    gen = frequency([(1, tagged("x")), (1, tagged("y"))])
    checked = 0
    for seed in range(50):
        tree = gen.evaluate(make_random(seed), 12)
        tag, draw, size = tree.value
        if tag == "y":
            assert _child_values(tree) == [("x", draw, size)]
            checked += 1

    assert checked > 0


def test_frequency_validates_arguments() -> None:
    with pytest.raises(ValueError):
        frequency([])
    with pytest.raises(ValueError):
        frequency([(0, pure(1)), (-1, pure(2))])
    with pytest.raises(TypeError):
        frequency([(1.5, pure(1))])  # type: ignore[list-item]
    with pytest.raises(TypeError):
        frequency([(1, "x")])  # type: ignore[list-item]


def test_such_that_filters_value_and_shrinks() -> None:
    gen = such_that(lambda n: n % 2 == 0, choose(0, 1000), max_tries=50)

    for seed in range(30):
        tree = gen.evaluate(make_random(seed), 30)
        assert all(value % 2 == 0 for value in _walk(tree, 3))


def test_such_that_gives_up_after_exactly_max_tries() -> None:
    sizes: list[int] = []

    def counting(_source: RandomSource, size: int) -> RoseTree[int]:
        sizes.append(size)
        return make_rose(1, [])

    inner = Generator(counting)

    def never(_value: int) -> bool:
        return False

    gen = such_that(never, inner, max_tries=7)

    with pytest.raises(ExhaustionError) as exc:
        gen.evaluate(make_random(0), 10)

    assert sizes == list(range(10, 17))
    assert exc.value.context.max_tries == 7
    assert exc.value.context.pred is never
    assert exc.value.context.gen is inner
    assert "7 tries" in str(exc.value)


def test_such_that_custom_exhaustion_handler() -> None:
    gen = such_that(lambda _: False, pure(1), max_tries=2, on_exhausted=lambda ctx: KeyError(ctx.max_tries))

    with pytest.raises(KeyError):
        gen.evaluate(make_random(0), 10)


def test_such_that_validates_arguments() -> None:
    with pytest.raises(ValueError):
        such_that(bool, pure(1), max_tries=0)
    with pytest.raises(TypeError):
        such_that(bool, [1])  # type: ignore[arg-type]


def test_elements_shrinks_toward_first_element() -> None:
    gen = elements(["a", "b", "c"])
    expected = {"a": [], "b": ["a"], "c": ["a", "b"]}

    for seed in range(30):
        tree = gen.evaluate(make_random(seed), 10)
        assert _child_values(tree) == expected[tree.value]

    with pytest.raises(ValueError):
        elements([])


def test_tuple_of_shrinks_one_position_at_a_time() -> None:
    gen = tuple_of(pure("k"), choose(0, 100))

    for seed in range(10):
        tree = gen.evaluate(make_random(seed), 10)
        assert tree.value[0] == "k"
        assert len(tree.value) == 2
        assert all(value[0] == "k" for value in _walk(tree, 2))

    assert tuple_of().evaluate(make_random(0), 10).value == ()


def test_no_shrink_and_shrink_2() -> None:
    base = choose(0, 1000)
    source = make_random(21)
    tree = base.evaluate(source, 10)

    flat = no_shrink(base).evaluate(source, 10)
    assert flat.value == tree.value
    assert _child_values(flat) == []

    deeper = shrink_2(base).evaluate(source, 10)
    children = _child_values(tree)
    grandchildren = [grandchild.value for child in tree.children for grandchild in child.children]
    assert _child_values(deeper) == children + grandchildren


def test_generate_and_sample_are_reproducible() -> None:
    gen = tuple_of(_small_int(), elements("xyz"))

    assert generate(gen, 30, seed=5) == generate(gen, 30, seed=5)
    assert generate(sized(pure), size=12, seed=1) == 12
    assert sample(gen, 20, source=make_random(9)) == sample(gen, 20, source=make_random(9))
    assert len(sample(gen)) == 10


def test_sample_cycles_sizes() -> None:
    assert sample(sized(pure), 7, max_size=3, source=make_random(0)) == [0, 1, 2, 0, 1, 2, 0]

    with pytest.raises(ValueError):
        sample(sized(pure), 3, max_size=0)


def test_evaluation_is_referentially_transparent() -> None:
    gen = bind(choose(0, 5), lambda n: tuple_of(*([_small_int()] * n)))
    source = make_random(77)

    assert gen.evaluate(source, 20).materialize(2) == gen.evaluate(source, 20).materialize(2)
