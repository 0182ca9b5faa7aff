"""CLI entry point for sampling demonstration generators."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Callable

from rosegen.config import (
    DEFAULT_MAX_SIZE,
    DEFAULT_MAX_TRIES,
    DEFAULT_SAMPLE_COUNT,
    GeneratorConfig,
    RetryConfig,
    SampleConfig,
)
from rosegen.containers import dict_of, set_of, shuffle, vector, vector_distinct
from rosegen.errors import ExhaustionError
from rosegen.generators import (
    Generator,
    choose,
    elements,
    frequency,
    one_of,
    pure,
    sample,
    sized,
    such_that,
    tuple_of,
)
from rosegen.rng import make_random


def _small_int() -> Generator[int]:
    return sized(lambda size: choose(-size, size))


DEMO_GENERATORS: dict[str, Callable[[RetryConfig], Generator[Any]]] = {
    "int": lambda retry: _small_int(),
    "even": lambda retry: such_that(lambda n: n % 2 == 0, _small_int(), max_tries=retry.max_tries),
    "pair": lambda retry: tuple_of(_small_int(), elements("abc")),
    "choice": lambda retry: one_of([pure(None), _small_int(), elements([True, False])]),
    "weighted": lambda retry: frequency([(1, pure("rare")), (9, _small_int())]),
    "vector": lambda retry: vector(_small_int()),
    "distinct-vector": lambda retry: vector_distinct(_small_int(), max_tries=retry.max_tries),
    "set": lambda retry: set_of(choose(0, 99), max_elements=8, max_tries=retry.max_tries),
    "dict": lambda retry: dict_of(elements("abcdef"), _small_int(), max_tries=retry.max_tries),
    "shuffle": lambda retry: shuffle(range(8)),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sample values from demonstration generators")
    parser.add_argument("--generator", choices=sorted(DEMO_GENERATORS), default="int", help="Generator to sample")
    parser.add_argument("--seed", type=int, default=None, help="Integer seed (random when omitted)")
    parser.add_argument("--count", type=int, default=DEFAULT_SAMPLE_COUNT, help="Number of samples")
    parser.add_argument("--max-size", type=int, default=DEFAULT_MAX_SIZE, help="Sizes cycle below this bound")
    parser.add_argument("--max-tries", type=int, default=DEFAULT_MAX_TRIES, help="Retry ceiling for filtering generators")
    parser.add_argument(
        "--json",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Print samples and configuration as JSON",
    )
    return parser


def _jsonable(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted((_jsonable(item) for item in value), key=repr)
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.count < 0:
        parser.error("--count must be >= 0")
    if args.max_size < 1:
        parser.error("--max-size must be >= 1")
    if args.max_tries < 1:
        parser.error("--max-tries must be >= 1")

    config = GeneratorConfig(
        retry=RetryConfig(max_tries=args.max_tries),
        sample=SampleConfig(count=args.count, max_size=args.max_size, seed=args.seed),
    )
    gen = DEMO_GENERATORS[args.generator](config.retry)

    try:
        values = sample(gen, config.sample.count, max_size=config.sample.max_size, source=make_random(args.seed))
    except ExhaustionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.json:
        payload = {
            "generator": args.generator,
            "config": config.to_dict(),
            "samples": [_jsonable(value) for value in values],
        }
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0

    for value in values:
        print(repr(value))
    print(f"Sampled {len(values)} values from {args.generator}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
