"""Splittable random sources and shrinkable generator combinators."""

from .config import DEFAULT_MAX_SIZE, DEFAULT_MAX_TRIES, DEFAULT_SIZE, GeneratorConfig
from .errors import ExhaustionError
from .generators import Generator, generate, sample
from .rng import RandomSource, make_random

__all__ = [
    "DEFAULT_SIZE",
    "DEFAULT_MAX_SIZE",
    "DEFAULT_MAX_TRIES",
    "GeneratorConfig",
    "ExhaustionError",
    "Generator",
    "RandomSource",
    "generate",
    "make_random",
    "sample",
]
