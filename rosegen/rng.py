"""Deterministic splittable random sources."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
import time
from typing import Iterator

import numpy as np

LOGGER = logging.getLogger(__name__)

MASK64 = (1 << 64) - 1
GOLDEN_GAMMA = 0x9E3779B97F4A7C15
DOUBLE_UNIT = 1.0 / (1 << 53)

_MIX64_C1 = 0xBF58476D1CE4E5B9
_MIX64_C2 = 0x94D049BB133111EB
_GAMMA_C1 = 0xFF51AFD7ED558CCD
_GAMMA_C2 = 0xC4CEB9FE1A85EC53
_GAMMA_SPREAD = 0xAAAAAAAAAAAAAAAA
_MIN_GAMMA_BITS = 24


def _normalize_seed(seed: int) -> int:
    return int(seed) & MASK64


def _to_signed(value: int) -> int:
    return value - (1 << 64) if value & (1 << 63) else value


def _xor_shift(z: int, n: int) -> int:
    return z ^ (z >> n)


def mix64(z: int) -> int:
    """Avalanche `z` into an unsigned 64-bit value."""

    z = (_xor_shift(z & MASK64, 30) * _MIX64_C1) & MASK64
    z = (_xor_shift(z, 27) * _MIX64_C2) & MASK64
    return _xor_shift(z, 31)


def mix_gamma(z: int) -> int:
    """Derive an odd, well-spread gamma from `z`."""

    z = (_xor_shift(z & MASK64, 33) * _GAMMA_C1) & MASK64
    z = (_xor_shift(z, 33) * _GAMMA_C2) & MASK64
    z = _xor_shift(z, 33) | 1
    if bin(_xor_shift(z, 1)).count("1") < _MIN_GAMMA_BITS:
        z ^= _GAMMA_SPREAD
    return z


@dataclass(frozen=True)
class RandomSource:
    """Immutable splittable random value.

    Every method is a pure function of ``(gamma, state)``. Two different
    methods called on the same source are correlated; split first when
    independent draws are needed.
    """

    gamma: int
    state: int

    def rand_long(self) -> int:
        return _to_signed(mix64(self.state + self.gamma))

    def rand_double(self) -> float:
        return (mix64(self.state + self.gamma) >> 11) * DOUBLE_UNIT

    def split(self) -> tuple["RandomSource", "RandomSource"]:
        state1 = (self.state + self.gamma) & MASK64
        state2 = (state1 + self.gamma) & MASK64
        return (
            RandomSource(self.gamma, state2),
            RandomSource(mix_gamma(state2), mix64(state1)),
        )

    def split_n(self, n: int) -> list["RandomSource"]:
        """Split into `n` sources in one pass.

        Equivalent to `n - 1` successive calls to :meth:`split`, keeping the
        second half of each and continuing with the first, followed by the
        last first half.
        """

        if n < 0:
            raise ValueError("n must be >= 0")
        if n == 0:
            return []
        if n == 1:
            return [self]

        sources: list[RandomSource] = []
        state = self.state
        for _ in range(n - 1):
            state1 = (state + self.gamma) & MASK64
            state = (state1 + self.gamma) & MASK64
            sources.append(RandomSource(mix_gamma(state), mix64(state1)))
        sources.append(RandomSource(self.gamma, state))
        return sources

    def generator(self) -> np.random.Generator:
        """Return a numpy generator seeded from this source."""

        return np.random.Generator(np.random.PCG64(mix64(self.state + self.gamma)))


def make_java_splittable(seed: int) -> RandomSource:
    return RandomSource(GOLDEN_GAMMA, _normalize_seed(seed))


_AUTO_LOCK = threading.Lock()
_auto_source: RandomSource | None = None


def _next_auto_source() -> RandomSource:
    global _auto_source

    with _AUTO_LOCK:
        if _auto_source is None:
            seed = time.time_ns()
            LOGGER.debug("Initializing auto-seed source from clock value %d", seed)
            _auto_source = make_java_splittable(seed)
        result, _auto_source = _auto_source.split()
    return result


def make_random(seed: int | None = None) -> RandomSource:
    """Create a source from `seed`, or from the process-wide auto-seed source."""

    if seed is None:
        return _next_auto_source()
    return make_java_splittable(seed)


def lazy_random_states(source: RandomSource) -> Iterator[RandomSource]:
    """Yield an endless stream of independent sources split from `source`."""

    while True:
        first, source = source.split()
        yield first
