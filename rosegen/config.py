"""Defaults and configuration models for sampling and retries."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


DEFAULT_SIZE = 30
DEFAULT_MAX_SIZE = 200
DEFAULT_SAMPLE_COUNT = 10
DEFAULT_MAX_TRIES = 10


@dataclass(frozen=True)
class RetryConfig:
    """Attempt ceilings for retrying generators."""

    max_tries: int = DEFAULT_MAX_TRIES


@dataclass(frozen=True)
class SampleConfig:
    """Controls ad hoc sampling of generators."""

    count: int = DEFAULT_SAMPLE_COUNT
    max_size: int = DEFAULT_MAX_SIZE
    size: int = DEFAULT_SIZE
    seed: int | None = None


@dataclass(frozen=True)
class GeneratorConfig:
    """Primary sampling configuration."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    sample: SampleConfig = field(default_factory=SampleConfig)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
