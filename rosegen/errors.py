"""Failures raised by retrying generators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class ExhaustionContext:
    """What a retrying generator was attempting when it gave up."""

    gen: Any
    max_tries: int
    pred: Callable[[Any], bool] | None = None
    num_elements: int | None = None


class ExhaustionError(RuntimeError):
    """Raised when `such_that` or a distinct collection runs out of tries."""

    def __init__(self, message: str, context: ExhaustionContext) -> None:
        super().__init__(message)
        self.context = context


ExhaustionHandler = Callable[[ExhaustionContext], BaseException]


def such_that_exhausted(context: ExhaustionContext) -> ExhaustionError:
    return ExhaustionError(
        f"Couldn't satisfy such_that predicate after {context.max_tries} tries.",
        context,
    )


def distinct_exhausted(context: ExhaustionContext) -> ExhaustionError:
    return ExhaustionError(
        f"Couldn't generate enough distinct elements after {context.max_tries} tries "
        f"(wanted {context.num_elements}).",
        context,
    )
