"""Ok/Err values for expected failures.

Planning a move, preparing a clone or committing a status change can each
fail for a known reason (a locked ancestor, a too-deep destination, a
rejected network call). Those outcomes travel as ``Err`` values instead
of exceptions, and callers branch with ``isinstance``.

Example usage:
    >>> def check_depth(level: int) -> Result[int, str]:
    ...     if level > 4:
    ...         return Err("Too deep")
    ...     return Ok(level)
    ...
    >>> flat_map(check_depth(3), lambda level: check_depth(level + 2))
    Err(error='Too deep')
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful outcome carrying ``value``."""

    value: T


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed outcome carrying ``error``."""

    error: E


# TypeVar aliases cannot use | at runtime
Result = Union[Ok[T], Err[E]]  # noqa: UP007


def flat_map(result: Ok[T] | Err[E], fn: Callable[[T], Ok[U] | Err[E]]) -> Ok[U] | Err[E]:
    """Feed an Ok value into the next check; an Err short-circuits.

    ``plan_move`` chains its source check, destination check and
    position planning this way, stopping at the first rejection.
    """
    if isinstance(result, Ok):
        return fn(result.value)
    return result
