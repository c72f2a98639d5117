"""Latest-wins reconciliation for asynchronous streams.

Every logical stream of requests (children of one node, the roots page,
a search box, a role lookup) gets a monotonically increasing sequence.
A call only reports its outcome if no newer call was started on the same
stream in the meantime; older calls still running are cancelled.

Example usage:
    >>> guard = LatestWins()
    >>> outcome = await guard.run("children:abc", lambda: gateway.fetch_children("abc"))
    >>> if outcome is STALE:
    ...     return  # a newer request owns the stream
    >>> if isinstance(outcome, Ok):
    ...     state.ingest(outcome.value)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from canopy.domain.shared import Err, Ok

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Stale(Enum):
    """Outcome of a call that was superseded on its stream."""

    STALE = "stale"

    def __repr__(self) -> str:
        return "STALE"


STALE = Stale.STALE


class LatestWins:
    """Cancellable latest-wins async cell, keyed by stream.

    Streams are independent: starting a call on one key never affects
    another key.
    """

    def __init__(self) -> None:
        self._sequences: dict[str, int] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    def sequence(self, key: str) -> int:
        """Current sequence number of a stream (0 if never used)."""
        return self._sequences.get(key, 0)

    def is_current(self, key: str, seq: int) -> bool:
        return self._sequences.get(key, 0) == seq

    def _advance(self, key: str) -> int:
        seq = self._sequences.get(key, 0) + 1
        self._sequences[key] = seq
        previous = self._in_flight.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()
        return seq

    def invalidate(self, key: str) -> None:
        """Supersede whatever is in flight on ``key`` without a new call."""
        self._advance(key)

    async def run(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
    ) -> Ok[T] | Err[Exception] | Stale:
        """Run ``factory()`` as the newest call on stream ``key``.

        Args:
            key: Stream identifier, e.g. ``"children:<task id>"``
            factory: Zero-argument callable returning the awaitable to run

        Returns:
            Ok(value) or Err(exception) when this call is still the newest
            on its stream, otherwise STALE
        """
        seq = self._advance(key)
        task = asyncio.ensure_future(factory())
        self._in_flight[key] = task

        outcome: Ok[T] | Err[Exception] | Stale
        try:
            outcome = Ok(await task)
        except asyncio.CancelledError:
            if self.is_current(key, seq):
                # Cancelled from outside, not superseded
                raise
            outcome = STALE
        except Exception as exc:
            outcome = Err(exc)
        finally:
            if self._in_flight.get(key) is task:
                del self._in_flight[key]

        if not self.is_current(key, seq):
            logger.debug(f"Discarded stale response on {key} (seq {seq})")
            return STALE
        return outcome
