"""Debounced typeahead search."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from .exceptions import GitLabError
from .models.common import User

logger = logging.getLogger(__name__)

T = TypeVar("T")

Lookup = Callable[[str], Awaitable[list[T]]]
Predicate = Callable[[T, str], bool]


def match_user(user: User, term: str) -> bool:
    """Case-insensitive substring match on name or username."""
    needle = term.lower()
    return needle in user.name.lower() or needle in user.username.lower()


async def _wait(task: asyncio.Future) -> bool:
    """Wait for *task* without raising if it was cancelled; True if it ran to the end."""
    try:
        await asyncio.wait({task})
    except asyncio.CancelledError:
        task.cancel()
        raise
    return not task.cancelled()


class SearchDebouncer(Generic[T]):
    """Wraps an async lookup so that a burst of keystrokes costs one request.

    A lookup is dispatched only after ``delay`` seconds without a newer
    :meth:`search` call, and at most one lookup is in flight at a time.
    Superseded calls return ``None``; the latest applied result list is kept
    in :attr:`results`.
    """

    def __init__(
        self,
        lookup: Lookup[T],
        *,
        delay: float = 0.3,
        predicate: Predicate[T] | None = None,
    ) -> None:
        self._lookup = lookup
        self._predicate = predicate
        self.delay = delay
        self.results: list[T] = []
        self.term = ""
        self.loading = False
        self._generation = 0
        self._timer: asyncio.Future | None = None
        self._inflight: asyncio.Future | None = None

    async def search(self, term: str) -> list[T] | None:
        self._cancel_timer()
        self._generation += 1
        generation = self._generation

        timer = asyncio.ensure_future(asyncio.sleep(self.delay))
        self._timer = timer
        if not await _wait(timer) or generation != self._generation:
            logger.debug("search %r superseded before dispatch", term)
            return None
        self._timer = None

        self._cancel_inflight()
        task = asyncio.ensure_future(self._lookup(term))
        self._inflight = task
        self.loading = True
        completed = await _wait(task)
        if self._inflight is task:
            self._inflight = None
        if not completed:
            logger.debug("search %r cancelled in flight", term)
            return None
        error = task.exception()
        if generation != self._generation:
            logger.debug("search %r superseded in flight", term)
            return None

        if error is not None:
            if not isinstance(error, GitLabError):
                self.loading = False
                raise error
            logger.info("search %r failed, showing no results: %s", term, error)
            items: list[T] = []
        else:
            items = task.result()
            if self._predicate is not None:
                items = [item for item in items if self._predicate(item, term)]

        self.term = term
        self.results = items
        self.loading = False
        return items

    def clear(self) -> None:
        """Drop pending and in-flight work and empty the results."""
        self._generation += 1
        self._cancel_timer()
        self._cancel_inflight()
        self.results = []
        self.term = ""
        self.loading = False

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_inflight(self) -> None:
        if self._inflight is not None:
            self._inflight.cancel()
            self._inflight = None
