"""Issue list filter state and query epochs."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

# Distinguishes "argument omitted" from "clear this filter" (None).
UNSET: Any = object()


@dataclass(frozen=True)
class FilterState:
    project_id: int | None = None
    assignee_id: int | None = None
    author_id: int | None = None
    page: int = 1

    def query_params(self) -> dict[str, Any]:
        """Request parameters for the non-empty filter fields."""
        params: dict[str, Any] = {"page": self.page}
        if self.assignee_id is not None:
            params["assignee_id"] = self.assignee_id
        if self.author_id is not None:
            params["author_id"] = self.author_id
        return params


class FilterCoordinator:
    """Owns the active :class:`FilterState` and the query epoch.

    Every call to :meth:`set_filter` mints a new epoch. A list response is
    only worth applying while the epoch it was requested under is current.
    """

    def __init__(self, initial: FilterState | None = None) -> None:
        self._state = initial or FilterState()
        self._epoch = 0

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    def is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def set_filter(
        self,
        *,
        project_id: int | None = UNSET,
        assignee_id: int | None = UNSET,
        author_id: int | None = UNSET,
        page: int = UNSET,
    ) -> FilterState:
        """Apply a partial change and return the new state.

        Touching project, assignee or author puts the list back on page 1,
        even when a page is passed in the same call.
        """
        changes: dict[str, Any] = {}
        if project_id is not UNSET:
            changes["project_id"] = project_id
        if assignee_id is not UNSET:
            changes["assignee_id"] = assignee_id
        if author_id is not UNSET:
            changes["author_id"] = author_id

        if changes:
            changes["page"] = 1
        elif page is not UNSET:
            if page < 1:
                msg = f"page must be >= 1, got {page}"
                raise ValueError(msg)
            changes["page"] = page

        self._state = replace(self._state, **changes)
        self._epoch += 1
        return self._state
