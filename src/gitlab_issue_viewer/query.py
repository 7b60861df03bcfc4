"""Paginated issue list queries."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass

from .client import GitLabClient
from .filters import FilterState
from .models.common import PaginationInfo
from .models.issues import IssueSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueListResult:
    items: list[IssueSummary]
    pagination: PaginationInfo
    epoch: int


def _header_int(headers: Mapping[str, str], name: str) -> int | None:
    value = headers.get(name, "").strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_pagination(
    headers: Mapping[str, str], item_count: int, page: int, per_page: int
) -> PaginationInfo:
    """Read ``X-Total``/``X-Total-Pages``/``X-Page``/``X-Per-Page``.

    GitLab drops ``X-Total`` and ``X-Total-Pages`` for very large result
    sets, so each header falls back on its own.
    """
    per_page = _header_int(headers, "x-per-page") or per_page
    current_page = _header_int(headers, "x-page") or page
    total_items = _header_int(headers, "x-total")
    total_pages = _header_int(headers, "x-total-pages")

    if total_pages is None:
        if total_items is not None and per_page > 0:
            total_pages = max(1, math.ceil(total_items / per_page))
        else:
            total_pages = 1
    if total_items is None:
        total_items = item_count

    return PaginationInfo(
        current_page=current_page,
        total_pages=max(total_pages, 1),
        total_items=total_items,
        per_page=per_page,
    )


class IssueQueryEngine:
    """Runs issue list queries for a :class:`FilterState`.

    The engine reports exactly what the server returns; discarding results
    whose epoch has gone stale is up to the caller.
    """

    def __init__(self, client: GitLabClient) -> None:
        self._client = client

    async def list_issues(self, state: FilterState, epoch: int) -> IssueListResult:
        per_page = self._client.config.per_page
        params = {**state.query_params(), "per_page": per_page}
        data, headers = await self._client.list_issues(state.project_id, params)

        items = IssueSummary.list_from_api(data)
        pagination = parse_pagination(headers, len(items), state.page, per_page)
        logger.debug(
            "epoch %d: %d issues, page %d/%d",
            epoch,
            len(items),
            pagination.current_page,
            pagination.total_pages,
        )
        return IssueListResult(items=items, pagination=pagination, epoch=epoch)
