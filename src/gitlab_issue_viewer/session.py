"""One browsing session: filters, issue list, selected issue, searches and assets."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .assets import AssetResolver
from .client import GitLabClient
from .config import ConfigProvider, GitLabConfig
from .debounce import SearchDebouncer, match_user
from .detail import DetailLoader, DetailState
from .exceptions import GitLabError
from .filters import FilterCoordinator, FilterState
from .models.common import PaginationInfo, User
from .models.issues import IssueSummary
from .models.projects import Project
from .query import IssueQueryEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueListState:
    items: list[IssueSummary] = field(default_factory=list)
    pagination: PaginationInfo = field(default_factory=PaginationInfo)
    loading: bool = False
    error: str | None = None
    epoch: int = 0


class IssueBrowser:
    """Wires the orchestration components together for one presentation layer.

    The presentation side sends filter changes, selections and search terms
    and reads back :attr:`issues`, :attr:`detail` and resolved assets.
    """

    def __init__(
        self,
        config: GitLabConfig | ConfigProvider | None = None,
        *,
        client: GitLabClient | None = None,
        asset_dir: Path | None = None,
    ) -> None:
        self.client = client or GitLabClient(config)
        self.filters = FilterCoordinator()
        self.engine = IssueQueryEngine(self.client)
        self.assets = AssetResolver(self.client, asset_dir)
        self.loader = DetailLoader(self.client, self.assets)

        delay = self.client.config.search_debounce
        self.project_search: SearchDebouncer[Project] = SearchDebouncer(
            self._lookup_projects, delay=delay
        )
        self.user_search: SearchDebouncer[User] = SearchDebouncer(
            self._lookup_users, delay=delay, predicate=match_user
        )

        self._issues = IssueListState()
        self._tasks: set[asyncio.Task] = set()

    @property
    def issues(self) -> IssueListState:
        return self._issues

    @property
    def detail(self) -> DetailState:
        return self.loader.state

    # ── Issue list ────────────────────────────────────────────────

    def set_filter(self, **changes: Any) -> asyncio.Task:
        """Apply a filter or page change and start loading the matching page."""
        state = self.filters.set_filter(**changes)
        if "project_id" in changes:
            # the user list is scoped to the project
            self.user_search.clear()
        self._issues = replace(self._issues, loading=True, error=None)
        return self._spawn(self.load_issues(state, self.filters.epoch))

    def refresh(self) -> asyncio.Task:
        """Reload the current filter under a fresh epoch."""
        return self.set_filter()

    async def load_issues(self, state: FilterState, epoch: int) -> IssueListState:
        """Query *state* and apply the page if *epoch* is still current."""
        try:
            result = await self.engine.list_issues(state, epoch)
        except GitLabError as e:
            if self.filters.is_current(epoch):
                logger.warning("failed to load issues: %s", e)
                self._issues = replace(
                    self._issues, loading=False, error=f"Failed to load issues: {e}"
                )
            return self._issues

        if not self.filters.is_current(epoch):
            logger.debug("dropping stale issue list %d (current %d)", epoch, self.filters.epoch)
            return self._issues

        self._issues = IssueListState(
            items=result.items, pagination=result.pagination, epoch=epoch
        )
        return self._issues

    # ── Selected issue ────────────────────────────────────────────

    def select_issue(self, project_id: int, iid: int) -> asyncio.Future:
        issue = next(
            (item for item in self._issues.items if item.key == (project_id, iid)),
            None,
        )
        if issue is None:
            issue = IssueSummary(id=0, iid=iid, project_id=project_id)
        return self.loader.select(issue)

    def close_issue(self) -> None:
        self.loader.close()

    # ── Typeahead ─────────────────────────────────────────────────

    async def search_projects(self, term: str) -> list[Project] | None:
        return await self.project_search.search(term)

    async def search_users(self, term: str) -> list[User] | None:
        return await self.user_search.search(term)

    async def _lookup_projects(self, term: str) -> list[Project]:
        return Project.list_from_api(await self.client.search_projects(term))

    async def _lookup_users(self, term: str) -> list[User]:
        project_id = self.filters.state.project_id
        if project_id is None:
            return []
        return User.list_from_api(await self.client.list_project_users(project_id))

    # ── Misc ──────────────────────────────────────────────────────

    async def verify_credentials(self) -> User:
        """Return the user the configured token belongs to."""
        return User.from_api(await self.client.get_current_user())

    async def close(self) -> None:
        self.loader.close()
        self.project_search.clear()
        self.user_search.clear()
        for task in list(self._tasks):
            task.cancel()
        self.assets.close()
        await self.client.close()

    def _spawn(self, coro: Any) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
