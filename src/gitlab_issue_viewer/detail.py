"""Loading the detail and discussion of the selected issue."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from .assets import AssetResolver
from .client import GitLabClient
from .exceptions import GitLabError
from .models.issues import IssueDetail, IssueSummary
from .models.notes import Note

logger = logging.getLogger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class DetailState:
    issue: IssueSummary | None = None
    detail: IssueDetail | None = None
    notes: list[Note] | None = None
    detail_loading: bool = False
    notes_loading: bool = False
    detail_error: str | None = None
    notes_error: str | None = None


def _created_key(note: Note) -> datetime:
    try:
        created = datetime.fromisoformat(note.created_at)
    except ValueError:
        return _EARLIEST
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def sort_notes(notes: list[Note]) -> list[Note]:
    """Oldest first; notes with the same timestamp keep server order."""
    return sorted(notes, key=_created_key)


def visible_notes(notes: list[Note] | None) -> list[Note]:
    """Notes to render: system notes stay in the data but are not shown."""
    return [note for note in notes or [] if not note.system]


class DetailLoader:
    """Fetches detail and notes for one selected issue at a time.

    Each :meth:`select` mints a selection epoch. The two requests land
    independently, and a response is applied only while its epoch is still
    the current one, so a slow answer for a previous selection can never
    overwrite the current one.
    """

    def __init__(self, client: GitLabClient, assets: AssetResolver | None = None) -> None:
        self._client = client
        self._assets = assets
        self._epoch = 0
        self._state = DetailState()
        self._asset_refs: set[str] = set()

    @property
    def state(self) -> DetailState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    def is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def select(self, issue: IssueSummary) -> asyncio.Future:
        """Start loading *issue*; the returned future completes when both requests did."""
        self._epoch += 1
        epoch = self._epoch
        self._release_assets()
        self._state = DetailState(issue=issue, detail_loading=True, notes_loading=True)
        logger.debug("selection %d: %s#%d", epoch, issue.project_id, issue.iid)
        return asyncio.gather(
            self._load_detail(issue, epoch),
            self._load_notes(issue, epoch),
        )

    def close(self) -> None:
        self._epoch += 1
        self._state = DetailState()
        self._release_assets()

    def _release_assets(self) -> None:
        """Drop uploads prefetched for the previous selection."""
        if self._assets is not None:
            for ref in self._asset_refs:
                self._assets.release(ref)
        self._asset_refs = set()

    async def _load_detail(self, issue: IssueSummary, epoch: int) -> None:
        try:
            data = await self._client.get_issue(issue.project_id, issue.iid)
            detail = IssueDetail.from_api(data)
        except GitLabError as e:
            if not self.is_current(epoch):
                return
            logger.warning("failed to load issue %s#%d: %s", issue.project_id, issue.iid, e)
            self._state = replace(
                self._state,
                detail_loading=False,
                detail_error=f"Failed to load issue details: {e}",
            )
            return

        if not self.is_current(epoch):
            logger.debug("dropping stale detail for selection %d", epoch)
            return
        self._state = replace(self._state, detail=detail, detail_loading=False, detail_error=None)
        if self._assets is not None and detail.description:
            self._asset_refs.update(self._assets.prefetch(detail.description, issue.project_id))

    async def _load_notes(self, issue: IssueSummary, epoch: int) -> None:
        try:
            data = await self._client.list_issue_notes(issue.project_id, issue.iid)
            notes = sort_notes(Note.list_from_api(data))
        except GitLabError as e:
            if not self.is_current(epoch):
                return
            logger.warning("failed to load notes of %s#%d: %s", issue.project_id, issue.iid, e)
            self._state = replace(
                self._state,
                notes_loading=False,
                notes_error=f"Failed to load comments: {e}",
            )
            return

        if not self.is_current(epoch):
            logger.debug("dropping stale notes for selection %d", epoch)
            return
        self._state = replace(self._state, notes=notes, notes_loading=False, notes_error=None)
        if self._assets is not None:
            for note in visible_notes(notes):
                self._asset_refs.update(self._assets.prefetch(note.body, issue.project_id))
