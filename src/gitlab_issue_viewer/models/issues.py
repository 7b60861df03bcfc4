"""Issue models."""

from __future__ import annotations

from pydantic import Field

from .base import GitLabModel
from .common import Milestone, User


class IssueSummary(GitLabModel):
    """One row of an issue list, identified by ``(project_id, iid)``."""

    id: int
    iid: int
    project_id: int
    title: str = ""
    description: str | None = None
    state: str = ""
    created_at: str = ""
    updated_at: str = ""
    closed_at: str | None = None
    author: User | None = None
    assignee: User | None = None
    assignees: list[User] = []
    labels: list[str] = []
    milestone: Milestone | None = None
    web_url: str = ""

    @property
    def key(self) -> tuple[int, int]:
        return (self.project_id, self.iid)


class TimeStats(GitLabModel):
    time_estimate: int = 0
    total_time_spent: int = 0
    human_time_estimate: str | None = None
    human_total_time_spent: str | None = None


class TaskCompletionStatus(GitLabModel):
    count: int = 0
    completed_count: int = 0


class IssueReferences(GitLabModel):
    short: str = ""
    relative: str = ""
    full: str = ""


class IssueLinks(GitLabModel):
    self_: str = Field(default="", alias="self")
    notes: str = ""
    award_emoji: str = ""
    project: str = ""
    closed_as_duplicate_of: str | None = None


class IssueDetail(IssueSummary):
    """Full issue payload from ``GET /projects/:id/issues/:iid``."""

    closed_by: User | None = None
    user_notes_count: int = 0
    merge_requests_count: int = 0
    upvotes: int = 0
    downvotes: int = 0
    due_date: str | None = None
    confidential: bool = False
    discussion_locked: bool | None = None
    issue_type: str = "issue"
    time_stats: TimeStats = TimeStats()
    task_completion_status: TaskCompletionStatus = TaskCompletionStatus()
    blocking_issues_count: int = 0
    has_tasks: bool = False
    task_status: str = ""
    links: IssueLinks | None = Field(default=None, alias="_links")
    references: IssueReferences = IssueReferences()
    severity: str = ""
    subscribed: bool = False
    moved_to_id: int | None = None
    service_desk_reply_to: str | None = None
    epic_iid: int | None = None
    health_status: str | None = None
