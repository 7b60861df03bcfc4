"""Common GitLab models shared across domains."""

from __future__ import annotations

from .base import GitLabModel


class User(GitLabModel):
    id: int
    username: str = ""
    name: str = ""
    state: str = ""
    avatar_url: str | None = None
    web_url: str = ""


class Milestone(GitLabModel):
    id: int
    iid: int = 0
    title: str = ""
    state: str = ""
    due_date: str | None = None
    start_date: str | None = None
    web_url: str = ""


class PaginationInfo(GitLabModel):
    """Paging position reported by the server for one list response."""

    current_page: int = 1
    total_pages: int = 1
    total_items: int = 0
    per_page: int = 20
