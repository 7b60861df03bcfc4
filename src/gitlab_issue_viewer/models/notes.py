"""Discussion note models."""

from __future__ import annotations

from .base import GitLabModel
from .common import User


class Note(GitLabModel):
    id: int
    type: str | None = None
    body: str = ""
    author: User | None = None
    created_at: str = ""
    updated_at: str = ""
    system: bool = False
    noteable_id: int = 0
    noteable_type: str = ""
    noteable_iid: int | None = None
    project_id: int | None = None
    resolvable: bool = False
    confidential: bool = False
    internal: bool = False
