"""Shared test fixtures for gitlab-issue-viewer."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest
import respx

from gitlab_issue_viewer.client import GitLabClient
from gitlab_issue_viewer.config import GitLabConfig

TEST_URL = "https://gitlab.example.com"
TEST_TOKEN = "test-token"


class FakeGitLab:
    """In-memory stand-in for GitLabClient with per-call latency and gates.

    Responses are keyed by call, e.g. ``("issue", 7, 12)``; an exception
    value is raised instead of returned. A key listed in ``delays`` sleeps
    first, one listed in ``gates`` waits for its event.
    """

    def __init__(self, config: GitLabConfig) -> None:
        self.config = config
        self.responses: dict[tuple, Any] = {}
        self.delays: dict[tuple, float] = {}
        self.gates: dict[tuple, asyncio.Event] = {}
        self.calls: list[tuple] = []
        self.closed = False

    async def _respond(self, key: tuple) -> Any:
        self.calls.append(key)
        if key in self.delays:
            await asyncio.sleep(self.delays[key])
        if key in self.gates:
            await self.gates[key].wait()
        value = self.responses[key]
        if isinstance(value, Exception):
            raise value
        return value

    async def list_issues(self, project_id, params=None):
        return await self._respond(("issues", project_id, (params or {}).get("page", 1)))

    async def get_issue(self, project_id, issue_iid):
        return await self._respond(("issue", project_id, issue_iid))

    async def list_issue_notes(self, project_id, issue_iid):
        return await self._respond(("notes", project_id, issue_iid))

    async def search_projects(self, search=""):
        return await self._respond(("projects", search))

    async def list_project_users(self, project_id):
        return await self._respond(("users", project_id))

    async def get_bytes(self, url):
        return await self._respond(("bytes", url))

    async def get_current_user(self):
        return await self._respond(("user",))

    async def close(self) -> None:
        self.closed = True


def issue_payload(project_id: int, iid: int, **extra: Any) -> dict[str, Any]:
    return {
        "id": project_id * 1000 + iid,
        "iid": iid,
        "project_id": project_id,
        "title": f"Issue {iid}",
        "state": "opened",
        **extra,
    }


def note_payload(note_id: int, created_at: str, body: str = "", **extra: Any) -> dict[str, Any]:
    return {
        "id": note_id,
        "body": body or f"note {note_id}",
        "created_at": created_at,
        "author": {"id": 1, "username": "alice", "name": "Alice"},
        **extra,
    }


@pytest.fixture
def config() -> GitLabConfig:
    return GitLabConfig(url=TEST_URL, token=TEST_TOKEN, search_debounce_ms=10)


@pytest.fixture
def client(config: GitLabConfig) -> GitLabClient:
    return GitLabClient(config)


@pytest.fixture
def fake_client(config: GitLabConfig) -> FakeGitLab:
    return FakeGitLab(config)


@pytest.fixture
def mock_api() -> respx.MockRouter:
    with respx.mock(base_url=f"{TEST_URL}/api/v4") as router:
        yield router


@pytest.fixture
def mock_web() -> respx.MockRouter:
    with respx.mock(base_url=TEST_URL) as router:
        yield router


def _png_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"\x89PNG\r\n", headers={"content-type": "image/png"})


@pytest.fixture
def png():
    """respx side effect serving a tiny PNG."""
    return _png_response
