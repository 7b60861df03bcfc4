"""Tests for GitLab API client."""

from __future__ import annotations

import httpx
import pytest
import respx

from gitlab_issue_viewer.client import GitLabClient
from gitlab_issue_viewer.config import GitLabConfig
from gitlab_issue_viewer.exceptions import (
    ConfigurationError,
    DecodeError,
    GitLabAuthError,
    GitLabNotFoundError,
    NetworkError,
    RemoteError,
)

BASE = "https://gitlab.example.com/api/v4"


def _make_client() -> GitLabClient:
    return GitLabClient(GitLabConfig(url="https://gitlab.example.com", token="test-token"))


class TestEncodeId:
    def test_numeric_string(self):
        assert GitLabClient._encode_id("123") == "123"

    def test_integer(self):
        assert GitLabClient._encode_id(123) == "123"

    def test_path(self):
        assert GitLabClient._encode_id("my-group/my-project") == "my-group%2Fmy-project"


class TestConfig:
    def test_invalid_config_rejected(self):
        with pytest.raises(ValueError, match="GITLAB_URL"):
            GitLabClient(GitLabConfig(url="", token="x"))

    @pytest.mark.asyncio
    async def test_cleared_token_is_a_gitlab_error(self):
        current = {"config": GitLabConfig(url="https://gitlab.example.com", token="x")}
        client = GitLabClient(lambda: current["config"])
        current["config"] = GitLabConfig(url="https://gitlab.example.com", token="")
        with pytest.raises(ConfigurationError, match="GITLAB_TOKEN"):
            await client.get_current_user()
        await client.close()

    @pytest.mark.asyncio
    async def test_provider_resolved_per_request(self):
        tokens = iter(["first", "second"])

        def provider() -> GitLabConfig:
            return GitLabConfig(url="https://gitlab.example.com", token=next(tokens, "later"))

        async with respx.mock(base_url=BASE) as router:
            route = router.get("/user").mock(return_value=httpx.Response(200, json={"id": 1}))
            client = GitLabClient(provider)
            await client.get_current_user()
            await client.get_current_user()
            seen = [call.request.headers["PRIVATE-TOKEN"] for call in route.calls]
            assert seen[-2:] == ["second", "later"]


class TestRequest:
    @pytest.mark.asyncio
    async def test_private_token_header(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/user").mock(return_value=httpx.Response(200, json={"id": 5}))
            client = _make_client()
            result = await client.get_current_user()
            assert result["id"] == 5
            assert route.calls.last.request.headers["PRIVATE-TOKEN"] == "test-token"

    @pytest.mark.asyncio
    async def test_auth_error_401(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/issues/1").mock(
                return_value=httpx.Response(401, text="Unauthorized")
            )
            client = _make_client()
            with pytest.raises(GitLabAuthError) as exc_info:
                await client.get_issue(123, 1)
            assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_not_found_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/999/issues/1").mock(
                return_value=httpx.Response(404, text="Not Found")
            )
            client = _make_client()
            with pytest.raises(GitLabNotFoundError):
                await client.get_issue(999, 1)

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/issues/1").mock(
                return_value=httpx.Response(500, text="Internal Server Error")
            )
            client = _make_client()
            with pytest.raises(RemoteError) as exc_info:
                await client.get_issue(123, 1)
            assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_html_response_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/issues/1").mock(
                return_value=httpx.Response(
                    200,
                    text="<html><body>Login</body></html>",
                    headers={"content-type": "text/html"},
                )
            )
            client = _make_client()
            with pytest.raises(DecodeError, match="HTML"):
                await client.get_issue(123, 1)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/issues/1").mock(
                return_value=httpx.Response(
                    200, text="{not json", headers={"content-type": "application/json"}
                )
            )
            client = _make_client()
            with pytest.raises(DecodeError, match="JSON"):
                await client.get_issue(123, 1)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/issues/1").mock(
                side_effect=httpx.ConnectError("connection refused")
            )
            client = _make_client()
            with pytest.raises(NetworkError, match="connection refused"):
                await client.get_issue(123, 1)

    @pytest.mark.asyncio
    async def test_path_encoding(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/my-group%2Fmy-project/issues/3").mock(
                return_value=httpx.Response(200, json={"id": 1})
            )
            client = _make_client()
            await client.get_issue("my-group/my-project", 3)
            assert route.called


class TestEndpoints:
    @pytest.mark.asyncio
    async def test_list_issues_all_projects(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/issues").mock(
                return_value=httpx.Response(200, json=[], headers={"X-Total": "0"})
            )
            client = _make_client()
            data, headers = await client.list_issues(None, {"page": 2})
            assert data == []
            assert headers["x-total"] == "0"
            params = route.calls.last.request.url.params
            assert params["page"] == "2"
            assert params["per_page"] == "20"

    @pytest.mark.asyncio
    async def test_list_issues_for_project(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/7/issues").mock(
                return_value=httpx.Response(200, json=[{"id": 1}])
            )
            client = _make_client()
            data, _ = await client.list_issues(7, {"assignee_id": 3})
            assert data == [{"id": 1}]
            assert route.calls.last.request.url.params["assignee_id"] == "3"

    @pytest.mark.asyncio
    async def test_list_issue_notes_sorted_ascending(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/7/issues/12/notes").mock(
                return_value=httpx.Response(200, json=[])
            )
            client = _make_client()
            await client.list_issue_notes(7, 12)
            assert route.calls.last.request.url.params["sort"] == "asc"

    @pytest.mark.asyncio
    async def test_search_projects(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects").mock(
                return_value=httpx.Response(200, json=[{"id": 1, "name": "web"}])
            )
            client = _make_client()
            result = await client.search_projects("we")
            params = route.calls.last.request.url.params
            assert params["membership"] == "true"
            assert params["search"] == "we"
            assert result[0]["name"] == "web"

    @pytest.mark.asyncio
    async def test_search_projects_without_term(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects").mock(return_value=httpx.Response(200, json=[]))
            client = _make_client()
            await client.search_projects("")
            assert "search" not in route.calls.last.request.url.params

    @pytest.mark.asyncio
    async def test_list_project_users(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/7/users").mock(
                return_value=httpx.Response(200, json=[{"id": 2, "username": "bob"}])
            )
            client = _make_client()
            users = await client.list_project_users(7)
            assert users[0]["username"] == "bob"

    @pytest.mark.asyncio
    async def test_get_bytes(self):
        url = "https://gitlab.example.com/-/project/7/uploads/abc/shot.png"
        async with respx.mock() as router:
            route = router.get(url).mock(
                return_value=httpx.Response(
                    200, content=b"\x89PNG", headers={"content-type": "image/png"}
                )
            )
            client = _make_client()
            payload, content_type = await client.get_bytes(url)
            assert payload == b"\x89PNG"
            assert content_type == "image/png"
            assert route.calls.last.request.headers["PRIVATE-TOKEN"] == "test-token"
