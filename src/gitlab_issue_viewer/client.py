"""GitLab API client using httpx."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from .config import ConfigProvider, GitLabConfig, as_provider
from .exceptions import (
    DecodeError,
    GitLabAuthError,
    GitLabNotFoundError,
    NetworkError,
    RemoteError,
)

logger = logging.getLogger(__name__)


class GitLabClient:
    """Async HTTP client for the read-only slice of the GitLab REST API v4.

    The configuration is re-resolved through its provider on every request,
    so base URL, token and timeout changes apply to the next call.
    """

    def __init__(self, config: GitLabConfig | ConfigProvider | None = None) -> None:
        self._config_provider = as_provider(config)
        initial = self.config
        # TLS verification is bound to the connection pool, not to a request.
        self._client = httpx.AsyncClient(verify=initial.ssl_verify)

    @property
    def config(self) -> GitLabConfig:
        config = self._config_provider()
        config.validate()
        return config

    async def close(self) -> None:
        await self._client.aclose()

    # ── HTTP helpers ──────────────────────────────────────────────

    @staticmethod
    def _encode_id(project_id: str | int) -> str:
        """Encode a project ID. Numeric IDs pass through; paths are URL-encoded."""
        if isinstance(project_id, int):
            return str(project_id)
        try:
            return str(int(project_id))
        except ValueError:
            return quote(project_id, safe="")

    async def _send(
        self,
        method: str,
        url: str,
        config: GitLabConfig,
        *,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request with credentials attached and map failures to exceptions."""
        headers = {**config.auth_headers(), "Accept": "application/json"}
        logger.debug("%s %s params=%s", method, url, params)
        try:
            resp = await self._client.request(
                method, url, params=params, headers=headers, timeout=config.timeout
            )
        except httpx.TransportError as e:
            raise NetworkError(url, str(e) or type(e).__name__) from e

        if resp.status_code in (401, 403):
            raise GitLabAuthError(resp.status_code, resp.text)
        if resp.status_code == 404:
            raise GitLabNotFoundError(resp.text)
        if not resp.is_success:
            raise RemoteError(resp.status_code, resp.reason_phrase or "", resp.text)
        return resp

    @staticmethod
    def _decode(resp: httpx.Response) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None

        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type:
            msg = "Unexpected HTML response, check URL and authentication"
            raise DecodeError(msg, resp.text[:500])

        try:
            return resp.json()
        except json.JSONDecodeError as e:
            raise DecodeError(f"JSON parse error: {e}", resp.text[:500]) from e

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        config = self.config
        resp = await self._send("GET", f"{config.api_url}{path}", config, params=params)
        return self._decode(resp)

    async def get_page(
        self, path: str, params: dict[str, Any] | None = None
    ) -> tuple[Any, httpx.Headers]:
        """GET a list endpoint, returning the parsed body and the response headers."""
        config = self.config
        resp = await self._send("GET", f"{config.api_url}{path}", config, params=params)
        return self._decode(resp), resp.headers

    async def get_bytes(self, url: str) -> tuple[bytes, str]:
        """Fetch an absolute URL with credentials; returns payload and content type."""
        resp = await self._send("GET", url, self.config)
        return resp.content, resp.headers.get("content-type", "")

    # ── User ──────────────────────────────────────────────────────

    async def get_current_user(self) -> dict:
        return await self.get("/user")

    # ── Projects ──────────────────────────────────────────────────

    async def search_projects(self, search: str = "") -> list[dict]:
        p: dict[str, Any] = {"membership": True, "per_page": 50}
        if search:
            p["search"] = search
        return await self.get("/projects", params=p)

    async def list_project_users(self, project_id: str | int) -> list[dict]:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}/users", params={"per_page": 100})

    # ── Issues ────────────────────────────────────────────────────

    async def list_issues(
        self, project_id: str | int | None, params: dict[str, Any] | None = None
    ) -> tuple[list[dict], httpx.Headers]:
        p = {"per_page": 20, **(params or {})}
        if project_id is None:
            return await self.get_page("/issues", params=p)
        enc = self._encode_id(project_id)
        return await self.get_page(f"/projects/{enc}/issues", params=p)

    async def get_issue(self, project_id: str | int, issue_iid: int) -> dict:
        enc = self._encode_id(project_id)
        return await self.get(f"/projects/{enc}/issues/{issue_iid}")

    async def list_issue_notes(self, project_id: str | int, issue_iid: int) -> list[dict]:
        enc = self._encode_id(project_id)
        return await self.get(
            f"/projects/{enc}/issues/{issue_iid}/notes",
            params={"sort": "asc", "order_by": "created_at", "per_page": 100},
        )
