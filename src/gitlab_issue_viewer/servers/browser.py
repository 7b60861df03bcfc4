"""Issue browser MCP server: tools driving one browsing session."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any, Literal

from fastmcp import Context, FastMCP
from pydantic import Field

from ..config import GitLabConfig
from ..detail import DetailState, visible_notes
from ..session import IssueBrowser, IssueListState


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    config = GitLabConfig.from_env()
    config.validate()
    session = IssueBrowser(config)
    try:
        yield {"session": session}
    finally:
        await session.close()


mcp = FastMCP(
    name="GitLab Issue Viewer",
    instructions=(
        "Browse GitLab issues: filter by project, assignee and author, page through"
        " results, and read an issue with its comments and embedded uploads."
    ),
    lifespan=lifespan,
)


def _get_session(ctx: Context) -> IssueBrowser:
    return ctx.request_context.lifespan_context["session"]


def _ok(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _err(error: Exception) -> str:
    detail: dict[str, Any] = {"error": str(error)}
    from ..exceptions import (
        ConfigurationError,
        DecodeError,
        GitLabAuthError,
        GitLabNotFoundError,
        NetworkError,
        RemoteError,
    )

    if isinstance(error, GitLabNotFoundError):
        detail["status_code"] = error.status_code
        detail["hint"] = "Verify the project ID and issue IID."
    elif isinstance(error, GitLabAuthError):
        detail["status_code"] = error.status_code
        detail["hint"] = "Check GITLAB_TOKEN permissions. Token needs 'read_api' scope."
    elif isinstance(error, RemoteError):
        detail["status_code"] = error.status_code
        if error.status_code == 429:
            detail["hint"] = "Rate limited. Wait before retrying."
    elif isinstance(error, NetworkError):
        detail["hint"] = "Could not reach GitLab. Check GITLAB_URL and connectivity."
    elif isinstance(error, ConfigurationError):
        detail["hint"] = "Set GITLAB_URL and GITLAB_TOKEN, then retry."
    elif isinstance(error, DecodeError):
        detail["hint"] = "GitLab returned an unexpected payload. Check GITLAB_URL."
    elif isinstance(error, ValueError):
        detail["hint"] = "Invalid argument."
    return json.dumps(detail, indent=2, ensure_ascii=False)


def _list_view(session: IssueBrowser, state: IssueListState) -> dict[str, Any]:
    filters = session.filters.state
    return {
        "filter": {
            "project_id": filters.project_id,
            "assignee_id": filters.assignee_id,
            "author_id": filters.author_id,
            "page": filters.page,
        },
        "items": [item.to_dict() for item in state.items],
        "pagination": state.pagination.to_dict(),
        "loading": state.loading,
        "error": state.error,
    }


async def _detail_view(
    session: IssueBrowser, state: DetailState, *, resolve_assets: bool
) -> dict[str, Any]:
    if state.issue is None:
        return {"selected": None}

    project_id = state.issue.project_id
    view: dict[str, Any] = {
        "selected": {"project_id": project_id, "iid": state.issue.iid},
        "detail_loading": state.detail_loading,
        "notes_loading": state.notes_loading,
        "detail_error": state.detail_error,
        "notes_error": state.notes_error,
        "detail": None,
        "notes": None,
    }
    if state.detail is not None:
        detail = state.detail.to_dict()
        if resolve_assets and state.detail.description:
            detail["description"] = await session.assets.rewrite(
                state.detail.description, project_id
            )
        view["detail"] = detail
    if state.notes is not None:
        notes = []
        for note in visible_notes(state.notes):
            data = note.to_dict()
            if resolve_assets:
                data["body"] = await session.assets.rewrite(note.body, project_id)
            notes.append(data)
        view["notes"] = notes
        view["hidden_system_notes"] = len(state.notes) - len(notes)
    return view


# ════════════════════════════════════════════════════════════════════
# Issue list
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "issues", "read"},
    annotations={"readOnlyHint": True, "openWorldHint": True},
)
async def issues_set_filter(
    ctx: Context,
    project_id: Annotated[int | None, Field(description="Only issues of this project")] = None,
    assignee_id: Annotated[int | None, Field(description="Only issues assigned to user")] = None,
    author_id: Annotated[int | None, Field(description="Only issues created by user")] = None,
    clear: Annotated[
        list[Literal["project", "assignee", "author"]] | None,
        Field(description="Filters to remove"),
    ] = None,
) -> str:
    """Change the issue filters and load page 1 of the result."""
    try:
        session = _get_session(ctx)
        changes: dict[str, Any] = {}
        for name in clear or []:
            changes[f"{name}_id"] = None
        if project_id is not None:
            changes["project_id"] = project_id
        if assignee_id is not None:
            changes["assignee_id"] = assignee_id
        if author_id is not None:
            changes["author_id"] = author_id
        state = await session.set_filter(**changes)
        return _ok(_list_view(session, state))
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "issues", "read"},
    annotations={"readOnlyHint": True, "openWorldHint": True},
)
async def issues_set_page(
    ctx: Context,
    page: Annotated[int, Field(description="Page number (1-based)", ge=1)],
) -> str:
    """Load another page of the current issue list."""
    try:
        session = _get_session(ctx)
        state = await session.set_filter(page=page)
        return _ok(_list_view(session, state))
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "issues", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def issues_list(ctx: Context) -> str:
    """Show the current issue list without reloading it."""
    try:
        session = _get_session(ctx)
        return _ok(_list_view(session, session.issues))
    except Exception as e:
        return _err(e)


# ════════════════════════════════════════════════════════════════════
# Selected issue
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "issues", "read"},
    annotations={"readOnlyHint": True, "openWorldHint": True},
)
async def issue_select(
    ctx: Context,
    project_id: Annotated[int, Field(description="Project ID of the issue")],
    issue_iid: Annotated[int, Field(description="Issue IID")],
    resolve_assets: Annotated[
        bool, Field(description="Replace /uploads/ references with local files")
    ] = True,
) -> str:
    """Open an issue with its details and comments."""
    try:
        session = _get_session(ctx)
        await session.select_issue(project_id, issue_iid)
        view = await _detail_view(session, session.detail, resolve_assets=resolve_assets)
        return _ok(view)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "issues", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def issue_current(
    ctx: Context,
    resolve_assets: Annotated[
        bool, Field(description="Replace /uploads/ references with local files")
    ] = True,
) -> str:
    """Show the currently selected issue as loaded so far."""
    try:
        session = _get_session(ctx)
        view = await _detail_view(session, session.detail, resolve_assets=resolve_assets)
        return _ok(view)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "issues"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
async def issue_close(ctx: Context) -> str:
    """Close the selected issue view."""
    try:
        _get_session(ctx).close_issue()
        return _ok({"selected": None})
    except Exception as e:
        return _err(e)


# ════════════════════════════════════════════════════════════════════
# Search
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "projects", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def projects_search(
    ctx: Context,
    term: Annotated[str, Field(description="Part of the project name or path")] = "",
) -> str:
    """Search projects the token's user is a member of."""
    try:
        items = await _get_session(ctx).search_projects(term)
        return _ok({"term": term, "superseded": items is None, "items": _dump(items)})
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "users", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def users_search(
    ctx: Context,
    term: Annotated[str, Field(description="Part of the name or username")] = "",
) -> str:
    """Search members of the filtered project (empty without a project filter)."""
    try:
        items = await _get_session(ctx).search_users(term)
        return _ok({"term": term, "superseded": items is None, "items": _dump(items)})
    except Exception as e:
        return _err(e)


def _dump(items: list | None) -> list[dict[str, Any]]:
    return [item.to_dict() for item in items or []]


# ════════════════════════════════════════════════════════════════════
# Assets & account
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "uploads", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def asset_resolve(
    ctx: Context,
    project_id: Annotated[int, Field(description="Project the upload belongs to")],
    source: Annotated[str, Field(description="Reference such as /uploads/<secret>/a.png")],
) -> str:
    """Download a protected upload and return a local file reference."""
    try:
        session = _get_session(ctx)
        resolved = await session.assets.resolve(source, project_id)
        return _ok({"source": source, "resolved": resolved, "fallback": resolved == source})
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "users", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def whoami(ctx: Context) -> str:
    """Check the configured token and show whom it belongs to."""
    try:
        user = await _get_session(ctx).verify_credentials()
        return _ok(user.to_dict())
    except Exception as e:
        return _err(e)
