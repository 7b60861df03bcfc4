"""GitLab API exceptions."""

from __future__ import annotations


class GitLabError(Exception):
    """Base exception for GitLab operations."""


class RemoteError(GitLabError):
    """Raised when the GitLab API returns a non-success response."""

    def __init__(self, status_code: int, status_text: str, body: str = "") -> None:
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(f"GitLab API Error {status_code} {status_text}: {body}")


class GitLabAuthError(RemoteError):
    """Raised on 401/403 authentication failures."""

    def __init__(self, status_code: int, body: str = "") -> None:
        status_text = "Unauthorized" if status_code == 401 else "Forbidden"
        super().__init__(status_code, status_text, body)


class GitLabNotFoundError(RemoteError):
    """Raised on 404 responses."""

    def __init__(self, body: str = "") -> None:
        super().__init__(404, "Not Found", body)


class NetworkError(GitLabError):
    """Raised when the request never produced an HTTP response."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Network error for {url}: {reason}")


class DecodeError(GitLabError):
    """Raised when a response body cannot be turned into the expected records."""

    def __init__(self, message: str, body: str = "") -> None:
        self.body = body
        super().__init__(message)


class ConfigurationError(GitLabError, ValueError):
    """Raised when the resolved configuration cannot be used for a request."""
