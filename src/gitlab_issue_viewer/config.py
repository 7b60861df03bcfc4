"""GitLab issue viewer configuration."""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass

from .exceptions import ConfigurationError


@dataclass
class GitLabConfig:
    """Connection and behaviour settings, loaded from environment variables."""

    url: str = ""
    token: str = ""
    timeout: int = 30
    ssl_verify: bool = True
    per_page: int = 20
    search_debounce_ms: int = 300

    @classmethod
    def from_env(cls) -> GitLabConfig:
        url = os.getenv("GITLAB_URL", "").rstrip("/")
        token = (
            os.getenv("GITLAB_TOKEN")
            or os.getenv("GITLAB_PAT")
            or os.getenv("GITLAB_PERSONAL_ACCESS_TOKEN")
            or os.getenv("GITLAB_API_TOKEN", "")
        )
        timeout = int(os.getenv("GITLAB_TIMEOUT", "30"))
        ssl_verify = os.getenv("GITLAB_SSL_VERIFY", "true").lower() not in (
            "false",
            "0",
            "no",
        )
        per_page = int(os.getenv("GITLAB_PER_PAGE", "20"))
        search_debounce_ms = int(os.getenv("GITLAB_SEARCH_DEBOUNCE_MS", "300"))

        return cls(
            url=url,
            token=token,
            timeout=timeout,
            ssl_verify=ssl_verify,
            per_page=per_page,
            search_debounce_ms=search_debounce_ms,
        )

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/api/v4"

    @property
    def search_debounce(self) -> float:
        """Debounce interval in seconds."""
        return self.search_debounce_ms / 1000

    def auth_headers(self) -> dict[str, str]:
        """Credential header attached to every API and upload request."""
        return {"PRIVATE-TOKEN": self.token}

    def validate(self) -> None:
        if not self.url:
            msg = "GITLAB_URL environment variable is required"
            raise ConfigurationError(msg)
        if not self.token:
            msg = (
                "GitLab token is required. Set one of: GITLAB_TOKEN, GITLAB_PAT, "
                "GITLAB_PERSONAL_ACCESS_TOKEN, or GITLAB_API_TOKEN"
            )
            raise ConfigurationError(msg)
        if self.per_page < 1:
            msg = "GITLAB_PER_PAGE must be a positive integer"
            raise ConfigurationError(msg)


# Re-resolved on every request so callers can swap credentials mid-session.
ConfigProvider = Callable[[], GitLabConfig]


def as_provider(config: GitLabConfig | ConfigProvider | None) -> ConfigProvider:
    """Normalize a config value or provider into a provider."""
    if config is None:
        config = GitLabConfig.from_env()
    if isinstance(config, GitLabConfig):
        fixed = config
        return lambda: fixed
    return config
