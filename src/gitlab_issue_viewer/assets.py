"""Resolution of upload references that need an authenticated fetch."""

from __future__ import annotations

import asyncio
import enum
import hashlib
import logging
import mimetypes
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .client import GitLabClient
from .exceptions import GitLabError

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "/uploads/"

# ![alt](/uploads/<secret>/<file> "title") and [name](/uploads/...)
_MARKDOWN_REF_RE = re.compile(r"(\]\()(/uploads/[^)\s]+)")
# <img src="/uploads/..."> and <a href="/uploads/...">
_HTML_REF_RE = re.compile(r"""(\b(?:src|href)=["'])(/uploads/[^"'\s]+)""")


class AssetState(enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class AssetCacheEntry:
    source: str
    state: AssetState = AssetState.PENDING
    local_ref: str | None = None
    path: Path | None = None
    task: asyncio.Future | None = None


def find_references(text: str) -> list[str]:
    """Protected references in *text*, in order of first appearance."""
    found: dict[str, None] = {}
    for pattern in (_MARKDOWN_REF_RE, _HTML_REF_RE):
        for match in pattern.finditer(text):
            found.setdefault(match.group(2), None)
    return list(found)


class AssetResolver:
    """Turns ``/uploads/...`` references into local ``file://`` references.

    Each source reference is fetched at most once per session: concurrent
    callers share the pending fetch, later callers get the cached result.
    A failed fetch resolves to the original reference so the surrounding
    text still renders.
    """

    def __init__(self, client: GitLabClient, directory: Path | None = None) -> None:
        self._client = client
        self._directory = directory
        self._owns_directory = directory is None
        self._entries: dict[str, AssetCacheEntry] = {}
        self._closed = False

    @staticmethod
    def is_protected(source_ref: str) -> bool:
        return source_ref.startswith(UPLOAD_PREFIX)

    def asset_url(self, source_ref: str, project_id: int) -> str:
        """Web route serving a project upload: ``/-/project/:id/uploads/:secret/:file``."""
        return f"{self._client.config.base_url}/-/project/{project_id}{source_ref}"

    def entry(self, source_ref: str) -> AssetCacheEntry | None:
        return self._entries.get(source_ref)

    def lookup(self, source_ref: str) -> str | None:
        """Resolved local reference for *source_ref*, if there is one already."""
        entry = self._entries.get(source_ref)
        if entry is not None and entry.state is AssetState.RESOLVED:
            return entry.local_ref
        return None

    async def resolve(self, source_ref: str, project_id: int) -> str:
        if not self.is_protected(source_ref):
            return source_ref

        entry = self._entries.get(source_ref)
        if entry is None:
            entry = self._start(source_ref, project_id)
        elif entry.state is AssetState.RESOLVED:
            logger.debug("asset cache hit: %s", source_ref)
            return entry.local_ref or source_ref
        elif entry.state is AssetState.FAILED:
            return source_ref

        return await asyncio.shield(entry.task)

    def prefetch(self, text: str, project_id: int) -> list[str]:
        """Start fetches for every protected reference in *text* without waiting."""
        refs = find_references(text)
        for ref in refs:
            if ref not in self._entries:
                self._start(ref, project_id)
        return refs

    async def rewrite(self, text: str, project_id: int) -> str:
        """Return *text* with each protected reference replaced by its resolution."""
        refs = find_references(text)
        if not refs:
            return text
        resolved = await asyncio.gather(*(self.resolve(ref, project_id) for ref in refs))
        mapping = dict(zip(refs, resolved))

        def _sub(match: re.Match[str]) -> str:
            return match.group(1) + mapping.get(match.group(2), match.group(2))

        text = _MARKDOWN_REF_RE.sub(_sub, text)
        return _HTML_REF_RE.sub(_sub, text)

    def release(self, source_ref: str) -> bool:
        """Forget *source_ref* and delete its local file. True if an entry existed."""
        entry = self._entries.pop(source_ref, None)
        if entry is None:
            return False
        if entry.path is not None:
            entry.path.unlink(missing_ok=True)
        return True

    def close(self) -> None:
        self._closed = True
        for source_ref in list(self._entries):
            self.release(source_ref)
        if self._owns_directory and self._directory is not None:
            shutil.rmtree(self._directory, ignore_errors=True)
            self._directory = None

    # ── internals ─────────────────────────────────────────────────

    def _start(self, source_ref: str, project_id: int) -> AssetCacheEntry:
        entry = AssetCacheEntry(source=source_ref)
        self._entries[source_ref] = entry
        entry.task = asyncio.ensure_future(self._fetch(entry, project_id))
        return entry

    async def _fetch(self, entry: AssetCacheEntry, project_id: int) -> str:
        try:
            url = self.asset_url(entry.source, project_id)
            payload, content_type = await self._client.get_bytes(url)
            if self._closed or self._entries.get(entry.source) is not entry:
                # released while the fetch was running
                return entry.source
            path = self._store(entry.source, payload, content_type)
        except (GitLabError, OSError, ValueError) as e:
            logger.warning("could not load asset %s: %s", entry.source, e)
            entry.state = AssetState.FAILED
            return entry.source

        entry.path = path
        entry.local_ref = path.as_uri()
        entry.state = AssetState.RESOLVED
        return entry.local_ref

    def _store(self, source_ref: str, payload: bytes, content_type: str) -> Path:
        if self._directory is None:
            self._directory = Path(tempfile.mkdtemp(prefix="gitlab-issue-viewer-"))
        self._directory.mkdir(parents=True, exist_ok=True)

        suffix = PurePosixPath(source_ref).suffix
        if not suffix:
            mime = content_type.split(";", 1)[0].strip()
            suffix = mimetypes.guess_extension(mime) or ""
        digest = hashlib.sha256(source_ref.encode()).hexdigest()[:16]
        path = self._directory / f"{digest}{suffix}"
        path.write_bytes(payload)
        return path
