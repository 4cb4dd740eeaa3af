"""GitLab provider for release data.

Handles compare URLs of the form

    https://gitlab.example.com/group/subgroup/project/-/compare/v1.0...v1.1

using the GitLab REST API v4:
- GET /projects/{id}/repository/compare (straight=false, three-dot diff)
- GET /projects/{id}/repository/commits/{sha}/merge_requests - MR per commit
- MR notes and approvals - `/rcs` user guidance
- Repository files - release documentation

GitLab does not report per-file line counts, so additions and deletions are
counted from each diff body.
"""

from __future__ import annotations

import asyncio
import base64
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from release_confidence.context.docs import DocumentationFetcher
from release_confidence.context.guidance import extract_qe_label, parse_user_guidance
from release_confidence.logging_config import get_logger
from release_confidence.schemas import (
    Commit,
    Comparison,
    ComparisonStats,
    FileChange,
    ReleaseData,
    Repository,
    UserGuidance,
)

logger = get_logger(__name__)

GITLAB_COMPARE_RE = re.compile(r"^https?://([^/]+)/(.+)/-/compare/(.+?)\.\.\.([^?#]+)")

MAX_CONCURRENT_LOOKUPS = 10


@dataclass(frozen=True)
class GitLabCompare:
    """Components of a GitLab compare URL."""

    host: str
    project_path: str
    base: str
    head: str

    @property
    def repo_url(self) -> str:
        return f"https://{self.host}/{self.project_path}"

    @property
    def api_path(self) -> str:
        return f"/projects/{quote(self.project_path, safe='')}"

    @property
    def owner(self) -> str:
        return self.project_path.rpartition("/")[0]

    @property
    def name(self) -> str:
        return self.project_path.rpartition("/")[2]


def parse_compare_url(url: str) -> GitLabCompare:
    """Parse a GitLab compare URL.

    Raises:
        ValueError: If the URL is not a GitLab compare URL.
    """
    match = GITLAB_COMPARE_RE.match(url)
    if match is None:
        raise ValueError(f"invalid GitLab compare URL format: {url}")
    return GitLabCompare(*match.groups())


def parse_patch_stats(patch: str) -> tuple[int, int]:
    """Count added and removed lines in a unified diff body.

    File header lines ("+++ b/x", "--- a/x") are not counted.
    """
    additions = deletions = 0
    for line in patch.split("\n"):
        if line.startswith("+") and not line.startswith("+++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            deletions += 1
    return additions, deletions


class GitLabProvider:
    """Fetch release data for GitLab compare URLs."""

    name = "GitLab"

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        skip_ssl_verify: bool = False,
        max_concurrency: int = MAX_CONCURRENT_LOOKUPS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            base_url: GitLab instance URL (e.g. "https://gitlab.example.com")
            token: Access token sent as PRIVATE-TOKEN
            skip_ssl_verify: Disable TLS verification for self-signed instances
            max_concurrency: Maximum concurrent commit -> MR lookups
            transport: Optional httpx transport (httpx.MockTransport in tests)
        """
        self._api_url = f"{base_url.rstrip('/')}/api/v4"
        self._token = token
        self._headers = {"PRIVATE-TOKEN": token} if token else {}
        self._skip_ssl_verify = skip_ssl_verify
        self._max_concurrency = max_concurrency
        self._transport = transport

    def is_compare_url(self, url: str) -> bool:
        return GITLAB_COMPARE_RE.match(url) is not None

    async def fetch_release_data(self, url: str) -> ReleaseData:
        """Fetch comparison, user guidance and documentation for a compare URL.

        Raises:
            ValueError: If the URL is not a GitLab compare URL
            httpx.HTTPStatusError: If a required GitLab API call fails
        """
        ref = parse_compare_url(url)
        logger.debug(
            "gitlab_fetch_started",
            host=ref.host,
            project=ref.project_path,
            base=ref.base,
            head=ref.head,
        )

        async with httpx.AsyncClient(
            base_url=self._api_url,
            headers=self._headers,
            timeout=30.0,
            verify=not self._skip_ssl_verify,
            transport=self._transport,
        ) as client:
            docs_fetcher = DocumentationFetcher(
                _GitLabDocumentationSource(client, ref),
                Repository(owner=ref.owner, name=ref.name, url=ref.repo_url),
                gitlab_token=self._token,
                gitlab_skip_ssl_verify=self._skip_ssl_verify,
                transport=self._transport,
            )
            (comparison, guidance), documentation = await asyncio.gather(
                self._fetch_comparison_and_guidance(client, ref, url),
                docs_fetcher.fetch_all(),
            )

        logger.debug(
            "gitlab_fetch_complete",
            repo=ref.repo_url,
            commits=len(comparison.commits),
            files=len(comparison.files),
            guidance=len(guidance),
            has_documentation=bool(documentation.main_doc_content),
        )
        return ReleaseData(
            comparison=comparison,
            guidance=guidance,
            documentation=documentation,
        )

    async def _fetch_comparison_and_guidance(
        self, client: httpx.AsyncClient, ref: GitLabCompare, url: str
    ) -> tuple[Comparison, list[UserGuidance]]:
        mrs: dict[int, dict[str, Any]] = {}
        comparison = await self._fetch_comparison(client, ref, url, mrs)
        guidance = await self._fetch_guidance(client, ref, comparison, mrs)
        return comparison, guidance

    # -----------------------------------------------------------------------
    # Comparison
    # -----------------------------------------------------------------------

    async def _fetch_comparison(
        self,
        client: httpx.AsyncClient,
        ref: GitLabCompare,
        url: str,
        mrs: dict[int, dict[str, Any]],
    ) -> Comparison:
        resp = await client.get(
            f"{ref.api_path}/repository/compare",
            params={"from": ref.base, "to": ref.head, "straight": "false"},
        )
        resp.raise_for_status()
        data = resp.json()

        files = [_convert_diff(d) for d in data.get("diffs") or []]
        raw_commits = [c for c in data.get("commits") or [] if c.get("id")]

        semaphore = asyncio.Semaphore(self._max_concurrency)
        commits = await asyncio.gather(
            *(self._build_commit(client, ref, raw, semaphore, mrs) for raw in raw_commits)
        )

        return Comparison(
            repo_url=ref.repo_url,
            diff_url=url,
            commits=list(commits),
            files=files,
            stats=ComparisonStats.from_files(files),
        )

    async def _build_commit(
        self,
        client: httpx.AsyncClient,
        ref: GitLabCompare,
        raw: dict[str, Any],
        semaphore: asyncio.Semaphore,
        mrs: dict[int, dict[str, Any]],
    ) -> Commit:
        sha = raw["id"]
        message = (raw.get("message") or raw.get("title") or "").split("\n", 1)[0].strip()
        commit = Commit(
            sha=sha,
            short_sha=raw.get("short_id") or sha[:8],
            message=message,
            author=raw.get("author_name") or "",
        )

        async with semaphore:
            try:
                mr = await self._find_merge_request(client, ref, sha)
            except httpx.HTTPError as exc:
                logger.warning("gitlab_mr_lookup_failed", commit=commit.short_sha, error=str(exc))
                return commit

        if mr is None:
            return commit

        iid = int(mr["iid"])
        mrs.setdefault(iid, mr)
        return commit.model_copy(
            update={"pr_number": iid, "qe_testing_label": extract_qe_label(mr.get("labels") or [])}
        )

    async def _find_merge_request(
        self, client: httpx.AsyncClient, ref: GitLabCompare, sha: str
    ) -> dict[str, Any] | None:
        """Return the merged MR containing a commit, else its first MR."""
        resp = await client.get(f"{ref.api_path}/repository/commits/{sha}/merge_requests")
        resp.raise_for_status()
        candidates = resp.json()
        if not candidates:
            return None
        for mr in candidates:
            if mr.get("state") == "merged":
                return mr
        return candidates[0]

    # -----------------------------------------------------------------------
    # User guidance
    # -----------------------------------------------------------------------

    async def _fetch_guidance(
        self,
        client: httpx.AsyncClient,
        ref: GitLabCompare,
        comparison: Comparison,
        mrs: dict[int, dict[str, Any]],
    ) -> list[UserGuidance]:
        guidance: list[UserGuidance] = []
        seen: set[int] = set()
        for commit in comparison.commits:
            iid = commit.pr_number
            if not iid or iid in seen or iid not in mrs:
                continue
            seen.add(iid)
            guidance.extend(await self._mr_guidance(client, ref, mrs[iid]))
        return guidance

    async def _mr_guidance(
        self, client: httpx.AsyncClient, ref: GitLabCompare, mr: dict[str, Any]
    ) -> list[UserGuidance]:
        iid = mr["iid"]
        notes, approvers = await asyncio.gather(
            self._paginate(client, f"{ref.api_path}/merge_requests/{iid}/notes"),
            self._approvers(client, ref, iid),
        )
        mr_author = (mr.get("author") or {}).get("username", "")

        guidance: list[UserGuidance] = []
        for note in notes:
            if note.get("system"):
                continue
            content = parse_user_guidance(note.get("body"))
            author = (note.get("author") or {}).get("username", "")
            if content is None or not author or not note.get("created_at"):
                continue

            authorized = author == mr_author or author in approvers
            logger.debug("user_guidance_found", mr=iid, author=author, authorized=authorized)
            guidance.append(
                UserGuidance(
                    content=content,
                    author=author,
                    date=note["created_at"],
                    comment_url=f"{ref.repo_url}/-/merge_requests/{iid}#note_{note.get('id')}",
                    is_authorized=authorized,
                )
            )
        return guidance

    async def _approvers(
        self, client: httpx.AsyncClient, ref: GitLabCompare, iid: int
    ) -> set[str]:
        resp = await client.get(f"{ref.api_path}/merge_requests/{iid}/approvals")
        resp.raise_for_status()
        approvers: set[str] = set()
        for entry in resp.json().get("approved_by") or []:
            username = (entry.get("user") or {}).get("username")
            if username:
                approvers.add(username)
        return approvers

    async def _paginate(self, client: httpx.AsyncClient, url: str) -> list[dict[str, Any]]:
        """Fetch every page of a list endpoint using X-Next-Page."""
        items: list[dict[str, Any]] = []
        page: str | None = "1"
        while page:
            resp = await client.get(url, params={"per_page": 100, "page": page})
            resp.raise_for_status()
            items.extend(resp.json())
            page = resp.headers.get("x-next-page") or None
        return items


def _convert_diff(raw: dict[str, Any]) -> FileChange:
    patch = raw.get("diff") or ""
    additions, deletions = parse_patch_stats(patch)

    if raw.get("new_file"):
        status = "added"
    elif raw.get("deleted_file"):
        status = "removed"
    elif raw.get("renamed_file"):
        status = "renamed"
    else:
        status = "modified"

    return FileChange(
        filename=raw.get("new_path", ""),
        status=status,
        additions=additions,
        deletions=deletions,
        changes=additions + deletions,
        patch=patch,
        previous_filename=raw.get("old_path", "") if raw.get("renamed_file") else "",
    )


class _GitLabDocumentationSource:
    """Repository file access through the repository files API."""

    def __init__(self, client: httpx.AsyncClient, ref: GitLabCompare) -> None:
        self._client = client
        self._ref = ref

    async def get_default_branch(self) -> str:
        resp = await self._client.get(self._ref.api_path)
        resp.raise_for_status()
        # Empty projects report no default branch.
        return resp.json().get("default_branch") or "main"

    async def fetch_file_content(self, path: str, ref: str) -> str:
        encoded = quote(path.lstrip("/"), safe="")
        resp = await self._client.get(
            f"{self._ref.api_path}/repository/files/{encoded}",
            params={"ref": ref},
        )
        resp.raise_for_status()
        data = resp.json()
        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            return base64.b64decode(content).decode("utf-8")
        return content
