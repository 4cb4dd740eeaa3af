"""GitHub provider for release data.

Turns a compare URL such as

    https://github.com/myorg/api/compare/v1.2.0...v1.3.0

into a ReleaseData by calling GitHub's REST API:
- GET /repos/{owner}/{repo}/compare/{base}...{head} - commits and files
- GET /repos/{owner}/{repo}/commits/{sha}/pulls - merged PR per commit
  (PR number and QE label)
- PR issue comments, review comments and reviews - `/rcs` user guidance
- Repository contents - release documentation

Design notes:
- Uses httpx for async HTTP requests, one client per fetch
- Commit -> PR lookups fan out with a bounded semaphore
- A failed PR lookup only loses that commit's PR metadata; everything else
  propagates to the caller

GitHub API docs: https://docs.github.com/en/rest
"""

from __future__ import annotations

import asyncio
import base64
import re
from dataclasses import dataclass
from typing import Any

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

GITHUB_COMPARE_RE = re.compile(
    r"^https?://github\.com/([^/]+)/([^/]+)/compare/(.+?)\.\.\.([^?#]+)$"
)

# Reviewer associations that carry authority over the repository.
AUTHORIZED_ASSOCIATIONS = frozenset({"OWNER", "MEMBER", "COLLABORATOR"})

MAX_CONCURRENT_LOOKUPS = 10


@dataclass(frozen=True)
class GitHubCompare:
    """Components of a GitHub compare URL."""

    owner: str
    repo: str
    base: str
    head: str

    @property
    def repo_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}"

    @property
    def api_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"


def parse_compare_url(url: str) -> GitHubCompare:
    """Parse a GitHub compare URL.

    Raises:
        ValueError: If the URL is not a GitHub compare URL.
    """
    match = GITHUB_COMPARE_RE.match(url)
    if match is None:
        raise ValueError(f"invalid GitHub compare URL format: {url}")
    return GitHubCompare(*match.groups())


class GitHubProvider:
    """Fetch release data for GitHub compare URLs.

    Usage:
        provider = GitHubProvider(token="ghp_...")
        data = await provider.fetch_release_data(url)
    """

    name = "GitHub"
    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str = "",
        *,
        gitlab_token: str = "",
        gitlab_skip_ssl_verify: bool = False,
        max_concurrency: int = MAX_CONCURRENT_LOOKUPS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            token: GitHub token sent as a Bearer token
            gitlab_token: Sent when release docs link to GitLab-hosted files
            gitlab_skip_ssl_verify: Disable TLS verification for those links
            max_concurrency: Maximum concurrent commit -> PR lookups
            transport: Optional httpx transport (httpx.MockTransport in tests)
        """
        self._headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._gitlab_token = gitlab_token
        self._gitlab_skip_ssl_verify = gitlab_skip_ssl_verify
        self._max_concurrency = max_concurrency
        self._transport = transport

    def is_compare_url(self, url: str) -> bool:
        return GITHUB_COMPARE_RE.match(url) is not None

    async def fetch_release_data(self, url: str) -> ReleaseData:
        """Fetch comparison, user guidance and documentation for a compare URL.

        Raises:
            ValueError: If the URL is not a GitHub compare URL
            httpx.HTTPStatusError: If a required GitHub API call fails
        """
        ref = parse_compare_url(url)
        logger.debug("github_fetch_started", owner=ref.owner, repo=ref.repo, base=ref.base, head=ref.head)

        async with httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers=self._headers,
            timeout=30.0,
            transport=self._transport,
        ) as client:
            docs_fetcher = DocumentationFetcher(
                _GitHubDocumentationSource(client, ref),
                Repository(owner=ref.owner, name=ref.repo, url=ref.repo_url),
                gitlab_token=self._gitlab_token,
                gitlab_skip_ssl_verify=self._gitlab_skip_ssl_verify,
                transport=self._transport,
            )
            (comparison, guidance), documentation = await asyncio.gather(
                self._fetch_comparison_and_guidance(client, ref, url),
                docs_fetcher.fetch_all(),
            )

        logger.debug(
            "github_fetch_complete",
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
        self, client: httpx.AsyncClient, ref: GitHubCompare, url: str
    ) -> tuple[Comparison, list[UserGuidance]]:
        prs: dict[int, dict[str, Any]] = {}
        comparison = await self._fetch_comparison(client, ref, url, prs)
        guidance = await self._fetch_guidance(client, ref, comparison, prs)
        return comparison, guidance

    # -----------------------------------------------------------------------
    # Comparison
    # -----------------------------------------------------------------------

    async def _fetch_comparison(
        self,
        client: httpx.AsyncClient,
        ref: GitHubCompare,
        url: str,
        prs: dict[int, dict[str, Any]],
    ) -> Comparison:
        first_page: dict[str, Any] | None = None
        raw_commits: list[dict[str, Any]] = []
        next_url: str | None = f"{ref.api_path}/compare/{ref.base}...{ref.head}"
        params: dict[str, Any] | None = {"per_page": 100}

        while next_url:
            resp = await client.get(next_url, params=params)
            resp.raise_for_status()
            page = resp.json()
            if first_page is None:
                first_page = page
            raw_commits.extend(page.get("commits") or [])
            next_url = _parse_next_link(resp.headers.get("link", ""))
            params = None

        files = [_convert_file(f) for f in (first_page or {}).get("files") or []]

        semaphore = asyncio.Semaphore(self._max_concurrency)
        commits = await asyncio.gather(
            *(self._build_commit(client, ref, raw, semaphore, prs) for raw in raw_commits)
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
        ref: GitHubCompare,
        raw: dict[str, Any],
        semaphore: asyncio.Semaphore,
        prs: dict[int, dict[str, Any]],
    ) -> Commit:
        sha = raw.get("sha", "")
        details = raw.get("commit") or {}
        message = (details.get("message") or "").split("\n", 1)[0].strip() or "No message"
        author = ((details.get("author") or {}).get("name")) or "Unknown"
        commit = Commit(sha=sha, short_sha=sha[:8], message=message, author=author)

        async with semaphore:
            try:
                pr = await self._find_merged_pr(client, ref, sha)
            except httpx.HTTPError as exc:
                logger.warning("github_pr_lookup_failed", commit=commit.short_sha, error=str(exc))
                return commit

        if pr is None:
            return commit

        number = int(pr["number"])
        prs.setdefault(number, pr)
        labels = [label.get("name", "") for label in pr.get("labels") or []]
        return commit.model_copy(
            update={"pr_number": number, "qe_testing_label": extract_qe_label(labels)}
        )

    async def _find_merged_pr(
        self, client: httpx.AsyncClient, ref: GitHubCompare, sha: str
    ) -> dict[str, Any] | None:
        resp = await client.get(f"{ref.api_path}/commits/{sha}/pulls")
        resp.raise_for_status()
        for pr in resp.json():
            if pr.get("merged_at"):
                return pr
        return None

    # -----------------------------------------------------------------------
    # User guidance
    # -----------------------------------------------------------------------

    async def _fetch_guidance(
        self,
        client: httpx.AsyncClient,
        ref: GitHubCompare,
        comparison: Comparison,
        prs: dict[int, dict[str, Any]],
    ) -> list[UserGuidance]:
        guidance: list[UserGuidance] = []
        seen: set[int] = set()
        for commit in comparison.commits:
            number = commit.pr_number
            if not number or number in seen or number not in prs:
                continue
            seen.add(number)
            guidance.extend(await self._pr_guidance(client, ref, prs[number]))
        return guidance

    async def _pr_guidance(
        self, client: httpx.AsyncClient, ref: GitHubCompare, pr: dict[str, Any]
    ) -> list[UserGuidance]:
        number = pr["number"]
        issue_comments, review_comments = await asyncio.gather(
            self._handle_pagination(client, f"{ref.api_path}/issues/{number}/comments"),
            self._handle_pagination(client, f"{ref.api_path}/pulls/{number}/comments"),
        )

        pr_author = (pr.get("user") or {}).get("login", "")
        reviews: list[dict[str, Any]] | None = None
        guidance: list[UserGuidance] = []

        for comment in [*issue_comments, *review_comments]:
            content = parse_user_guidance(comment.get("body"))
            author = (comment.get("user") or {}).get("login", "")
            comment_url = comment.get("html_url", "")
            if content is None or not author or not comment_url:
                continue

            authorized = author == pr_author
            if not authorized:
                if reviews is None:
                    reviews = await self._handle_pagination(
                        client, f"{ref.api_path}/pulls/{number}/reviews"
                    )
                authorized = is_approving_reviewer(reviews, author)

            logger.debug("user_guidance_found", pr=number, author=author, authorized=authorized)
            guidance.append(
                UserGuidance(
                    content=content,
                    author=author,
                    date=comment.get("created_at"),
                    comment_url=comment_url,
                    is_authorized=authorized,
                )
            )
        return guidance

    # -----------------------------------------------------------------------
    # Pagination
    # -----------------------------------------------------------------------

    async def _handle_pagination(
        self,
        client: httpx.AsyncClient,
        url: str,
    ) -> list[dict[str, Any]]:
        """Fetch every page of a list endpoint by following Link headers."""
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        params: dict[str, Any] | None = {"per_page": 100}

        while next_url:
            resp = await client.get(next_url, params=params)
            resp.raise_for_status()
            items.extend(resp.json())
            next_url = _parse_next_link(resp.headers.get("link", ""))
            params = None

        return items


def is_approving_reviewer(reviews: list[dict[str, Any]], username: str) -> bool:
    """Check whether a user's latest review approves the PR with authority.

    Only the most recent submitted review by the user counts, and only
    when they are an owner, member or collaborator of the repository.
    """
    latest: dict[str, Any] | None = None
    for review in reviews:
        login = (review.get("user") or {}).get("login")
        submitted = review.get("submitted_at")
        if login != username or not submitted:
            continue
        # ISO 8601 UTC timestamps sort lexicographically.
        if latest is None or submitted > latest["submitted_at"]:
            latest = review

    if latest is None or latest.get("state") != "APPROVED":
        return False
    return latest.get("author_association") in AUTHORIZED_ASSOCIATIONS


def _convert_file(raw: dict[str, Any]) -> FileChange:
    return FileChange(
        filename=raw.get("filename", ""),
        status=raw.get("status", "modified"),
        additions=raw.get("additions", 0),
        deletions=raw.get("deletions", 0),
        changes=raw.get("changes", 0),
        patch=raw.get("patch") or "",
        previous_filename=raw.get("previous_filename") or "",
    )


def _parse_next_link(link_header: str) -> str | None:
    """Extract the 'next' URL from a GitHub Link header."""
    if not link_header:
        return None
    for part in link_header.split(","):
        if 'rel="next"' in part:
            return part.split(";")[0].strip().strip("<>")
    return None


class _GitHubDocumentationSource:
    """Repository file access through the contents API."""

    def __init__(self, client: httpx.AsyncClient, ref: GitHubCompare) -> None:
        self._client = client
        self._ref = ref

    async def get_default_branch(self) -> str:
        resp = await self._client.get(self._ref.api_path)
        resp.raise_for_status()
        return resp.json().get("default_branch") or "main"

    async def fetch_file_content(self, path: str, ref: str) -> str:
        resp = await self._client.get(
            f"{self._ref.api_path}/contents/{path.lstrip('/')}",
            params={"ref": ref},
        )
        resp.raise_for_status()
        data = resp.json()
        if isinstance(data, list):
            raise ValueError(f"{path} is a directory")
        content = data.get("content") or ""
        if data.get("encoding") == "base64":
            return base64.b64decode(content).decode("utf-8")
        return content
