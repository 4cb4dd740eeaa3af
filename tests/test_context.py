"""Tests for release data fetching.

These tests verify:
- Compare URL parsing for GitHub and GitLab
- `/rcs` guidance and QE label parsing
- Linked documentation discovery
- Provider dispatch and merging across compare URLs
- The GitHub and GitLab providers end to end, against httpx.MockTransport

No test touches the network.

Run with: pytest tests/test_context.py -v
"""

from __future__ import annotations

import base64
from typing import Any

import httpx
import pytest

from release_confidence.config import Config
from release_confidence.context.base import build_providers, fetch_release_data, select_provider
from release_confidence.context.docs import (
    MAIN_DOC_FILENAME,
    extract_additional_doc_paths,
    extract_additional_docs_section,
    is_external_url,
    is_gitlab_url,
    to_raw_url,
)
from release_confidence.context.github import (
    GitHubProvider,
    _parse_next_link,
    is_approving_reviewer,
)
from release_confidence.context.github import parse_compare_url as parse_github_url
from release_confidence.context.gitlab import GitLabProvider, parse_patch_stats
from release_confidence.context.gitlab import parse_compare_url as parse_gitlab_url
from release_confidence.context.guidance import (
    LABEL_NEEDS_QE_TESTING,
    LABEL_QE_TESTED,
    extract_qe_label,
    parse_user_guidance,
)
from release_confidence.schemas import Comparison, Documentation, ReleaseData, UserGuidance

GITHUB_URL = "https://github.com/myorg/api/compare/v1.0...v1.1"
GITLAB_URL = "https://gitlab.example.com/team/backend/svc/-/compare/v1.0...v1.1"

Route = Any


def mock_transport(routes: dict[str, Route], seen: list[httpx.Request] | None = None) -> httpx.MockTransport:
    """Serve canned responses keyed by "host/raw/path" (query excluded).

    A route may be JSON data, an httpx.Response, or a callable taking the
    request. Unknown routes get a 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        path = request.url.raw_path.decode().split("?", 1)[0]
        route = routes.get(f"{request.url.host}{path}")
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(route):
            return route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


def b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


# ---------------------------------------------------------------------------
# URL parsing
# ---------------------------------------------------------------------------


class TestCompareUrls:
    def test_github(self) -> None:
        ref = parse_github_url(GITHUB_URL)
        assert (ref.owner, ref.repo, ref.base, ref.head) == ("myorg", "api", "v1.0", "v1.1")
        assert ref.repo_url == "https://github.com/myorg/api"
        assert ref.api_path == "/repos/myorg/api"

    def test_github_sha_range(self) -> None:
        ref = parse_github_url("https://github.com/myorg/api/compare/abc123...def456")
        assert (ref.base, ref.head) == ("abc123", "def456")

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/myorg/api/pull/1",
            "https://github.com/myorg/api/compare/v1.0",
            "https://gitlab.com/myorg/api/-/compare/v1...v2",
        ],
    )
    def test_github_invalid(self, url: str) -> None:
        with pytest.raises(ValueError, match="invalid GitHub compare URL"):
            parse_github_url(url)

    def test_gitlab_nested_groups(self) -> None:
        ref = parse_gitlab_url(GITLAB_URL)
        assert ref.host == "gitlab.example.com"
        assert ref.project_path == "team/backend/svc"
        assert ref.owner == "team/backend"
        assert ref.name == "svc"
        assert ref.api_path == "/projects/team%2Fbackend%2Fsvc"
        assert ref.repo_url == "https://gitlab.example.com/team/backend/svc"

    def test_gitlab_invalid(self) -> None:
        with pytest.raises(ValueError, match="invalid GitLab compare URL"):
            parse_gitlab_url("https://gitlab.example.com/team/svc/compare/v1...v2")

    def test_patch_stats_skip_file_headers(self) -> None:
        patch = "--- a/x.py\n+++ b/x.py\n@@ -1,2 +1,2 @@\n-old\n+new\n+more\n context"
        assert parse_patch_stats(patch) == (2, 1)

    def test_next_link(self) -> None:
        header = (
            '<https://api.github.com/repos/o/r/pulls/1/comments?page=2>; rel="next", '
            '<https://api.github.com/repos/o/r/pulls/1/comments?page=5>; rel="last"'
        )
        assert _parse_next_link(header) == "https://api.github.com/repos/o/r/pulls/1/comments?page=2"
        assert _parse_next_link("") is None
        assert _parse_next_link('<https://x?page=1>; rel="prev"') is None


# ---------------------------------------------------------------------------
# Guidance and labels
# ---------------------------------------------------------------------------


class TestGuidanceParsing:
    @pytest.mark.parametrize(
        ("body", "expected"),
        [
            ("/rcs Focus on the auth changes", "Focus on the auth changes"),
            ("  /RCS   trailing space   ", "trailing space"),
            ("/rcs first line\nsecond line\n", "first line\nsecond line"),
            ("/rcs x", "x"),
            ("Please /rcs look at this", None),
            ("/rcs", None),
            ("/rcsfoo bar", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_user_guidance(self, body: str | None, expected: str | None) -> None:
        assert parse_user_guidance(body) == expected

    def test_qe_labels(self) -> None:
        assert extract_qe_label(["bug", "RCS/QE-Tested"]) == LABEL_QE_TESTED
        assert extract_qe_label(["rcs/needs-qe-testing"]) == LABEL_NEEDS_QE_TESTING
        assert extract_qe_label(["rcs/needs-qe-testing", "rcs/qe-tested"]) == LABEL_QE_TESTED
        assert extract_qe_label([]) == ""

    def test_latest_review_decides_approval(self) -> None:
        reviews = [
            {"user": {"login": "bob"}, "state": "APPROVED", "submitted_at": "2026-01-01T10:00:00Z", "author_association": "MEMBER"},
            {"user": {"login": "bob"}, "state": "CHANGES_REQUESTED", "submitted_at": "2026-01-02T10:00:00Z", "author_association": "MEMBER"},
            {"user": {"login": "carol"}, "state": "APPROVED", "submitted_at": "2026-01-01T10:00:00Z", "author_association": "COLLABORATOR"},
            {"user": {"login": "eve"}, "state": "APPROVED", "submitted_at": "2026-01-01T10:00:00Z", "author_association": "CONTRIBUTOR"},
        ]
        assert not is_approving_reviewer(reviews, "bob")
        assert is_approving_reviewer(reviews, "carol")
        assert not is_approving_reviewer(reviews, "eve")
        assert not is_approving_reviewer(reviews, "nobody")


# ---------------------------------------------------------------------------
# Documentation discovery
# ---------------------------------------------------------------------------


MAIN_DOC = """# Release Notes

Intro text with a link that is not a doc: [site](https://example.com).

## Additional Documentation
- [Architecture](docs/architecture.md)
- https://github.com/myorg/runbooks/blob/main/svc.md
- [Same Runbook](https://github.com/myorg/runbooks/blob/main/svc.md)
- [Missing](docs/missing.md)

## Contacts
- [On-call](docs/oncall.md)
"""


class TestDocumentationDiscovery:
    def test_section_extraction(self) -> None:
        section = extract_additional_docs_section(MAIN_DOC)
        assert section.startswith("- [Architecture]")
        assert "On-call" not in section

    def test_paths_in_order(self) -> None:
        paths, order = extract_additional_doc_paths(MAIN_DOC)

        assert order == ["Architecture", "Same Runbook", "Missing"]
        assert paths == {
            "Architecture": "docs/architecture.md",
            "Same Runbook": "https://github.com/myorg/runbooks/blob/main/svc.md",
            "Missing": "docs/missing.md",
        }

    def test_plain_urls_follow_links(self) -> None:
        content = "## Additional Documentation\n- https://wiki.example.com/a\n- [B](b.md)\n"
        paths, order = extract_additional_doc_paths(content)
        assert order == ["B", "https://wiki.example.com/a"]
        assert paths["https://wiki.example.com/a"] == "https://wiki.example.com/a"

    def test_no_section(self) -> None:
        assert extract_additional_doc_paths("# Notes\n\n[A](a.md)") == ({}, [])

    def test_url_helpers(self) -> None:
        assert is_external_url("https://x.com/a.md")
        assert not is_external_url("docs/a.md")
        assert to_raw_url("https://github.com/o/r/blob/main/docs/blob/a.md") == (
            "https://github.com/o/r/raw/main/docs/blob/a.md"
        )
        assert is_gitlab_url("https://gitlab.com/o/r/-/blob/main/a.md")
        assert is_gitlab_url("https://gitlab.example.com/o/r")
        assert not is_gitlab_url("https://github.com/o/r")


# ---------------------------------------------------------------------------
# Provider dispatch
# ---------------------------------------------------------------------------


class FakeProvider:
    """Provider returning canned data, or raising for chosen URLs."""

    def __init__(self, name: str, prefix: str, failures: dict[str, Exception] | None = None):
        self.name = name
        self.prefix = prefix
        self.failures = failures or {}
        self.calls: list[str] = []

    def is_compare_url(self, url: str) -> bool:
        return url.startswith(self.prefix)

    async def fetch_release_data(self, url: str) -> ReleaseData:
        self.calls.append(url)
        if url in self.failures:
            raise self.failures[url]
        return ReleaseData(
            comparison=Comparison(repo_url=url.rsplit("/compare/", 1)[0], diff_url=url),
            guidance=[UserGuidance(content=f"from {url}", is_authorized=True)],
            documentation=Documentation(main_doc_content="# Docs" if "docs" in url else ""),
        )


class TestProviderDispatch:
    """Tests for provider selection and bundle merging."""

    def test_select_provider(self) -> None:
        github = FakeProvider("GitHub", "https://github.com/")
        gitlab = FakeProvider("GitLab", "https://gitlab.")
        assert select_provider(GITLAB_URL, [github, gitlab]) is gitlab
        assert select_provider("https://bitbucket.org/x", [github, gitlab]) is None

    def test_build_providers(self) -> None:
        config = Config(
            github_token="ghp",
            gitlab_token="glpat",
            gitlab_base_url="https://gitlab.example.com",
        )
        assert [p.name for p in build_providers(config)] == ["GitHub", "GitLab"]
        assert [p.name for p in build_providers(Config(github_token="ghp"))] == ["GitHub"]

    def test_github_provider_gets_gitlab_settings(self) -> None:
        config = Config(
            github_token="ghp",
            gitlab_token="glpat",
            gitlab_base_url="https://gitlab.example.com",
            gitlab_skip_ssl_verify=True,
        )
        github = build_providers(config)[0]
        assert github._gitlab_token == "glpat"
        assert github._gitlab_skip_ssl_verify is True

    def test_real_providers_recognise_their_urls(self) -> None:
        providers = [GitHubProvider("t"), GitLabProvider("https://gitlab.example.com", "t")]
        assert select_provider(GITHUB_URL, providers).name == "GitHub"
        assert select_provider(GITLAB_URL, providers).name == "GitLab"

    @pytest.mark.asyncio
    async def test_merges_in_url_order(self) -> None:
        provider = FakeProvider("GitHub", "https://github.com/")
        urls = [
            "https://github.com/o/docs/compare/a...b",
            " https://github.com/o/api/compare/a...b ",
            "https://github.com/o/docs/compare/a...b",
        ]

        bundle = await fetch_release_data(urls, [provider])

        assert provider.calls == [
            "https://github.com/o/docs/compare/a...b",
            "https://github.com/o/api/compare/a...b",
        ]
        assert [c.repo_url for c in bundle.comparisons] == [
            "https://github.com/o/docs",
            "https://github.com/o/api",
        ]
        assert [g.content for g in bundle.guidance] == [
            "from https://github.com/o/docs/compare/a...b",
            "from https://github.com/o/api/compare/a...b",
        ]
        assert len(bundle.documentation) == 1

    @pytest.mark.asyncio
    async def test_unsupported_and_failing_urls_are_skipped(self, captured_logs: list[dict]) -> None:
        failing = "https://github.com/o/broken/compare/a...b"
        provider = FakeProvider(
            "GitHub",
            "https://github.com/",
            failures={failing: httpx.ConnectError("connection refused")},
        )

        bundle = await fetch_release_data(
            ["https://bitbucket.org/o/r", failing, "https://github.com/o/api/compare/a...b"],
            [provider],
        )

        assert [c.repo_url for c in bundle.comparisons] == ["https://github.com/o/api"]
        events = [e["event"] for e in captured_logs]
        assert "unsupported_compare_url" in events
        assert "release_data_fetch_failed" in events

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self) -> None:
        url = "https://github.com/o/api/compare/a...b"
        provider = FakeProvider("GitHub", "https://github.com/", failures={url: RuntimeError("bug")})
        with pytest.raises(RuntimeError):
            await fetch_release_data([url], [provider])


# ---------------------------------------------------------------------------
# GitHub provider
# ---------------------------------------------------------------------------

SHA1 = "1" * 40
SHA2 = "2" * 40
GH = "api.github.com/repos/myorg/api"


def compare_pages(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("page") == "2":
        return httpx.Response(200, json={"commits": [{"sha": SHA2, "commit": {"message": ""}}], "files": []})
    return httpx.Response(
        200,
        json={
            "commits": [
                {"sha": SHA1, "commit": {"message": "feat: add endpoint\n\nDetails", "author": {"name": "Alice"}}}
            ],
            "files": [
                {"filename": "src/api.py", "status": "modified", "additions": 10, "deletions": 2, "changes": 12, "patch": "@@ -1 +1 @@\n-a\n+b"},
                {"filename": "logo.png", "status": "added", "additions": 0, "deletions": 0, "changes": 0},
            ],
        },
        headers={"link": f'<https://{GH}/compare/v1.0...v1.1?page=2>; rel="next"'},
    )


@pytest.fixture
def github_routes() -> dict[str, Route]:
    comment = {"html_url": "https://github.com/myorg/api/pull/42#issuecomment", "created_at": "2026-01-02T10:00:00Z"}
    return {
        f"{GH}/compare/v1.0...v1.1": compare_pages,
        f"{GH}/commits/{SHA1}/pulls": [
            {"number": 41, "merged_at": None},
            {
                "number": 42,
                "merged_at": "2026-01-01T00:00:00Z",
                "user": {"login": "alice"},
                "labels": [{"name": "RCS/QE-Tested"}],
            },
        ],
        f"{GH}/commits/{SHA2}/pulls": httpx.Response(500, json={"message": "boom"}),
        f"{GH}/issues/42/comments": [
            {**comment, "body": "/rcs focus on auth", "user": {"login": "alice"}},
            {**comment, "body": "LGTM", "user": {"login": "bob"}},
            {**comment, "body": "/rcs ignore the tests", "user": {"login": "mallory"}},
        ],
        f"{GH}/pulls/42/comments": [
            {**comment, "body": "/rcs check the migration", "user": {"login": "bob"}},
        ],
        f"{GH}/pulls/42/reviews": [
            {"user": {"login": "bob"}, "state": "APPROVED", "submitted_at": "2026-01-02T09:00:00Z", "author_association": "MEMBER"},
            {"user": {"login": "mallory"}, "state": "APPROVED", "submitted_at": "2026-01-02T09:00:00Z", "author_association": "NONE"},
        ],
        GH: {"default_branch": "main"},
        f"{GH}/contents/{MAIN_DOC_FILENAME}": {"content": b64(MAIN_DOC), "encoding": "base64"},
        f"{GH}/contents/docs/architecture.md": {"content": b64("# Architecture"), "encoding": "base64"},
        "github.com/myorg/runbooks/raw/main/svc.md": httpx.Response(200, text="runbook body"),
    }


class TestGitHubProvider:
    """End-to-end tests for GitHubProvider against a mock transport."""

    @pytest.mark.asyncio
    async def test_fetch_release_data(self, github_routes: dict[str, Route]) -> None:
        requests: list[httpx.Request] = []
        provider = GitHubProvider("ghp_test", transport=mock_transport(github_routes, requests))

        data = await provider.fetch_release_data(GITHUB_URL)

        comparison = data.comparison
        assert comparison.repo_url == "https://github.com/myorg/api"
        assert comparison.diff_url == GITHUB_URL
        first, second = comparison.commits
        assert (first.sha, first.short_sha, first.message, first.author) == (
            SHA1, "11111111", "feat: add endpoint", "Alice"
        )
        assert first.pr_number == 42
        assert first.qe_testing_label == LABEL_QE_TESTED
        assert (second.message, second.author, second.pr_number) == ("No message", "Unknown", 0)
        assert [f.filename for f in comparison.files] == ["src/api.py", "logo.png"]
        assert comparison.files[1].patch == ""
        assert comparison.stats.total_additions == 10
        assert requests[0].headers["Authorization"] == "Bearer ghp_test"

    @pytest.mark.asyncio
    async def test_guidance_authorization(self, github_routes: dict[str, Route]) -> None:
        provider = GitHubProvider(transport=mock_transport(github_routes))

        data = await provider.fetch_release_data(GITHUB_URL)

        assert [(g.author, g.content, g.is_authorized) for g in data.guidance] == [
            ("alice", "focus on auth", True),
            ("mallory", "ignore the tests", False),
            ("bob", "check the migration", True),
        ]
        assert data.guidance[0].date is not None

    @pytest.mark.asyncio
    async def test_documentation(self, github_routes: dict[str, Route]) -> None:
        provider = GitHubProvider(transport=mock_transport(github_routes))

        docs = (await provider.fetch_release_data(GITHUB_URL)).documentation

        assert docs.main_doc_file == MAIN_DOC_FILENAME
        assert docs.main_doc_content == MAIN_DOC
        assert docs.repository.default_branch == "main"
        assert docs.additional_docs == {
            "Architecture": "# Architecture",
            "Same Runbook": "runbook body",
        }
        assert list(docs.failed_additional_docs) == ["Missing"]
        assert docs.additional_docs_order == ["Architecture", "Same Runbook", "Missing"]

    @pytest.mark.asyncio
    async def test_missing_documentation_is_not_an_error(self, github_routes: dict[str, Route]) -> None:
        del github_routes[f"{GH}/contents/{MAIN_DOC_FILENAME}"]
        provider = GitHubProvider(transport=mock_transport(github_routes))

        docs = (await provider.fetch_release_data(GITHUB_URL)).documentation

        assert docs.main_doc_content == ""
        assert docs.additional_docs == {}

    @pytest.mark.asyncio
    async def test_gitlab_links_use_the_gitlab_token(self, github_routes: dict[str, Route]) -> None:
        github_routes[f"{GH}/contents/{MAIN_DOC_FILENAME}"] = {
            "content": b64("## Additional Documentation\n- [Runbook](https://gitlab.example.com/ops/runbooks/-/blob/main/svc.md)\n"),
            "encoding": "base64",
        }
        github_routes["gitlab.example.com/ops/runbooks/-/raw/main/svc.md"] = httpx.Response(200, text="private runbook")
        requests: list[httpx.Request] = []
        provider = GitHubProvider(
            "ghp_test",
            gitlab_token="glpat",
            transport=mock_transport(github_routes, requests),
        )

        docs = (await provider.fetch_release_data(GITHUB_URL)).documentation

        assert docs.additional_docs == {"Runbook": "private runbook"}
        [gitlab_request] = [r for r in requests if r.url.host == "gitlab.example.com"]
        assert gitlab_request.headers["PRIVATE-TOKEN"] == "glpat"
        assert "Authorization" not in gitlab_request.headers

    @pytest.mark.asyncio
    async def test_compare_failure_propagates(self, github_routes: dict[str, Route]) -> None:
        github_routes[f"{GH}/compare/v1.0...v1.1"] = httpx.Response(404, json={"message": "Not Found"})
        provider = GitHubProvider(transport=mock_transport(github_routes))

        with pytest.raises(httpx.HTTPStatusError):
            await provider.fetch_release_data(GITHUB_URL)


# ---------------------------------------------------------------------------
# GitLab provider
# ---------------------------------------------------------------------------

GL = "gitlab.example.com/api/v4/projects/team%2Fbackend%2Fsvc"
GL_SHA = "a" * 40


def notes_pages(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("page") == "2":
        return httpx.Response(
            200,
            json=[
                {"id": 101, "body": "/rcs ship it", "author": {"username": "eve"}, "created_at": "2026-01-03T01:00:00Z"},
                {"id": 102, "body": "/rcs verify db rollback", "author": {"username": "lead"}, "created_at": "2026-01-03T02:00:00Z"},
            ],
        )
    return httpx.Response(
        200,
        json=[
            {"id": 99, "body": "/rcs added 1 commit", "system": True, "author": {"username": "ops"}, "created_at": "2026-01-03T00:00:00Z"},
            {"id": 100, "body": "/rcs watch the retries", "author": {"username": "ops"}, "created_at": "2026-01-03T00:30:00Z"},
        ],
        headers={"x-next-page": "2"},
    )


@pytest.fixture
def gitlab_routes() -> dict[str, Route]:
    return {
        f"{GL}/repository/compare": {
            "commits": [
                {
                    "id": GL_SHA,
                    "short_id": "aaaaaaa",
                    "title": "fix: retry",
                    "message": "fix: retry\n\nMore context",
                    "author_name": "Ops",
                }
            ],
            "diffs": [
                {
                    "new_path": "src/new.py",
                    "old_path": "src/old.py",
                    "renamed_file": True,
                    "diff": "--- a/src/old.py\n+++ b/src/new.py\n@@ -1 +1,2 @@\n-old\n+new\n+extra",
                },
                {"new_path": "README.md", "old_path": "README.md", "new_file": True, "diff": "+# Svc"},
            ],
        },
        f"{GL}/repository/commits/{GL_SHA}/merge_requests": [
            {"iid": 3, "state": "opened"},
            {"iid": 7, "state": "merged", "labels": ["rcs/needs-qe-testing"], "author": {"username": "ops"}},
        ],
        f"{GL}/merge_requests/7/notes": notes_pages,
        f"{GL}/merge_requests/7/approvals": {"approved_by": [{"user": {"username": "lead"}}]},
        GL: {"default_branch": "develop"},
    }


class TestGitLabProvider:
    """End-to-end tests for GitLabProvider against a mock transport."""

    @pytest.mark.asyncio
    async def test_fetch_release_data(self, gitlab_routes: dict[str, Route]) -> None:
        requests: list[httpx.Request] = []
        provider = GitLabProvider(
            "https://gitlab.example.com/", "glpat", transport=mock_transport(gitlab_routes, requests)
        )

        data = await provider.fetch_release_data(GITLAB_URL)

        comparison = data.comparison
        assert comparison.repo_url == "https://gitlab.example.com/team/backend/svc"
        [commit] = comparison.commits
        assert (commit.short_sha, commit.message, commit.author) == ("aaaaaaa", "fix: retry", "Ops")
        assert commit.pr_number == 7
        assert commit.qe_testing_label == LABEL_NEEDS_QE_TESTING

        renamed, added = comparison.files
        assert (renamed.status, renamed.previous_filename) == ("renamed", "src/old.py")
        assert (renamed.additions, renamed.deletions, renamed.changes) == (2, 1, 3)
        assert (added.status, added.previous_filename, added.additions) == ("added", "", 1)

        compare_request = next(r for r in requests if r.url.path.endswith("/repository/compare"))
        assert compare_request.url.params["straight"] == "false"
        assert compare_request.headers["PRIVATE-TOKEN"] == "glpat"

    @pytest.mark.asyncio
    async def test_guidance_authorization(self, gitlab_routes: dict[str, Route]) -> None:
        provider = GitLabProvider("https://gitlab.example.com", transport=mock_transport(gitlab_routes))

        data = await provider.fetch_release_data(GITLAB_URL)

        assert [(g.author, g.content, g.is_authorized) for g in data.guidance] == [
            ("ops", "watch the retries", True),
            ("eve", "ship it", False),
            ("lead", "verify db rollback", True),
        ]
        assert data.guidance[0].comment_url == (
            "https://gitlab.example.com/team/backend/svc/-/merge_requests/7#note_100"
        )

    @pytest.mark.asyncio
    async def test_missing_documentation(self, gitlab_routes: dict[str, Route]) -> None:
        provider = GitLabProvider("https://gitlab.example.com", transport=mock_transport(gitlab_routes))

        docs = (await provider.fetch_release_data(GITLAB_URL)).documentation

        assert docs.main_doc_content == ""
        assert docs.repository.default_branch == "develop"
        assert docs.repository.full_name == "team/backend/svc"

    @pytest.mark.asyncio
    async def test_documentation_from_repository_files(self, gitlab_routes: dict[str, Route]) -> None:
        gitlab_routes[f"{GL}/repository/files/{MAIN_DOC_FILENAME}"] = {
            "content": b64("# Svc release notes"),
            "encoding": "base64",
        }
        provider = GitLabProvider("https://gitlab.example.com", transport=mock_transport(gitlab_routes))

        docs = (await provider.fetch_release_data(GITLAB_URL)).documentation

        assert docs.main_doc_content == "# Svc release notes"
        assert docs.additional_docs_order == []

    @pytest.mark.asyncio
    async def test_mr_lookup_failure_keeps_commit(self, gitlab_routes: dict[str, Route]) -> None:
        gitlab_routes[f"{GL}/repository/commits/{GL_SHA}/merge_requests"] = httpx.Response(503)
        provider = GitLabProvider("https://gitlab.example.com", transport=mock_transport(gitlab_routes))

        data = await provider.fetch_release_data(GITLAB_URL)

        [commit] = data.comparison.commits
        assert commit.pr_number == 0
        assert data.guidance == []
