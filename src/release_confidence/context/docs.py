"""Release documentation fetching shared by the git providers.

A repository opts in by committing `.release-confidence-docs.md` to its
default branch. That file is sent to the model as-is. Its
`## Additional Documentation` section may link further documents, either as
markdown links or plain URLs:

    ## Additional Documentation
    - [Architecture](docs/architecture.md)
    - https://github.com/org/runbooks/blob/main/service.md

Relative paths are read from the same repository and ref; absolute URLs are
fetched directly (GitHub and GitLab `/blob/` URLs are rewritten to `/raw/`).
A document that fails to load is recorded in `failed_additional_docs` and
never fails the release analysis.
"""

from __future__ import annotations

import re
from typing import Protocol
from urllib.parse import urlparse

import httpx

from release_confidence.logging_config import get_logger
from release_confidence.schemas import Documentation, Repository

logger = get_logger(__name__)

MAIN_DOC_FILENAME = ".release-confidence-docs.md"
ADDITIONAL_DOCS_HEADER = "Additional Documentation"
EXTERNAL_FETCH_TIMEOUT = 30.0

_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_PLAIN_URL_RE = re.compile(r"https?://[^\s]+")
_SECTION_RE = re.compile(r"^##\s+", re.MULTILINE)
_ADDITIONAL_SECTION_RE = re.compile(
    r"^##\s+" + re.escape(ADDITIONAL_DOCS_HEADER) + r"[ \t]*$", re.MULTILINE
)


class DocumentationSource(Protocol):
    """Read access to files in one repository."""

    async def get_default_branch(self) -> str:
        ...

    async def fetch_file_content(self, path: str, ref: str) -> str:
        ...


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def extract_additional_docs_section(content: str) -> str:
    """Return the body of the `## Additional Documentation` section, or ""."""
    match = _ADDITIONAL_SECTION_RE.search(content)
    if match is None:
        return ""
    start = match.end()
    next_section = _SECTION_RE.search(content, start)
    end = next_section.start() if next_section else len(content)
    return content[start:end].strip()


def extract_additional_doc_paths(content: str) -> tuple[dict[str, str], list[str]]:
    """Find the documents linked from the additional documentation section.

    Markdown links come first, in file order, keyed by their link text.
    Plain URLs follow, keyed by the URL itself. A path already linked is
    not listed twice.

    Returns:
        (display name -> path, display names in order)
    """
    section = extract_additional_docs_section(content)
    if not section:
        return {}, []

    paths: dict[str, str] = {}
    order: list[str] = []
    seen: set[str] = set()

    for match in _MARKDOWN_LINK_RE.finditer(section):
        name, path = match.group(1).strip(), match.group(2).strip()
        if not name or not path:
            continue
        if name not in paths:
            order.append(name)
        paths[name] = path
        seen.add(path)

    # Link targets were handled above; only bare URLs remain.
    bare_text = _MARKDOWN_LINK_RE.sub(" ", section)
    for url in _PLAIN_URL_RE.findall(bare_text):
        if url in seen:
            continue
        paths[url] = url
        order.append(url)
        seen.add(url)

    return paths, order


def is_external_url(path: str) -> bool:
    return path.startswith(("http://", "https://"))


def to_raw_url(url: str) -> str:
    """Rewrite the first `/blob/` in a browser URL to `/raw/`."""
    return url.replace("/blob/", "/raw/", 1)


def is_gitlab_url(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return host in ("gitlab.com", "www.gitlab.com") or host.startswith("gitlab.")


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


class DocumentationFetcher:
    """Fetch the main and linked documentation of one repository.

    Usage:
        fetcher = DocumentationFetcher(source, Repository(owner="org", name="api"))
        docs = await fetcher.fetch_all()
    """

    def __init__(
        self,
        source: DocumentationSource,
        repository: Repository,
        *,
        gitlab_token: str = "",
        gitlab_skip_ssl_verify: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            source: Provider-specific access to repository files
            repository: Repository the documentation belongs to
            gitlab_token: Sent as PRIVATE-TOKEN when fetching GitLab URLs
            gitlab_skip_ssl_verify: Disable TLS verification for GitLab URLs
            transport: Optional httpx transport for external URLs (tests)
        """
        self._source = source
        self._repository = repository
        self._gitlab_token = gitlab_token
        self._gitlab_skip_ssl_verify = gitlab_skip_ssl_verify
        self._transport = transport

    async def fetch_all(self) -> Documentation:
        """Fetch the main document and everything it links to.

        Returns:
            Documentation for the repository. main_doc_content is empty
            when the repository has no documentation file.

        Raises:
            httpx.HTTPError: If the repository's default branch cannot be read.
        """
        default_branch = await self._source.get_default_branch()
        repository = self._repository.model_copy(update={"default_branch": default_branch})

        try:
            main_content = await self._source.fetch_file_content(
                MAIN_DOC_FILENAME, default_branch
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug(
                "documentation_not_found",
                repo=repository.url,
                error=str(exc),
            )
            return Documentation(repository=repository)

        paths, order = extract_additional_doc_paths(main_content)
        docs = Documentation(
            repository=repository,
            main_doc_file=MAIN_DOC_FILENAME,
            main_doc_content=main_content,
            additional_docs_order=order,
        )

        for name in order:
            path = paths[name]
            try:
                content = await self._fetch_additional(path, default_branch)
            except (httpx.HTTPError, ValueError) as exc:
                docs.failed_additional_docs[name] = str(exc) or type(exc).__name__
                logger.warning("additional_doc_fetch_failed", path=path, error=str(exc))
                continue
            docs.additional_docs[name] = content
            logger.debug("additional_doc_fetched", name=name, size=len(content))

        return docs

    async def _fetch_additional(self, path: str, ref: str) -> str:
        if is_external_url(path):
            return await self._fetch_external(to_raw_url(path))
        return await self._source.fetch_file_content(path, ref)

    async def _fetch_external(self, url: str) -> str:
        gitlab = is_gitlab_url(url)
        headers: dict[str, str] = {}
        if gitlab and self._gitlab_token:
            headers["PRIVATE-TOKEN"] = self._gitlab_token

        async with httpx.AsyncClient(
            headers=headers,
            timeout=EXTERNAL_FETCH_TIMEOUT,
            verify=not (gitlab and self._gitlab_skip_ssl_verify),
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            return resp.text
