"""Provider dispatch and release data aggregation.

Each git platform implements the GitProvider protocol. The release pipeline
hands over a list of compare URLs; every URL is routed to the first provider
that recognises it and the per-URL results are merged into one
ReleaseBundle.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Protocol

import httpx

from release_confidence.config import Config
from release_confidence.context.github import GitHubProvider
from release_confidence.context.gitlab import GitLabProvider
from release_confidence.logging_config import get_logger
from release_confidence.schemas import ReleaseBundle, ReleaseData

logger = get_logger(__name__)


class GitProvider(Protocol):
    """Interface every git platform implements.

    By coding against this protocol the pipeline and tests can use fake
    providers without touching a real API.
    """

    name: str

    def is_compare_url(self, url: str) -> bool:
        ...

    async def fetch_release_data(self, url: str) -> ReleaseData:
        ...


def build_providers(config: Config) -> list[GitProvider]:
    """Create a provider for every platform that has a token configured."""
    providers: list[GitProvider] = []
    if config.github_token:
        providers.append(
            GitHubProvider(
                token=config.github_token,
                gitlab_token=config.gitlab_token,
                gitlab_skip_ssl_verify=config.gitlab_skip_ssl_verify,
            )
        )
    if config.gitlab_token:
        providers.append(
            GitLabProvider(
                base_url=config.gitlab_base_url,
                token=config.gitlab_token,
                skip_ssl_verify=config.gitlab_skip_ssl_verify,
            )
        )
    return providers


def select_provider(url: str, providers: Sequence[GitProvider]) -> GitProvider | None:
    """Return the first provider that handles the URL, or None."""
    for provider in providers:
        if provider.is_compare_url(url):
            return provider
    return None


async def fetch_release_data(
    urls: Sequence[str], providers: Sequence[GitProvider]
) -> ReleaseBundle:
    """Fetch and merge release data for every compare URL.

    Duplicate URLs are fetched once. URLs no provider recognises are skipped
    with a warning, and a URL whose fetch fails is logged and skipped so one
    broken repository does not hide the rest of the release.

    Args:
        urls: Compare URLs, in the order they should appear in the report
        providers: Available providers

    Returns:
        The merged comparisons, guidance and documentation, in URL order.
    """
    unique_urls = list(dict.fromkeys(u.strip() for u in urls if u.strip()))

    jobs: list[tuple[str, GitProvider]] = []
    for url in unique_urls:
        provider = select_provider(url, providers)
        if provider is None:
            logger.warning("unsupported_compare_url", url=url)
            continue
        jobs.append((url, provider))

    results = await asyncio.gather(*(_fetch_one(url, provider) for url, provider in jobs))

    bundle = ReleaseBundle()
    for data in results:
        if data is None:
            continue
        bundle.comparisons.append(data.comparison)
        bundle.guidance.extend(data.guidance)
        if data.documentation is not None and data.documentation.main_doc_content:
            bundle.documentation.append(data.documentation)

    logger.info(
        "release_data_fetched",
        urls=len(unique_urls),
        comparisons=len(bundle.comparisons),
        guidance=len(bundle.guidance),
        documentation=len(bundle.documentation),
    )
    return bundle


async def _fetch_one(url: str, provider: GitProvider) -> ReleaseData | None:
    try:
        return await provider.fetch_release_data(url)
    except (httpx.HTTPError, ValueError) as exc:
        logger.error(
            "release_data_fetch_failed",
            url=url,
            provider=provider.name,
            error=str(exc),
        )
        return None
