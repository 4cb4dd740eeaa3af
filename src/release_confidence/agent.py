"""Release confidence pipeline and CLI.

This module ties together all the components:
- Release data fetching (context/)
- Prompt rendering (prompts/assess_release.py, formatting.py)
- LLM interaction (llm.py)
- Progressive diff truncation (truncation.py, risk.py)
- Report rendering (report.py)

The pipeline follows this flow:
1. Fetch comparisons, guidance and documentation for the compare URLs
2. Render the prompt and ask the model for a structured analysis
3. If the prompt does not fit the context window, truncate the diff at the
   next level (low -> moderate -> high -> extreme) and retry
4. Render the markdown report with the score and recommendation

This is the main entry point whether called from the API or the CLI.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable, Sequence
from functools import partial

from pydantic import BaseModel

from release_confidence.config import Config
from release_confidence.context.base import GitProvider, build_providers, fetch_release_data
from release_confidence.errors import ContextWindowError, LLMError, TruncationExhaustedError
from release_confidence.formatting import (
    collect_qe_testing,
    format_comparisons,
    format_documentations,
)
from release_confidence.llm import BaseLLMClient, LLMConfig, create_llm_client
from release_confidence.logging_config import get_logger, setup_logging
from release_confidence.prompts.assess_release import build_system_prompt, render_user_prompt
from release_confidence.prompts.templates import DEFAULT_TEMPLATES, Templates
from release_confidence.report import ReportConfig, ReportMetadata, generate_report
from release_confidence.risk import RiskPatterns, load_risk_patterns
from release_confidence.schemas import (
    ESCALATION_ORDER,
    Comparison,
    Documentation,
    ReleaseBundle,
    TruncationMetadata,
    UserGuidance,
)
from release_confidence.truncation import truncate_documentation, truncate_multiple_comparisons

logger = get_logger(__name__)

AnalyzeFn = Callable[[str], Awaitable[str]]

EXIT_FAILURE = 1
EXIT_TRUNCATION_EXHAUSTED = 3


# ---------------------------------------------------------------------------
# Progressive truncation
# ---------------------------------------------------------------------------


def _render_prompt(
    comparisons: Sequence[Comparison | None],
    documentation: Sequence[Documentation | None],
    guidance: Sequence[UserGuidance],
    truncation: TruncationMetadata | None,
    templates: Templates,
) -> str:
    return render_user_prompt(
        diff=format_comparisons(comparisons),
        documentation=format_documentations(documentation),
        guidance=guidance,
        truncation=truncation,
        qe_testing=collect_qe_testing(comparisons),
        templates=templates,
    )


async def analyze_with_progressive_truncation(
    analyze: AnalyzeFn,
    comparisons: Sequence[Comparison | None],
    documentation: Sequence[Documentation | None],
    guidance: Sequence[UserGuidance],
    templates: Templates = DEFAULT_TEMPLATES,
    patterns: RiskPatterns | None = None,
) -> tuple[str, TruncationMetadata | None]:
    """Ask the model for an analysis, shrinking the diff until it fits.

    The first attempt uses the untouched data. Each ContextWindowError moves
    to the next truncation level; every level is tried at most once and
    always starts again from the untouched data.

    Args:
        analyze: Sends a rendered user prompt to the model
        comparisons: Comparisons to analyze (never modified)
        documentation: Documentation to analyze (never modified)
        guidance: All collected guidance
        templates: Template set to render prompts with
        patterns: Risk patterns used to classify files

    Returns:
        (response, None) if the first attempt succeeded, otherwise
        (response, metadata of the level that succeeded).

    Raises:
        TruncationExhaustedError: If even extreme truncation did not fit,
            chained from the last ContextWindowError.
        Exception: Any other error from analyze, unchanged.
    """
    prompt = _render_prompt(comparisons, documentation, guidance, None, templates)
    try:
        return await analyze(prompt), None
    except ContextWindowError as exc:
        last_error = exc
        logger.warning(
            "context_window_exceeded",
            message="Context window exceeded, retrying with progressive truncation",
            prompt_chars=len(prompt),
        )

    for level in ESCALATION_ORDER:
        truncated, metadata = truncate_multiple_comparisons(comparisons, level, patterns)
        docs = truncate_documentation(documentation, level)
        prompt = _render_prompt(truncated, docs, guidance, metadata, templates)

        logger.info(
            "truncation_retry",
            level=level.value,
            total_files=metadata.total_files,
            files_truncated=metadata.files_truncated,
            prompt_chars=len(prompt),
        )
        try:
            response = await analyze(prompt)
        except ContextWindowError as exc:
            last_error = exc
            logger.warning("truncation_level_insufficient", level=level.value)
            continue

        logger.info(
            "truncation_succeeded",
            level=level.value,
            files_preserved=metadata.files_preserved,
            files_truncated=metadata.files_truncated,
        )
        return response, metadata

    raise TruncationExhaustedError(last_error) from last_error


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class AssessmentResult(BaseModel):
    """Outcome of a release assessment."""

    score: int
    report: str
    truncation: TruncationMetadata | None = None


class ReleaseConfidenceAgent:
    """Orchestrates the release confidence pipeline.

    Usage:
        agent = ReleaseConfidenceAgent(Config.from_env())
        result = await agent.assess(["https://github.com/org/repo/compare/a...b"])
    """

    def __init__(
        self,
        config: Config,
        llm: BaseLLMClient | None = None,
        providers: Sequence[GitProvider] | None = None,
        templates: Templates = DEFAULT_TEMPLATES,
    ) -> None:
        """Initialize the agent with its dependencies.

        Args:
            config: Validated application configuration
            llm: LLM client. Built from config if None.
            providers: Git providers. Built from config if None.
            templates: Template set, shared by every assessment

        Raises:
            ValueError: If the configured risk patterns file is invalid.
        """
        self.config = config
        self.llm = llm or create_llm_client(LLMConfig.from_config(config))
        self.providers = list(providers) if providers is not None else build_providers(config)
        self.templates = templates
        self.patterns = load_risk_patterns(config.risk_patterns_file)
        self._system_prompt = build_system_prompt(templates, config.system_prompt_version)

    async def fetch(self, urls: Sequence[str]) -> ReleaseBundle:
        """Fetch release data for the compare URLs.

        Raises:
            ValueError: If no comparison could be fetched.
        """
        bundle = await fetch_release_data(urls, self.providers)
        if not bundle.comparisons:
            raise ValueError("no release data could be fetched for the given compare URLs")
        return bundle

    async def analyze(self, bundle: ReleaseBundle) -> tuple[str, TruncationMetadata | None]:
        return await analyze_with_progressive_truncation(
            partial(self.llm.analyze, self._system_prompt),
            bundle.comparisons,
            bundle.documentation,
            bundle.guidance,
            templates=self.templates,
            patterns=self.patterns,
        )

    async def assess(
        self, urls: Sequence[str], extra_guidance: Sequence[UserGuidance] = ()
    ) -> AssessmentResult:
        """Run a full assessment over a set of compare URLs.

        Args:
            urls: GitHub / GitLab compare URLs
            extra_guidance: Guidance supplied by the caller, merged with the
                            guidance found on PRs/MRs

        Returns:
            Score, markdown report and truncation metadata.

        Raises:
            ValueError: If no data could be fetched or the response is invalid
            TruncationExhaustedError: If the diff could not be made to fit
            LLMError: For any other model failure
        """
        logger.info("assessment_started", urls=len(urls))
        try:
            bundle = await self.fetch(urls)
            if extra_guidance:
                bundle.guidance = [*extra_guidance, *bundle.guidance]

            response, truncation = await self.analyze(bundle)
            score, report = generate_report(
                ReportConfig(
                    response=response,
                    metadata=ReportMetadata(model_id=self.config.model_id),
                    thresholds=self.config.score_thresholds,
                    comparisons=bundle.comparisons,
                    guidance=bundle.guidance,
                    documentation=bundle.documentation,
                    truncation=truncation,
                ),
                self.templates,
            )
        except Exception as e:
            logger.error("assessment_failed", error=str(e), exc_info=True)
            raise

        logger.info(
            "assessment_complete",
            score=score,
            truncated=truncation is not None,
            truncation_level=truncation.level.value if truncation else None,
        )
        return AssessmentResult(score=score, report=report, truncation=truncation)


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------


def parse_compare_links(value: str) -> list[str]:
    return [link.strip() for link in value.split(",") if link.strip()]


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Usage:
        rcs -c https://github.com/org/repo/compare/v1.0...v1.1
        rcs -c URL1,URL2 -o report.md --print-score
    """
    parser = argparse.ArgumentParser(
        prog="rcs",
        description="Release Confidence Score - AI-powered release risk assessment",
    )
    parser.add_argument(
        "--compare-links", "-c",
        type=parse_compare_links,
        required=True,
        help="Comma-separated GitHub/GitLab compare URLs",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write the report to this file instead of stdout",
    )
    parser.add_argument(
        "--print-score",
        action="store_true",
        help="Print only the score to stdout",
    )
    args = parser.parse_args(argv)

    if not args.compare_links:
        parser.error("at least one compare URL is required")

    try:
        config = Config.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(config.log_format, config.log_level)

    try:
        agent = ReleaseConfidenceAgent(config)
        result = asyncio.run(agent.assess(args.compare_links))
    except TruncationExhaustedError as e:
        print(f"Release too large to analyze: {e}", file=sys.stderr)
        return EXIT_TRUNCATION_EXHAUSTED
    except (ValueError, LLMError) as e:
        print(f"Analysis failed: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(result.report)
        logger.info("report_written", path=args.output)

    if args.print_score:
        print(result.score)
    elif not args.output:
        print(result.report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
