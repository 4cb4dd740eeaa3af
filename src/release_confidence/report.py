"""Markdown report rendering.

Turns the model's JSON response into the final Release Confidence Report:
score and recommendation, truncation disclosure, technical analysis, action
items, reviewer guidance, per-repository changelogs and the documentation
that was analyzed.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

from pydantic import BaseModel, Field, ValidationError

from release_confidence.config import ScoreThresholds
from release_confidence.context.guidance import LABEL_NEEDS_QE_TESTING, LABEL_QE_TESTED
from release_confidence.prompts.templates import DEFAULT_TEMPLATES, Templates
from release_confidence.schemas import (
    ActionItems,
    Comparison,
    Documentation,
    StructuredAnalysis,
    TechnicalAnalysis,
    TruncationMetadata,
    UserGuidance,
)
from release_confidence.truncation import drops_additional_docs

RECOMMENDED = "✅ RECOMMENDED FOR RELEASE"
REVIEW_REQUIRED = "⚠️ MANUAL REVIEW REQUIRED"
NOT_RECOMMENDED = "🚫 RELEASE NOT RECOMMENDED"

_QE_STATUS = {
    LABEL_QE_TESTED: "✅ Tested",
    LABEL_NEEDS_QE_TESTING: "⚠️ Needs Testing",
}

_NONE = "None identified."


class ReportMetadata(BaseModel):
    """Facts about the run shown in the report footer."""

    model_id: str = ""
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ReportConfig(BaseModel):
    """Everything needed to render one report.

    Attributes:
        response: Raw model response containing the JSON analysis
        metadata: Model and generation time
        thresholds: Score boundaries for the recommendation
        comparisons: Untruncated comparisons, for the changelogs
        guidance: All collected guidance, authorized or not
        documentation: Documentation that was fetched
        truncation: Metadata of the truncation pass that succeeded, if any
    """

    response: str
    metadata: ReportMetadata = Field(default_factory=ReportMetadata)
    thresholds: ScoreThresholds = Field(default_factory=ScoreThresholds)
    comparisons: list[Comparison] = Field(default_factory=list)
    guidance: list[UserGuidance] = Field(default_factory=list)
    documentation: list[Documentation] = Field(default_factory=list)
    truncation: TruncationMetadata | None = None


def parse_structured_response(response: str) -> StructuredAnalysis:
    """Extract and validate the JSON analysis from a model response.

    Models sometimes wrap the object in prose or code fences, so everything
    from the first "{" to the last "}" is parsed.

    Raises:
        ValueError: If no JSON object is found or it does not validate.
    """
    start = response.find("{")
    end = response.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("no valid JSON found in model response")

    try:
        return StructuredAnalysis.model_validate_json(response[start : end + 1])
    except ValidationError as exc:
        raise ValueError(f"model response does not match the analysis schema: {exc}") from exc


def release_recommendation(score: int, thresholds: ScoreThresholds) -> str:
    if score >= thresholds.auto_deploy:
        return RECOMMENDED
    if score >= thresholds.review_required:
        return REVIEW_REQUIRED
    return NOT_RECOMMENDED


def generate_report(
    config: ReportConfig, templates: Templates = DEFAULT_TEMPLATES
) -> tuple[int, str]:
    """Render the markdown report for a model response.

    Args:
        config: Response and release data to render
        templates: Template set providing the report layout

    Returns:
        (score, markdown report)

    Raises:
        ValueError: If the response cannot be parsed.
    """
    analysis = parse_structured_response(config.response)
    markdown = templates.report.format(
        score=analysis.score,
        recommendation=release_recommendation(analysis.score, config.thresholds),
        truncation_section=_truncation_banner(config.truncation),
        system_impact_visual=analysis.system_impact_visual or _NONE,
        change_characteristics_visual=analysis.change_characteristics_visual or _NONE,
        action_items_section=_action_items(analysis.action_items),
        code_analysis_section=_technical(analysis.code_analysis),
        infrastructure_analysis_section=_technical(analysis.infrastructure_analysis),
        dependency_analysis_section=_technical(analysis.dependency_analysis),
        positive_factors=analysis.positive_factors or _NONE,
        risk_factors=analysis.risk_factors or _NONE,
        blocking_issues=analysis.blocking_issues or _NONE,
        documentation_quality=analysis.documentation_quality or _NONE,
        documentation_recommendations=analysis.documentation_recommendations or _NONE,
        guidance_section=_guidance(config.guidance),
        changelog_section=format_changelog(config.comparisons),
        documentation_sources_section=_documentation_sources(config.documentation, config.truncation),
        model_id=config.metadata.model_id or "unknown model",
        generated_at=config.metadata.generated_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip(),
    )
    return analysis.score, markdown


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _truncation_banner(truncation: TruncationMetadata | None) -> str:
    if truncation is None or not truncation.truncated:
        return ""
    lines = [
        "## ⚠️ Diff Truncation Applied",
        "",
        f"The diff was too large for the model's context window and was analyzed "
        f"at the **{truncation.level}** truncation level. Full patches were kept for "
        f"{truncation.files_preserved}/{truncation.total_files} files; "
        f"{truncation.files_truncated} were shortened.",
    ]
    if truncation.truncated_files_list:
        lines.append("")
        lines.append("<details><summary>Truncated files</summary>")
        lines.append("")
        lines.extend(f"- `{name}`" for name in truncation.truncated_files_list)
        lines.append("")
        lines.append("</details>")
    return "\n".join(lines) + "\n\n"


def _action_items(items: ActionItems) -> str:
    groups = [
        ("🔴 Critical", items.critical),
        ("🟡 Important", items.important),
        ("🔵 Follow-up", items.followup),
    ]
    parts = []
    for title, entries in groups:
        if entries:
            parts.append(f"### {title}\n" + "\n".join(f"- {e}" for e in entries))
    return "\n\n".join(parts) if parts else "No action items."


def _technical(analysis: TechnicalAnalysis) -> str:
    parts = [analysis.summary or _NONE]
    if analysis.key_findings:
        parts.append("**Key Findings:**\n" + "\n".join(f"- {f}" for f in analysis.key_findings))
    if analysis.risk_factors:
        parts.append("**Risk Factors:**\n" + "\n".join(f"- {r}" for r in analysis.risk_factors))
    return "\n\n".join(parts)


def _guidance(guidance: Sequence[UserGuidance]) -> str:
    if not guidance:
        return ""
    floor = datetime.min.replace(tzinfo=timezone.utc)
    ordered = sorted(guidance, key=lambda g: _as_aware(g.date) or floor)

    lines = ["## User Guidance", ""]
    for item in ordered:
        mark = "✅ Authorized" if item.is_authorized else "❌ Unauthorized"
        when = f" on {item.date:%Y-%m-%d %H:%M}" if item.date else ""
        source = f" ([comment]({item.comment_url}))" if item.comment_url else ""
        lines.append(f"- {mark}: **{item.author or 'unknown'}**{when}{source}")
        lines.extend(f"  > {line}" for line in item.content.splitlines())
    return "\n".join(lines) + "\n\n"


def _as_aware(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def format_changelog(comparisons: Sequence[Comparison]) -> str:
    """Render one commit table per repository."""
    if not comparisons:
        return "No repository changelog data available."

    blocks = []
    for comparison in comparisons:
        repo_url = comparison.repo_url
        header = f"### [{repo_url}]({comparison.diff_url or repo_url})"
        if not comparison.commits:
            blocks.append(f"{header}\n*No commits found in this comparison.*")
            continue

        is_gitlab = "/-/compare/" in comparison.diff_url
        commit_path = "-/commit" if is_gitlab else "commit"
        pr_path = "-/merge_requests" if is_gitlab else "pull"
        rows = [
            header,
            f"*Total commits: {len(comparison.commits)}*",
            "",
            "| SHA | Message | Author | PR | QE Status |",
            "|-----|---------|--------|----|-----------|",
        ]
        for commit in comparison.commits:
            sha_link = f"[{commit.short_sha or commit.sha[:8]}]({repo_url}/{commit_path}/{commit.sha})"
            message = commit.message.replace("|", "\\|")
            author = commit.author.replace("|", "\\|")
            if commit.pr_number > 0:
                pr = f"[#{commit.pr_number}]({repo_url}/{pr_path}/{commit.pr_number})"
            else:
                pr = "N/A"
            qe = _QE_STATUS.get(commit.qe_testing_label, "N/A")
            rows.append(f"| {sha_link} | {message} | {author} | {pr} | {qe} |")
        blocks.append("\n".join(rows))
    return "\n\n".join(blocks)


def _documentation_sources(
    docs: Sequence[Documentation], truncation: TruncationMetadata | None
) -> str:
    with_content = [d for d in docs if d.main_doc_content]
    if not with_content:
        return ""

    # Linked docs fetched but left out of the prompt by the winning level.
    not_sent = ""
    if truncation is not None and drops_additional_docs(truncation.level):
        not_sent = f", not sent: removed at {truncation.level} truncation"

    lines = ["## Documentation Sources Analyzed", ""]
    for doc in with_content:
        lines.append(f"### {doc.repository.full_name}")
        lines.append(f"- `{doc.main_doc_file}` ({len(doc.main_doc_content)} chars)")
        for name in doc.additional_docs_order:
            if name in doc.additional_docs:
                lines.append(f"- {name} ({len(doc.additional_docs[name])} chars{not_sent})")
            elif name in doc.failed_additional_docs:
                lines.append(f"- ❌ {name}: {doc.failed_additional_docs[name]}")
        lines.append("")
    return "\n".join(lines) + "\n"
