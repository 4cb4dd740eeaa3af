"""Prompt rendering for the release confidence analysis.

The system prompt carries the instructions and the StructuredAnalysis JSON
schema. The user prompt carries the release data:
1. A truncation notice, when the diff had to be shortened
2. The formatted comparisons
3. Release documentation, when any repository has it
4. Guidance from authorized reviewers only
5. QE testing status, when commits carry QE labels

Optional sections render as empty strings so the template never shows an
empty heading.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from release_confidence.formatting import QETestingCommits
from release_confidence.logging_config import get_logger
from release_confidence.prompts.templates import (
    DEFAULT_SYSTEM_PROMPT_VERSION,
    DEFAULT_TEMPLATES,
    SYSTEM_PROMPT_VERSIONS,
    Templates,
)
from release_confidence.schemas import StructuredAnalysis, TruncationMetadata, UserGuidance
from release_confidence.truncation import OMISSION_MARKER

logger = get_logger(__name__)


def build_system_prompt(
    templates: Templates = DEFAULT_TEMPLATES,
    version: str = DEFAULT_SYSTEM_PROMPT_VERSION,
) -> str:
    """Build the system prompt with the output schema injected.

    Unknown versions fall back to v1 with a warning.
    """
    template = templates.system_prompt_for(version)
    if template is None:
        logger.warning(
            "unknown_system_prompt_version",
            version=version,
            supported_versions=list(SYSTEM_PROMPT_VERSIONS),
        )
        template = templates.system_prompt
    schema = StructuredAnalysis.model_json_schema()
    return template.format(schema=json.dumps(schema, indent=2))


def extract_authorized_guidance(guidance: Sequence[UserGuidance]) -> list[str]:
    """Return the content of authorized guidance, in order."""
    return [g.content for g in guidance if g.is_authorized]


def render_user_prompt(
    diff: str,
    documentation: str,
    guidance: Sequence[UserGuidance],
    truncation: TruncationMetadata | None = None,
    qe_testing: QETestingCommits | None = None,
    templates: Templates = DEFAULT_TEMPLATES,
) -> str:
    """Render the user prompt from formatted release data.

    Args:
        diff: Output of format_comparisons()
        documentation: Output of format_documentations() ("" if none)
        guidance: All collected guidance; unauthorized entries are dropped
        truncation: Metadata of the truncation pass, if any. Nothing about
                    truncation is rendered unless it says truncated.
        qe_testing: Output of collect_qe_testing()
        templates: Template set to render with

    Returns:
        The complete user prompt.
    """
    return templates.user_prompt.format(
        truncation_section=_truncation_section(truncation),
        diff=diff,
        documentation_section=_documentation_section(documentation),
        guidance_section=_guidance_section(extract_authorized_guidance(guidance)),
        qe_section=_qe_section(qe_testing),
    )


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def _truncation_section(truncation: TruncationMetadata | None) -> str:
    if truncation is None or not truncation.truncated:
        return ""

    marker = OMISSION_MARKER.format(count="N")
    lines = [
        "## Analysis Limitations",
        "",
        f"**Truncation Applied**: the diff was too large for the context window "
        f"and was shortened at the **{truncation.level}** truncation level.",
        "",
        f"- Full patches kept: {truncation.files_preserved}/{truncation.total_files} files",
        f"- Patches shortened: {truncation.files_truncated} files",
        f"- Shortened patches keep their first and last lines; the middle is "
        f"replaced by a `{marker}` line stating how many lines were omitted",
        "- Commit messages, file lists and change statistics are complete "
        "(all metadata preserved)",
        "- High-risk files (database, auth, API contracts) are never shortened",
    ]
    if truncation.truncated_files_list:
        lines.append("")
        lines.append("Shortened files:")
        lines.extend(f"- {name}" for name in truncation.truncated_files_list)
    lines.append("")
    lines.append(
        "Factor the reduced visibility into your confidence score and call out "
        "areas you could not fully review."
    )
    return "\n".join(lines) + "\n\n"


def _documentation_section(documentation: str) -> str:
    if not documentation:
        return ""
    return f"\n## Documentation\n\n{documentation}\n"


def _guidance_section(authorized: list[str]) -> str:
    if not authorized:
        return ""
    lines = [
        "",
        "## Additional Analysis Guidance",
        "",
        "Reviewers of this release asked you to take the following into account:",
        "",
    ]
    lines.extend(f"- {content}" for content in authorized)
    return "\n".join(lines) + "\n"


def _qe_section(qe_testing: QETestingCommits | None) -> str:
    if qe_testing is None or not (qe_testing.tested or qe_testing.needs_testing):
        return ""

    lines = ["", "## QE Testing Status", ""]
    if qe_testing.tested:
        lines.append("### QE Tested Commits")
        lines.append("")
        lines.append("These commits were verified by QE. Treat this as evidence of quality.")
        for repo in qe_testing.tested:
            lines.append("")
            lines.append(f"**{repo.repo_url}**")
            lines.extend(f"- {commit}" for commit in repo.commits)
        lines.append("")
    if qe_testing.needs_testing:
        lines.append("### Needs QE Testing Commits")
        lines.append("")
        lines.append(
            "These commits still need QE testing. Evaluate confidence impact "
            "based on what they change."
        )
        for repo in qe_testing.needs_testing:
            lines.append("")
            lines.append(f"**{repo.repo_url}**")
            lines.extend(f"- {commit}" for commit in repo.commits)
        lines.append("")
    return "\n".join(lines) + "\n"
