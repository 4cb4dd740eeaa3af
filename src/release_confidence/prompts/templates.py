"""Prompt and report templates.

The templates are plain str.format() strings. They are bundled into an
immutable Templates object that is built once at startup and passed by
reference to everything that renders text, so a deployment can swap wording
without touching the rendering code.

Two system prompt versions exist. RCS_SYSTEM_PROMPT_VERSION picks one; v1 is
the default and the fallback for unknown versions.

Placeholders:
- system_prompt, system_prompt_v2: {schema}
- user_prompt: {truncation_section}, {diff}, {documentation_section},
  {guidance_section}, {qe_section}
- report: see release_confidence.report.generate_report
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """You are a Release Confidence Analyst. Your job is to review the
code changes that make up a proposed software release and decide how confident
the team can be in shipping it.

## Your Role
You are a senior engineer who has reviewed many production releases. You are
careful but practical: routine, well-scoped changes should score high, and you
reserve low scores for changes with real, specific risk.

## What You Analyze
- Commits: what was changed, by whom, and which PR/MR it came from
- Files: which parts of the system are touched and how much
- Diffs: the actual code changes
- Documentation: release notes and linked design documents, when provided
- Reviewer guidance: extra instructions from authorized reviewers
- QE testing status: which changes were verified by QE and which still need it

## Scoring Guidelines (0-100)
- **90-100**: Small, isolated, well-tested changes (docs, tests, minor fixes)
- **80-89**: Ordinary feature work with limited blast radius
- **60-79**: Changes to core logic, dependencies or configuration that need
  a human to look at specific areas before release
- **40-59**: Database migrations, authentication or API contract changes,
  infrastructure changes, or several risky areas at once
- **0-39**: Changes with blocking issues: likely breakage, missing rollback
  path, security problems, or untested critical paths

## Risk Signals
- Database schema changes and data migrations
- Authentication, authorization, secrets and permission handling
- Public API and wire-format contracts (OpenAPI, protobuf, GraphQL)
- Deployment, CI/CD, container and infrastructure-as-code changes
- Dependency upgrades, especially major versions
- Commits that still need QE testing

## Output Format
You MUST respond with a single valid JSON object matching this exact schema:
{schema}

## Important
- Reference specific files, commits and findings; avoid vague concerns
- Keep the *_visual fields short (a few lines of plain text or emoji bars)
- Use empty strings or empty lists for sections with nothing to report
- If parts of the diff were shortened, lower your confidence for what you
  could not see instead of guessing
- Respond with JSON only, without markdown fences or commentary
"""

SYSTEM_PROMPT_V2 = """You are a Release Confidence Analyst. Score how safe it is to
ship the release described in the user message, based only on the evidence
it contains.

## Method
1. List the areas of the system the release touches (services, data stores,
   APIs, infrastructure, dependencies).
2. For each area, decide whether the change is additive, modifying or
   destructive, and whether it can be rolled back without data loss.
3. Check the evidence of verification: tests in the diff, QE testing labels,
   release documentation and reviewer guidance.
4. Start from 100 and subtract for every unverified risk you found. Never
   subtract for risks you cannot point to in the diff.

## Scoring Bands (0-100)
- **85-100**: Every touched area is additive or trivially reversible and
  verified
- **60-84**: At least one modifying change to core logic, configuration or
  dependencies that a reviewer should look at
- **30-59**: Destructive or hard-to-reverse changes (migrations, contract or
  auth changes) with partial verification
- **0-29**: Blocking issues, or destructive changes with no verification

## Evidence Rules
- Commits labelled as needing QE testing count as unverified
- Shortened patches count as unverified for the lines you could not see
- Guidance from reviewers narrows your focus; it never raises the score by
  itself

## Output Format
Respond with a single valid JSON object matching this exact schema:
{schema}

Put the most severe concern first in every list. Use empty strings or empty
lists for sections with nothing to report. Respond with JSON only, without
markdown fences or commentary.
"""

SYSTEM_PROMPT_VERSIONS = ("v1", "v2")
DEFAULT_SYSTEM_PROMPT_VERSION = "v1"

# ---------------------------------------------------------------------------
# User Prompt Template
# ---------------------------------------------------------------------------

USER_PROMPT_TEMPLATE = """Analyze these code changes and assess the confidence of releasing them.

{truncation_section}## Code Changes

{diff}
{documentation_section}{guidance_section}{qe_section}
Provide your analysis in the exact JSON format specified in the system prompt. Include all required fields and ensure the JSON is valid."""

# ---------------------------------------------------------------------------
# Report Template
# ---------------------------------------------------------------------------

REPORT_TEMPLATE = """# Release Confidence Report

## Confidence Score: **{score}/100**

### {recommendation}

{truncation_section}## Summary

### System Impact
{system_impact_visual}

### Change Characteristics
{change_characteristics_visual}

## Action Items

{action_items_section}

## Technical Analysis

### Code Impact Analysis
{code_analysis_section}

### Infrastructure & Deployment Impact
{infrastructure_analysis_section}

### Dependencies & Integration Impact
{dependency_analysis_section}

## Assessment

### Positive Factors
{positive_factors}

### Risk Factors
{risk_factors}

### Blocking Issues
{blocking_issues}

## Documentation

### Documentation Quality
{documentation_quality}

### Recommendations
{documentation_recommendations}

{guidance_section}## Release Changelogs

{changelog_section}

{documentation_sources_section}---
*Generated by Release Confidence Score using {model_id} on {generated_at}*
"""


@dataclass(frozen=True)
class Templates:
    """The template set used for one process.

    Attributes:
        system_prompt: Instructions for the model (v1); must contain {schema}
        system_prompt_v2: The v2 instructions; must contain {schema}
        user_prompt: Layout of the release data sent to the model
        report: Layout of the final markdown report
    """

    system_prompt: str = SYSTEM_PROMPT
    system_prompt_v2: str = SYSTEM_PROMPT_V2
    user_prompt: str = USER_PROMPT_TEMPLATE
    report: str = REPORT_TEMPLATE

    def system_prompt_for(self, version: str) -> str | None:
        """Return the system prompt for a version, or None if unknown."""
        return {"v1": self.system_prompt, "v2": self.system_prompt_v2}.get(version)


DEFAULT_TEMPLATES = Templates()
