"""Pydantic models shared across the release confidence pipeline.

These schemas are the single source of truth for what flows between the
source-control providers, the truncation engine, the LLM and the report
renderer:
- Raw release data fetched from GitHub / GitLab (comparisons, commits,
  documentation, user guidance)
- Truncation metadata produced when the diff must be shrunk to fit the
  model's context window
- The structured analysis the LLM is asked to return

Key design decisions:
- FileChange and Commit are frozen: a truncation pass builds new values with
  model_copy() instead of editing fetched data
- Enums constrain categorical values to prevent drift
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FileRiskLevel(StrEnum):
    """Risk tier of a changed file, used to decide what survives truncation.

    CRITICAL: Database, auth and API contract files. Never truncated.
    HIGH: Infrastructure and deployment descriptors.
    MEDIUM: Ordinary source files and dependency manifests.
    LOW: Tests, documentation, generated files and tooling config.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TruncationLevel(StrEnum):
    """How aggressively patches are shortened, from least to most.

    LOW: Only low-risk files, keeping 50 head / 20 tail lines
    MODERATE: Adds medium-risk files, keeping 20 / 10
    HIGH: Adds high-risk files and drops linked docs, keeping 10 / 5
    EXTREME: Same files as HIGH, keeping 5 / 3
    """

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"

    @classmethod
    def parse(cls, value: str | TruncationLevel) -> TruncationLevel:
        """Resolve a level name case-insensitively, falling back to LOW."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.LOW


# Levels in the order the retry loop escalates through them.
ESCALATION_ORDER: tuple[TruncationLevel, ...] = (
    TruncationLevel.LOW,
    TruncationLevel.MODERATE,
    TruncationLevel.HIGH,
    TruncationLevel.EXTREME,
)


# ---------------------------------------------------------------------------
# Source-control data
# ---------------------------------------------------------------------------


class FileChange(BaseModel):
    """A single file changed in a comparison.

    Attributes:
        filename: Path relative to the repo root
        status: added, modified, removed or renamed
        additions: Number of lines added
        deletions: Number of lines deleted
        changes: Total lines changed
        patch: Unified diff body (empty for binary or rename-only changes)
        previous_filename: Old path when the file was renamed
    """

    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="File path relative to repo root")
    status: str = Field("modified", description="Change status")
    additions: int = Field(0, ge=0, description="Lines added")
    deletions: int = Field(0, ge=0, description="Lines deleted")
    changes: int = Field(0, ge=0, description="Total lines changed")
    patch: str = Field("", description="Diff content for this file")
    previous_filename: str = Field("", description="Previous path for renames")


class Commit(BaseModel):
    """A commit in a comparison, enriched with PR/MR metadata."""

    model_config = ConfigDict(frozen=True)

    sha: str
    short_sha: str = ""
    message: str = Field("", description="First line of the commit message")
    author: str = ""
    pr_number: int = Field(0, ge=0, description="Associated PR/MR number (0 if none)")
    qe_testing_label: str = Field("", description="QE testing label, if any")


class ComparisonStats(BaseModel):
    """Aggregate statistics for a comparison."""

    total_files: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    total_changes: int = 0

    @classmethod
    def from_files(cls, files: list[FileChange]) -> ComparisonStats:
        return cls(
            total_files=len(files),
            total_additions=sum(f.additions for f in files),
            total_deletions=sum(f.deletions for f in files),
            total_changes=sum(f.changes for f in files),
        )


class Comparison(BaseModel):
    """The code delta of one repository between two refs.

    Attributes:
        repo_url: Repository URL (e.g. "https://github.com/owner/repo")
        diff_url: The compare URL this comparison was fetched from
        commits: Commits in the comparison, in platform order
        files: Changed files, in platform order
        stats: Totals across all files
    """

    repo_url: str
    diff_url: str = ""
    commits: list[Commit] = Field(default_factory=list)
    files: list[FileChange] = Field(default_factory=list)
    stats: ComparisonStats = Field(default_factory=ComparisonStats)


class Repository(BaseModel):
    """Basic repository information."""

    owner: str = ""
    name: str = ""
    default_branch: str = ""
    url: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class Documentation(BaseModel):
    """Release documentation published in a repository.

    The main document is the entry point and is always sent to the model.
    Additional documents are linked from it and are the first thing dropped
    when the prompt has to shrink.

    Attributes:
        repository: Repository the docs were read from
        main_doc_file: Path of the entry point document
        main_doc_content: Content of the entry point document
        additional_docs: Display name -> content of linked documents
        additional_docs_order: Display names in the order they were linked
        failed_additional_docs: Display name -> error for docs that failed to load
    """

    repository: Repository = Field(default_factory=Repository)
    main_doc_file: str = ""
    main_doc_content: str = ""
    additional_docs: dict[str, str] = Field(default_factory=dict)
    additional_docs_order: list[str] = Field(default_factory=list)
    failed_additional_docs: dict[str, str] = Field(default_factory=dict)


class UserGuidance(BaseModel):
    """A `/rcs` comment left on a PR or MR to steer the analysis.

    Only guidance from authorized users is sent to the model; the report
    lists all of it.
    """

    content: str
    author: str = ""
    date: datetime | None = None
    comment_url: str = ""
    is_authorized: bool = False


class ReleaseData(BaseModel):
    """Everything a provider fetched for a single compare URL."""

    comparison: Comparison
    guidance: list[UserGuidance] = Field(default_factory=list)
    documentation: Documentation | None = None


class ReleaseBundle(BaseModel):
    """Release data merged across all compare URLs."""

    comparisons: list[Comparison] = Field(default_factory=list)
    guidance: list[UserGuidance] = Field(default_factory=list)
    documentation: list[Documentation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Truncation
# ---------------------------------------------------------------------------


class TruncationMetadata(BaseModel):
    """What a truncation pass did to the diff.

    Attributes:
        truncated: Whether any patch was shortened
        level: The truncation level used for the pass
        total_files: Number of files considered
        files_preserved: Files whose patch was kept in full
        files_truncated: Files whose patch was shortened
        truncated_files_list: Filenames that were shortened, in order
    """

    truncated: bool = False
    level: TruncationLevel = TruncationLevel.LOW
    total_files: int = 0
    files_preserved: int = 0
    files_truncated: int = 0
    truncated_files_list: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# LLM output
# ---------------------------------------------------------------------------


class ActionItems(BaseModel):
    """Action items grouped by urgency."""

    critical: list[str] = Field(default_factory=list)
    important: list[str] = Field(default_factory=list)
    followup: list[str] = Field(default_factory=list)


class TechnicalAnalysis(BaseModel):
    """Analysis of one impact area (code, infrastructure, dependencies)."""

    summary: str = ""
    key_findings: list[str] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)


class StructuredAnalysis(BaseModel):
    """Structured output the LLM must produce.

    Used both to validate the response and (via .model_json_schema()) to
    tell the model exactly what to return.
    """

    score: int = Field(..., ge=0, le=100, description="Release confidence score (0-100)")
    system_impact_visual: str = Field("", description="Short visual summary of system impact")
    change_characteristics_visual: str = Field(
        "", description="Short visual summary of the change characteristics"
    )
    action_items: ActionItems = Field(default_factory=ActionItems)
    code_analysis: TechnicalAnalysis = Field(default_factory=TechnicalAnalysis)
    infrastructure_analysis: TechnicalAnalysis = Field(default_factory=TechnicalAnalysis)
    dependency_analysis: TechnicalAnalysis = Field(default_factory=TechnicalAnalysis)
    positive_factors: str = ""
    risk_factors: str = ""
    blocking_issues: str = ""
    documentation_quality: str = ""
    documentation_recommendations: str = ""
