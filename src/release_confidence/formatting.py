"""Render release data as plain text for the model.

Comparisons become a compact summary per repository (commits, changed files,
totals) followed by the file patches. Documentation is nested under H3
headings, one per document, with its own headings shifted down so the prompt
keeps a consistent hierarchy.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from release_confidence.context.guidance import LABEL_NEEDS_QE_TESTING, LABEL_QE_TESTED
from release_confidence.schemas import Comparison, Documentation

# Documentation is nested under "### name (repo)", so "#" becomes "####".
HEADING_INCREMENT = 3
MAX_HEADING_LEVEL = 6

_QE_LABEL_SUFFIX = {
    LABEL_QE_TESTED: " [QE Tested]",
    LABEL_NEEDS_QE_TESTING: " [Needs QE Testing]",
}


# ---------------------------------------------------------------------------
# Comparisons
# ---------------------------------------------------------------------------


def format_comparisons(comparisons: Sequence[Comparison | None]) -> str:
    """Format comparisons for the user prompt.

    Comparisons without commits (and None entries) are skipped. With more
    than one comparison each block gets a numbered "=== Diff N ===" header.
    """
    multiple = len(comparisons) > 1
    blocks: list[str] = []

    for index, comparison in enumerate(comparisons, start=1):
        if comparison is None or not comparison.commits:
            continue

        lines: list[str] = []
        if multiple:
            lines.append(f"=== Diff {index}: {comparison.repo_url} ===")
        else:
            lines.append(f"Repository: {comparison.repo_url}")
        lines.append("")

        lines.append("Commits:")
        for commit in comparison.commits:
            message = commit.message.split("\n", 1)[0]
            author = commit.author or "Unknown"
            suffix = _QE_LABEL_SUFFIX.get(commit.qe_testing_label, "")
            lines.append(f"- {message} ({author}){suffix}")
        lines.append("")

        lines.append("Files:")
        for file in comparison.files:
            name = file.filename
            if file.previous_filename:
                name = f"{file.filename} (renamed from {file.previous_filename})"
            lines.append(f"- {name}: {file.status} +{file.additions}/-{file.deletions}")

        stats = comparison.stats
        lines.append("")
        lines.append(
            f"Total: {stats.total_files} files, "
            f"+{stats.total_additions}/-{stats.total_deletions} lines"
        )

        block = "\n".join(lines) + "\n"
        patched = [f for f in comparison.files if f.patch]
        if patched:
            block += "\nDiffs:\n"
            for file in patched:
                block += f"\n{file.filename}:\n{file.patch}\n"
        if multiple:
            block += "\n"
        blocks.append(block)

    return "".join(blocks)


# ---------------------------------------------------------------------------
# Documentation
# ---------------------------------------------------------------------------


def format_documentations(docs: Sequence[Documentation | None]) -> str:
    """Format documentation for the user prompt.

    Only documentation with a main document is rendered. Additional
    documents follow in the order they were linked.
    """
    parts: list[str] = []
    for doc in docs:
        if doc is None or not doc.main_doc_content:
            continue

        repo_name = doc.repository.full_name
        parts.append(_doc_section(doc.main_doc_file, repo_name, doc.main_doc_content))
        for name in doc.additional_docs_order:
            content = doc.additional_docs.get(name)
            if content is not None:
                parts.append(_doc_section(name, repo_name, content))
    return "".join(parts)


def _doc_section(name: str, repo_name: str, content: str) -> str:
    body = adjust_markdown_heading_levels(content, HEADING_INCREMENT)
    return f"### {name} ({repo_name})\n\n{body}\n\n"


def adjust_markdown_heading_levels(content: str, increment: int) -> str:
    """Push every markdown heading down by `increment` levels, capped at H6.

    Lines inside fenced code blocks (``` or ~~~) are left alone.
    """
    if increment <= 0 or not content:
        return content

    lines = content.split("\n")
    in_code_block = False
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith(("```", "~~~")):
            in_code_block = not in_code_block
            continue
        if in_code_block or not line.startswith("#"):
            continue

        hashes = len(line) - len(line.lstrip("#"))
        level = min(hashes + increment, MAX_HEADING_LEVEL)
        lines[i] = "#" * level + line[hashes:]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# QE testing status
# ---------------------------------------------------------------------------


@dataclass
class CommitsByRepo:
    """Labelled commits of one repository, as "sha - message" lines."""

    repo_url: str
    commits: list[str] = field(default_factory=list)


@dataclass
class QETestingCommits:
    tested: list[CommitsByRepo] = field(default_factory=list)
    needs_testing: list[CommitsByRepo] = field(default_factory=list)


def collect_qe_testing(comparisons: Sequence[Comparison | None]) -> QETestingCommits | None:
    """Group QE-labelled commits by status and repository.

    Returns:
        The grouped commits, or None when no commit carries a QE label.
    """
    tested: dict[str, list[str]] = {}
    needs_testing: dict[str, list[str]] = {}

    for comparison in comparisons:
        if comparison is None:
            continue
        for commit in comparison.commits:
            if commit.qe_testing_label == LABEL_QE_TESTED:
                bucket = tested
            elif commit.qe_testing_label == LABEL_NEEDS_QE_TESTING:
                bucket = needs_testing
            else:
                continue
            message = commit.message.split("\n", 1)[0]
            bucket.setdefault(comparison.repo_url, []).append(
                f"{commit.short_sha} - {message}"
            )

    if not tested and not needs_testing:
        return None
    return QETestingCommits(
        tested=[CommitsByRepo(url, commits) for url, commits in tested.items()],
        needs_testing=[CommitsByRepo(url, commits) for url, commits in needs_testing.items()],
    )
