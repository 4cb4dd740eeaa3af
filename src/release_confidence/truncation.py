"""Progressive diff truncation.

When a release diff does not fit into the model's context window, the diff
is shrunk level by level (LOW -> MODERATE -> HIGH -> EXTREME). Each level:
- Keeps fewer lines from the head and tail of a truncated patch
- Lowers the size below which a patch is never touched
- Allows riskier files to be truncated (critical files never are)
- At HIGH and EXTREME, drops linked documentation entirely

Everything in this module is a pure function over in-memory data: inputs
are never modified and every call returns fresh objects, so comparisons can
be truncated in parallel without locking.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from release_confidence.risk import RiskPatterns, classify_file_risk
from release_confidence.schemas import (
    ESCALATION_ORDER,
    Comparison,
    Documentation,
    FileChange,
    FileRiskLevel,
    TruncationLevel,
    TruncationMetadata,
)

# ---------------------------------------------------------------------------
# Level Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LevelParams:
    """Truncation parameters for one level.

    Attributes:
        keep_start: Lines kept from the top of a truncated patch
        keep_end: Lines kept from the bottom of a truncated patch
        small_file_threshold: Patches with fewer lines are never truncated
    """

    keep_start: int
    keep_end: int
    small_file_threshold: int


TRUNCATION_PARAMS: dict[TruncationLevel, LevelParams] = {
    TruncationLevel.LOW: LevelParams(keep_start=50, keep_end=20, small_file_threshold=100),
    TruncationLevel.MODERATE: LevelParams(keep_start=20, keep_end=10, small_file_threshold=75),
    TruncationLevel.HIGH: LevelParams(keep_start=10, keep_end=5, small_file_threshold=50),
    TruncationLevel.EXTREME: LevelParams(keep_start=5, keep_end=3, small_file_threshold=20),
}

# First level at which each risk tier may be truncated. Critical is absent.
_TRUNCATABLE_FROM: dict[FileRiskLevel, TruncationLevel] = {
    FileRiskLevel.LOW: TruncationLevel.LOW,
    FileRiskLevel.MEDIUM: TruncationLevel.MODERATE,
    FileRiskLevel.HIGH: TruncationLevel.HIGH,
}

# Levels at which linked documentation is removed.
_DOC_DROPPING_LEVELS = frozenset({TruncationLevel.HIGH, TruncationLevel.EXTREME})


def drops_additional_docs(level: str | TruncationLevel) -> bool:
    """Whether linked documentation is left out of the prompt at this level."""
    return TruncationLevel.parse(level) in _DOC_DROPPING_LEVELS


OMISSION_MARKER = "... [{count} lines omitted] ..."

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+\Z")


def get_level_params(level: str | TruncationLevel) -> LevelParams:
    """Return the parameters for a level; unknown names get LOW's."""
    return TRUNCATION_PARAMS[TruncationLevel.parse(level)]


def should_truncate_file(risk: FileRiskLevel, level: str | TruncationLevel) -> bool:
    """Decide whether a file of the given risk may be truncated at a level.

    Critical files are never truncated, at any level.
    """
    first_level = _TRUNCATABLE_FROM.get(risk)
    if first_level is None:
        return False
    current = TruncationLevel.parse(level)
    return ESCALATION_ORDER.index(current) >= ESCALATION_ORDER.index(first_level)


# ---------------------------------------------------------------------------
# Patch Truncation
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[str]:
    """Split text into lines, each keeping its trailing newline.

    An empty string has no lines; a final line without a newline still
    counts as a line.
    """
    return _LINE_RE.findall(text)


def count_lines(text: str) -> int:
    return len(split_lines(text))


def truncate_patch(patch: str, keep_start: int, keep_end: int) -> str:
    """Keep the head and tail of a patch and replace the middle with a marker.

    Args:
        patch: Unified diff body
        keep_start: Number of leading lines to keep
        keep_end: Number of trailing lines to keep

    Returns:
        The patch unchanged if it has at most keep_start + keep_end lines,
        otherwise the first keep_start lines, one marker line stating how
        many lines were omitted, and the last keep_end lines.
    """
    lines = split_lines(patch)
    total = len(lines)
    if total <= keep_start + keep_end:
        return patch

    omitted = total - keep_start - keep_end
    head = "".join(lines[:keep_start])
    tail = "".join(lines[total - keep_end:])
    return f"{head}{OMISSION_MARKER.format(count=omitted)}\n{tail}"


# ---------------------------------------------------------------------------
# Comparison Truncation
# ---------------------------------------------------------------------------


def truncate_comparison(
    comparison: Comparison | None,
    level: str | TruncationLevel,
    patterns: RiskPatterns | None = None,
) -> tuple[Comparison | None, TruncationMetadata | None]:
    """Truncate the patches of one comparison according to file risk.

    Small patches are always kept. Larger ones are shortened only when
    the file's risk tier allows it at this level.

    Args:
        comparison: The comparison to truncate (None passes through)
        level: Truncation level to apply
        patterns: Risk patterns used to classify files

    Returns:
        A new comparison and the metadata describing what was cut.
    """
    if comparison is None:
        return None, None

    level = TruncationLevel.parse(level)
    params = TRUNCATION_PARAMS[level]
    metadata = TruncationMetadata(level=level, total_files=len(comparison.files))

    files: list[FileChange] = []
    for file in comparison.files:
        if count_lines(file.patch) < params.small_file_threshold:
            files.append(file)
            continue

        risk = classify_file_risk(file.filename, patterns)
        if not should_truncate_file(risk, level):
            files.append(file)
            continue

        shortened = truncate_patch(file.patch, params.keep_start, params.keep_end)
        if shortened == file.patch:
            files.append(file)
            continue

        files.append(file.model_copy(update={"patch": shortened}))
        metadata.files_truncated += 1
        metadata.truncated_files_list.append(file.filename)

    metadata.files_preserved = metadata.total_files - metadata.files_truncated
    metadata.truncated = metadata.files_truncated > 0

    truncated = comparison.model_copy(
        update={"files": files, "commits": list(comparison.commits)}
    )
    return truncated, metadata


def combine_metadata(
    metadata_list: Sequence[TruncationMetadata | None],
    level: str | TruncationLevel = TruncationLevel.LOW,
) -> TruncationMetadata:
    """Fold per-comparison metadata into one.

    Counts are summed and truncated filenames concatenated in input order.
    None entries are skipped, so a list of only None yields empty,
    non-truncated metadata.
    """
    combined = TruncationMetadata(level=TruncationLevel.parse(level))
    for metadata in metadata_list:
        if metadata is None:
            continue
        combined.truncated = combined.truncated or metadata.truncated
        combined.total_files += metadata.total_files
        combined.files_preserved += metadata.files_preserved
        combined.files_truncated += metadata.files_truncated
        combined.truncated_files_list.extend(metadata.truncated_files_list)
    return combined


def truncate_multiple_comparisons(
    comparisons: Sequence[Comparison | None],
    level: str | TruncationLevel,
    patterns: RiskPatterns | None = None,
) -> tuple[list[Comparison | None], TruncationMetadata]:
    """Truncate every comparison at the same level.

    Args:
        comparisons: Comparisons to truncate; None entries are kept as None
        level: Truncation level to apply
        patterns: Risk patterns used to classify files

    Returns:
        The truncated comparisons (same length and order as the input)
        and the combined metadata for the pass.
    """
    level = TruncationLevel.parse(level)
    truncated: list[Comparison | None] = []
    metadata_list: list[TruncationMetadata | None] = []
    for comparison in comparisons:
        result, metadata = truncate_comparison(comparison, level, patterns)
        truncated.append(result)
        metadata_list.append(metadata)
    return truncated, combine_metadata(metadata_list, level)


# ---------------------------------------------------------------------------
# Documentation Truncation
# ---------------------------------------------------------------------------


def truncate_documentation(
    docs: Sequence[Documentation | None] | None,
    level: str | TruncationLevel,
) -> list[Documentation | None] | None:
    """Drop linked documentation at HIGH and EXTREME levels.

    The main document is always kept verbatim. At LOW and MODERATE all
    documents are kept. The result is always made of independent copies.
    None is passed through as None.
    """
    if docs is None:
        return None

    drop_additional = drops_additional_docs(level)
    result: list[Documentation | None] = []
    for doc in docs:
        if doc is None:
            result.append(None)
        elif drop_additional:
            result.append(
                doc.model_copy(
                    update={
                        "additional_docs": {},
                        "additional_docs_order": [],
                        "failed_additional_docs": {},
                    },
                    deep=True,
                )
            )
        else:
            result.append(doc.model_copy(deep=True))
    return result
