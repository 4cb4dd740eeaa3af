"""File risk classification for diff truncation.

Every changed file is put into one of four risk tiers based on its path.
The tier decides how early a file's patch is allowed to be shortened when
the diff has to fit into the model's context window:

- CRITICAL files (migrations, auth, API contracts) are never truncated
- HIGH files (infrastructure, CI/CD, deployment) are truncated at high+
- MEDIUM files (source code, dependency manifests) are truncated at moderate+
- LOW files (tests, docs, generated files) are truncated at every level

Patterns are glob expressions kept in a YAML file shipped with the package,
so teams can tune classification without touching code. A custom file can be
supplied through RCS_RISK_PATTERNS_FILE.

Matching rules:
- Filenames and patterns are compared lower-cased
- A pattern matches if it matches the whole path or any path component
- Tiers are checked critical -> high -> medium -> low; the first hit wins
- A file that matches nothing is MEDIUM
"""

from __future__ import annotations

import fnmatch
from functools import lru_cache
from importlib import resources
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

from release_confidence.schemas import FileRiskLevel

DEFAULT_PATTERNS_RESOURCE = "risk_patterns.yaml"

# Order in which tiers are checked. Critical and high come before the
# test/doc exclusions so that, e.g., a test under auth/ stays critical.
CLASSIFICATION_ORDER: tuple[FileRiskLevel, ...] = (
    FileRiskLevel.CRITICAL,
    FileRiskLevel.HIGH,
    FileRiskLevel.MEDIUM,
    FileRiskLevel.LOW,
)


class RiskPatterns(BaseModel):
    """Glob patterns for each risk tier, as loaded from YAML."""

    critical: list[str] = []
    high: list[str] = []
    medium: list[str] = []
    low: list[str] = []

    @field_validator("critical", "high", "medium", "low")
    @classmethod
    def _lowercase(cls, patterns: list[str]) -> list[str]:
        return [p.strip().lower() for p in patterns if p and p.strip()]

    def for_level(self, risk: FileRiskLevel) -> list[str]:
        return getattr(self, risk.value)


def load_risk_patterns(path: str | Path | None = None) -> RiskPatterns:
    """Load and validate risk patterns from YAML.

    Args:
        path: Optional path to a custom patterns file. The patterns shipped
              with the package are used when omitted.

    Returns:
        A validated RiskPatterns instance.

    Raises:
        ValueError: If the file is missing, is not valid YAML, or does not
                    match the expected structure.
    """
    if path is None:
        return _default_patterns()

    patterns_path = Path(path)
    if not patterns_path.exists():
        raise ValueError(f"Risk patterns file not found: {path}")
    return _parse_patterns(patterns_path.read_text(), str(path))


@lru_cache(maxsize=1)
def _default_patterns() -> RiskPatterns:
    text = (
        resources.files("release_confidence")
        .joinpath(DEFAULT_PATTERNS_RESOURCE)
        .read_text(encoding="utf-8")
    )
    return _parse_patterns(text, DEFAULT_PATTERNS_RESOURCE)


def _parse_patterns(text: str, source: str) -> RiskPatterns:
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {source}: {exc}") from exc

    try:
        return RiskPatterns.model_validate(raw)
    except Exception as exc:
        raise ValueError(f"Invalid risk patterns in {source}: {exc}") from exc


def matches_any_pattern(filename: str, patterns: list[str]) -> bool:
    """Check a lower-cased path against glob patterns.

    The whole path is tried first, then each path component, so a pattern
    like "tests" matches "pkg/tests/test_api.py".
    """
    parts = filename.split("/")
    for pattern in patterns:
        if fnmatch.fnmatchcase(filename, pattern):
            return True
        if any(fnmatch.fnmatchcase(part, pattern) for part in parts):
            return True
    return False


def classify_file_risk(
    filename: str, patterns: RiskPatterns | None = None
) -> FileRiskLevel:
    """Classify a file into a risk tier based on its path.

    Args:
        filename: Path relative to the repository root
        patterns: Patterns to use. The packaged defaults if None.

    Returns:
        The first tier whose patterns match, or MEDIUM if none do.
    """
    if patterns is None:
        patterns = load_risk_patterns()
    lower = filename.lower()

    for risk in CLASSIFICATION_ORDER:
        if matches_any_pattern(lower, patterns.for_level(risk)):
            return risk

    return FileRiskLevel.MEDIUM
