"""User guidance and QE label parsing shared by the git providers.

Reviewers steer the analysis by commenting `/rcs <text>` on a PR or MR.
The command must open the comment; everything after it (including further
lines) is the guidance.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

LABEL_QE_TESTED = "rcs/qe-tested"
LABEL_NEEDS_QE_TESTING = "rcs/needs-qe-testing"

_GUIDANCE_RE = re.compile(r"^\s*/rcs\s+(\S.*\S|\S)", re.IGNORECASE | re.DOTALL)


def parse_user_guidance(text: str | None) -> str | None:
    """Extract the guidance from a comment body.

    Returns:
        The guidance text with surrounding whitespace removed, or None if
        the comment is not an `/rcs` command.
    """
    if not text:
        return None
    match = _GUIDANCE_RE.match(text)
    if match is None:
        return None
    return match.group(1)


def extract_qe_label(labels: Iterable[str]) -> str:
    """Pick the QE testing label from a PR/MR's labels.

    Matching is case-insensitive. When both labels are present
    `rcs/qe-tested` wins.

    Returns:
        One of the LABEL_* constants, or "" if neither is present.
    """
    names = {label.lower() for label in labels}
    if LABEL_QE_TESTED in names:
        return LABEL_QE_TESTED
    if LABEL_NEEDS_QE_TESTING in names:
        return LABEL_NEEDS_QE_TESTING
    return ""
