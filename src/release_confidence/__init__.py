"""Release Confidence Score.

Analyzes the code changes of a proposed release (GitHub / GitLab compare
URLs, linked documentation, reviewer guidance) with an LLM and produces a
markdown report with a 0-100 confidence score and a release recommendation.
Diffs too large for the model's context window are progressively truncated,
keeping high-risk files intact for as long as possible.
"""

__version__ = "0.1.0"
