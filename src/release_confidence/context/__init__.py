"""Release data gathering from source-control platforms.

These modules turn compare URLs into comparisons, reviewer guidance and
release documentation the analysis can reason about.
"""
