"""Prompt and report templates and their renderers."""
