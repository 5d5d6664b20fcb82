from __future__ import annotations


class CompletionError(Exception):
    """The completion backend could not produce a usable JSON object."""


class CompletionUnavailableError(CompletionError):
    """The completion backend is disabled, unconfigured or unreachable."""
