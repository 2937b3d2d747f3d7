"""
Error taxonomy for the triage pipeline.

Upstream errors are surfaced to the caller and never retried here; the next
scan pass is the retry.
"""


class TransientUpstreamError(Exception):
    """Network or server failure calling HelpScout or an AI provider."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamAuthError(TransientUpstreamError):
    """Credentials were rejected by the upstream service."""


class ScoringUnavailable(Exception):
    """The AI scorer could not produce a result."""
