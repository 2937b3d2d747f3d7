"""
Triage Common Module

Configuration, schemas, errors and upstream clients shared by the pipeline.
"""

from .config import TriageConfig, load_config
from .errors import ScoringUnavailable, TransientUpstreamError, UpstreamAuthError

__all__ = [
    "TriageConfig",
    "load_config",
    "ScoringUnavailable",
    "TransientUpstreamError",
    "UpstreamAuthError",
]
