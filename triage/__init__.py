"""
Helpdesk Triage

Sentiment scoring and escalation tracking for HelpScout support conversations.
"""

__version__ = "0.1.0"
