"""
Microsoft Teams notifier.

Posts adaptive cards to an incoming webhook when a conversation is angry or
urgent. Fire-and-forget: delivery failures are logged and never raised.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import NotifierConfig
from .schemas import ScoringResult

logger = logging.getLogger("triage.common.teams_client")

CONVERSATION_URL = "https://secure.helpscout.net/conversation/{conversation_id}"
PREVIEW_CHARS = 200


def _truncate(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def build_alert_card(
    conversation_id: int,
    subject: str,
    note_text: str,
    result: ScoringResult,
    customer_email: str = "",
) -> Dict[str, Any]:
    """Adaptive card payload for an angry or urgent conversation"""
    if result.is_spam:
        title, color = f"🗑️ SPAM DETECTED ({result.confidence.value} confidence)", "Good"
    elif result.is_angry:
        title, color = "😡 ANGRY CUSTOMER DETECTED", "Attention"
    else:
        title, color = "❗ HIGH URGENCY DETECTED", "Warning"

    triggers: List[str] = (
        result.anger_triggers + result.urgency_triggers
        or result.indicators.profanity + result.indicators.insults + result.indicators.refund_phrases
    )

    return {
        "type": "message",
        "attachments": [{
            "contentType": "application/vnd.microsoft.card.adaptive",
            "content": {
                "type": "AdaptiveCard",
                "version": "1.3",
                "body": [
                    {"type": "TextBlock", "text": title, "weight": "Bolder", "size": "Medium", "color": color},
                    {"type": "TextBlock", "text": subject or "No subject", "weight": "Bolder", "wrap": True},
                    {"type": "TextBlock", "text": _truncate(note_text), "wrap": True, "isSubtle": True},
                    {
                        "type": "FactSet",
                        "facts": [
                            {"title": "Customer", "value": customer_email or "Unknown"},
                            {"title": "Urgency Score", "value": f"{result.urgency_score}/100"},
                            {"title": "Anger Score", "value": f"{result.anger_score}/100"},
                            {"title": "Triggers", "value": ", ".join(triggers) or "Keyword detection"},
                        ],
                    },
                ],
                "actions": [{
                    "type": "Action.OpenUrl",
                    "title": "View in HelpScout",
                    "url": CONVERSATION_URL.format(conversation_id=conversation_id),
                }],
            },
        }],
    }


class TeamsNotifier:
    """Sends triage alerts to a Teams channel webhook."""

    def __init__(self, config: NotifierConfig, http_client: Optional[httpx.Client] = None):
        self._url = config.teams_webhook_url
        self._http = http_client or httpx.Client(timeout=config.timeout)

    @property
    def is_enabled(self) -> bool:
        return bool(self._url)

    def close(self) -> None:
        self._http.close()

    def notify(
        self,
        conversation_id: int,
        subject: str,
        note_text: str,
        result: ScoringResult,
        customer_email: str = "",
    ) -> bool:
        """Send an alert. Returns True if the webhook accepted it."""
        if not self.is_enabled:
            return False

        card = build_alert_card(conversation_id, subject, note_text, result, customer_email)
        try:
            response = self._http.post(self._url, json=card)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Teams notification for conversation %s failed: %s", conversation_id, e)
            return False

        logger.info("Teams notification sent for conversation %s", conversation_id)
        return True
