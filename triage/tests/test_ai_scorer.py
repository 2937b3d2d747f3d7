"""
Tests for the AI scorer

The LLM client is mocked; tests cover response parsing and the fallback
paths taken when the provider fails.
"""

import json
from unittest.mock import Mock

import pytest

from triage.common.llm_client import LLMResponse


def make_llm(payload=None, raw=None, error=None, available=True):
    llm = Mock()
    llm.is_available = available
    llm.provider = "anthropic"
    if error is not None:
        llm.generate.side_effect = error
    else:
        text = raw if raw is not None else json.dumps(payload)
        llm.generate.return_value = LLMResponse(text=text, input_tokens=1200, output_tokens=300)
    return llm


GOOD_PAYLOAD = {
    "angerScore": 72,
    "urgencyScore": 85,
    "isSpam": False,
    "angerTriggers": ["charged twice"],
    "urgencyTriggers": ["refund"],
    "sentimentReasoning": "Customer is upset about a double charge.",
    "issueCategory": "Double charge refund",
    "topicTag": "Billing Issue",
    "suggestedResponse": "Sorry about that, we have refunded the duplicate charge.",
    "confidence": 0.9,
    "referencedDocs": ["Refund policy"],
    "notesForAgent": "Verify in Stripe.",
}


class TestParse:
    def test_scores_and_extras(self):
        from triage.analysis.ai_scorer import AIScorer
        from triage.common.schemas import Confidence, ScoreSource

        scorer = AIScorer(make_llm(GOOD_PAYLOAD))
        result = scorer.analyze("You charged me twice, I want a refund")

        assert result.source == ScoreSource.AI
        assert result.anger_score == 72
        assert result.urgency_score == 85
        assert result.confidence == Confidence.HIGH
        assert result.topic_tag == "billing-issue"
        assert result.suggested_response.startswith("Sorry")
        assert result.referenced_docs[0].title == "Refund policy"
        assert result.usage.input_tokens == 1200
        assert result.usage.output_tokens == 300
        assert not result.degraded

    def test_fenced_json(self):
        from triage.analysis.ai_scorer import AIScorer

        raw = "```json\n" + json.dumps(GOOD_PAYLOAD) + "\n```"
        result = AIScorer(make_llm(raw=raw)).analyze("text")
        assert result.anger_score == 72

    def test_scores_are_clamped(self):
        from triage.analysis.ai_scorer import AIScorer

        result = AIScorer(make_llm({"angerScore": 140, "urgencyScore": -3})).analyze("text")
        assert result.anger_score == 100
        assert result.urgency_score == 0

    def test_null_topic_tag(self):
        from triage.analysis.ai_scorer import AIScorer

        payload = dict(GOOD_PAYLOAD, topicTag="null")
        assert AIScorer(make_llm(payload)).analyze("text").topic_tag is None

    def test_referenced_doc_url_filled_from_articles(self):
        from triage.analysis.ai_scorer import AIScorer
        from triage.common.docs_client import Article

        docs = Mock()
        docs.find_relevant_articles.return_value = [
            Article(id="1", title="Refund policy", text="...", url="https://docs.example.com/refunds"),
        ]
        result = AIScorer(make_llm(GOOD_PAYLOAD), docs_client=docs).analyze("refund")
        assert result.referenced_docs[0].url == "https://docs.example.com/refunds"

    def test_prompt_includes_docs_and_context(self):
        from triage.analysis.ai_scorer import AIScorer
        from triage.analysis.scorer import ScoringContext
        from triage.common.docs_client import Article

        llm = make_llm(GOOD_PAYLOAD)
        docs = Mock()
        docs.find_relevant_articles.return_value = [Article(id="1", title="Refund policy", text="Refunds within 30 days")]
        context = ScoringContext(subject="Double charge", customer_email="a@b.com", prior_anger=10, prior_urgency=20)

        AIScorer(llm, docs_client=docs).analyze("refund please", context)

        prompt = llm.generate.call_args.args[0]
        assert "Refund policy" in prompt
        assert "SUBJECT: Double charge" in prompt
        assert "anger 10/100, urgency 20/100" in prompt
        assert prompt.rstrip().endswith("refund please")


class TestFallback:
    def test_provider_error_uses_lexical_with_low_confidence(self):
        from triage.analysis.ai_scorer import AIScorer
        from triage.analysis.sentiment import LexicalSentimentScorer
        from triage.common.schemas import Confidence, ScoreSource

        scorer = AIScorer(make_llm(error=TimeoutError("timed out")), fallback=LexicalSentimentScorer())
        result = scorer.analyze("I want a refund now!!!!")

        assert result.source == ScoreSource.LEXICAL
        assert result.anger_score == 40
        assert result.confidence == Confidence.LOW
        assert result.degraded is True
        assert "timed out" in result.error
        assert not result.failed

    def test_missing_scores_falls_back(self):
        from triage.analysis.ai_scorer import AIScorer
        from triage.analysis.sentiment import LexicalSentimentScorer

        scorer = AIScorer(make_llm(raw="I cannot help with that"), fallback=LexicalSentimentScorer())
        result = scorer.analyze("hello")
        assert result.degraded is True
        assert "did not contain" in result.error

    def test_infinite_score_falls_back(self):
        from triage.analysis.ai_scorer import AIScorer
        from triage.analysis.sentiment import LexicalSentimentScorer
        from triage.common.schemas import ScoreSource

        raw = '{"angerScore": Infinity, "urgencyScore": 10}'
        scorer = AIScorer(make_llm(raw=raw), fallback=LexicalSentimentScorer())
        result = scorer.analyze("I want a refund now!!!!")

        assert result.source == ScoreSource.LEXICAL
        assert result.degraded is True
        assert result.anger_score == 40

    def test_no_fallback_gives_neutral_result(self):
        from triage.analysis.ai_scorer import AIScorer

        result = AIScorer(make_llm(error=RuntimeError("boom"))).analyze("text")
        assert result.failed
        assert result.anger_score == 0
        assert result.urgency_score == 0
        assert result.confidence.value == "low"

    def test_unavailable_client(self):
        from triage.analysis.ai_scorer import AIScorer

        llm = make_llm(GOOD_PAYLOAD, available=False)
        result = AIScorer(llm).analyze("text")
        assert result.failed
        llm.generate.assert_not_called()


class TestBuildScorer:
    def test_lexical_by_default(self):
        from triage.analysis.scorer import build_scorer
        from triage.analysis.sentiment import LexicalSentimentScorer
        from triage.common.config import TriageConfig

        assert isinstance(build_scorer(TriageConfig()), LexicalSentimentScorer)

    def test_ai_with_available_client(self):
        from triage.analysis.ai_scorer import AIScorer
        from triage.analysis.scorer import build_scorer
        from triage.common.config import TriageConfig

        config = TriageConfig()
        config.scanner.scorer = "ai"
        assert isinstance(build_scorer(config, llm_client=make_llm(GOOD_PAYLOAD)), AIScorer)

    def test_ai_without_client_degrades_to_lexical(self, caplog):
        import logging
        from triage.analysis.scorer import build_scorer
        from triage.analysis.sentiment import LexicalSentimentScorer
        from triage.common.config import TriageConfig

        config = TriageConfig()
        config.scanner.scorer = "ai"
        with caplog.at_level(logging.WARNING, logger="triage.analysis.scorer"):
            scorer = build_scorer(config, llm_client=make_llm(available=False))
        assert isinstance(scorer, LexicalSentimentScorer)
        assert "unavailable" in caplog.text

    def test_unknown_scorer(self):
        from triage.analysis.scorer import build_scorer
        from triage.common.config import TriageConfig

        config = TriageConfig()
        config.scanner.scorer = "magic"
        with pytest.raises(ValueError, match="magic"):
            build_scorer(config)
