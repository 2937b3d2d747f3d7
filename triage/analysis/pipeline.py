"""
Triage Pipeline

Runs one scan over HelpScout conversations:

1. Crawl conversations (bounded by page and item caps)
2. For each conversation, list threads and decode the prior marker
3. Skip when nothing new arrived, otherwise score the latest customer text
4. Classify the change, apply tags, post the note, create a draft reply
5. Alert Teams for angry or urgent conversations

Conversations are processed one at a time. A failure on one conversation is
recorded on its report and the scan moves on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..common.config import ScannerConfig
from ..common.errors import TransientUpstreamError
from ..common.helpscout_client import HelpScoutClient
from ..common.schemas import (
    Conversation,
    ConversationStatus,
    ScoreSource,
    ScoringResult,
    Thread,
    analysis_text,
    has_draft_reply,
    latest_customer_thread,
)
from ..common.teams_client import TeamsNotifier
from ..common.usage_tracker import UsageTracker
from .crawler import BoundedConversationCrawler
from .decision import TriageAction, TriageDecision, TriageOutcome, effective_force
from .marker_codec import EscalationMarker, EscalationStateCodec
from .renderer import NoteRenderer
from .scorer import BaseScorer, ScoringContext

logger = logging.getLogger("triage.analysis.pipeline")

TAG_SPAM = "spam"
TAG_ANGRY = "angry-customer"
TAG_HIGH_URGENCY = "high-urgency"
TAG_DEGRADED = "triage-degraded"

NOTE_PREVIEW_CHARS = 200


@dataclass
class ScanOptions:
    """Options for one scan"""
    dry_run: bool = False
    limit: Optional[int] = None
    closed_only: bool = False
    force_reprocess: bool = False
    conversation_id: Optional[int] = None


@dataclass
class ConversationReport:
    """Outcome of processing one conversation"""
    conversation_id: int
    subject: str = ""
    customer_email: str = ""
    action: Optional[TriageAction] = None
    anger_score: Optional[int] = None
    urgency_score: Optional[int] = None
    anger_delta: Optional[int] = None
    urgency_delta: Optional[int] = None
    is_angry: bool = False
    is_high_urgency: bool = False
    is_spam: bool = False
    degraded: bool = False
    tags: List[str] = field(default_factory=list)  # added, or would be added on a dry run
    note_posted: bool = False
    note_preview: str = ""
    draft_created: bool = False
    notified: bool = False
    race_skipped: bool = False
    ai_call: bool = False
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data["action"] = self.action.value if self.action else None
        return data


@dataclass
class ScanSummary:
    """Totals and per-conversation reports for one scan"""
    dry_run: bool = False
    closed_only: bool = False
    force_reprocess: bool = False
    scanned: int = 0
    notes_added: int = 0
    tagged: int = 0
    skipped: int = 0
    stable: int = 0
    errors: int = 0
    ai_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    reports: List[ConversationReport] = field(default_factory=list)

    def record(self, report: ConversationReport) -> None:
        self.reports.append(report)
        self.scanned += 1
        if report.error:
            self.errors += 1
        if report.action == TriageAction.SKIP:
            self.skipped += 1
        elif report.action == TriageAction.INCREMENTAL_STABLE:
            self.stable += 1
        if report.note_posted:
            self.notes_added += 1
        if report.tags:
            self.tagged += 1
        if report.ai_call:
            self.ai_calls += 1
        self.input_tokens += report.input_tokens
        self.output_tokens += report.output_tokens
        self.cost += report.cost

    @property
    def angry(self) -> List[ConversationReport]:
        found = [r for r in self.reports if r.is_angry and not r.is_spam]
        return sorted(found, key=lambda r: r.anger_score or 0, reverse=True)

    @property
    def urgent(self) -> List[ConversationReport]:
        found = [r for r in self.reports if (r.is_angry or r.is_high_urgency) and not r.is_spam]
        return sorted(found, key=lambda r: r.urgency_score or 0, reverse=True)

    @property
    def spam(self) -> List[ConversationReport]:
        return [r for r in self.reports if r.is_spam]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "closed_only": self.closed_only,
            "force_reprocess": self.force_reprocess,
            "scanned": self.scanned,
            "notes_added": self.notes_added,
            "tagged": self.tagged,
            "skipped": self.skipped,
            "stable": self.stable,
            "errors": self.errors,
            "ai_calls": self.ai_calls,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": round(self.cost, 6),
            "angry": [r.conversation_id for r in self.angry],
            "urgent": [r.conversation_id for r in self.urgent],
            "spam": [r.conversation_id for r in self.spam],
            "reports": [r.to_dict() for r in self.reports],
        }


def tags_for(result: ScoringResult, existing: Sequence[str] = ()) -> List[str]:
    """Tags to add for a result, excluding ones already present"""
    if result.failed:
        return []
    wanted = []
    if result.is_spam:
        wanted.append(TAG_SPAM)
    if result.is_angry:
        wanted.append(TAG_ANGRY)
    if result.is_angry or result.is_high_urgency:
        wanted.append(TAG_HIGH_URGENCY)
    if result.topic_tag:
        wanted.append(result.topic_tag)
    if result.degraded:
        wanted.append(TAG_DEGRADED)
    present = set(existing)
    return [t for t in dict.fromkeys(wanted) if t not in present]


def build_context(
    conversation: Conversation,
    threads: Sequence[Thread],
    marker: Optional[EscalationMarker],
) -> ScoringContext:
    latest = latest_customer_thread(threads)
    earlier = sorted(
        (t for t in threads if t.is_customer_message and t is not latest),
        key=lambda t: t.created_at,
    )
    customer = conversation.customer
    return ScoringContext(
        conversation_id=conversation.id,
        subject=conversation.subject,
        customer_name=customer.display_name if customer else "",
        customer_email=customer.email if customer else "",
        history=[t.plain_text for t in earlier if t.plain_text],
        prior_anger=marker.anger_score if marker else None,
        prior_urgency=marker.urgency_score if marker else None,
    )


class TriagePipeline:
    """
    Sequential triage over HelpScout conversations.

    Usage:
        pipeline = TriagePipeline(helpscout, scorer)
        summary = pipeline.scan(ScanOptions(dry_run=True))
    """

    def __init__(
        self,
        helpscout: HelpScoutClient,
        scorer: BaseScorer,
        scanner_config: Optional[ScannerConfig] = None,
        decision: Optional[TriageDecision] = None,
        codec: Optional[EscalationStateCodec] = None,
        renderer: Optional[NoteRenderer] = None,
        notifier: Optional[TeamsNotifier] = None,
        usage_tracker: Optional[UsageTracker] = None,
    ):
        self._helpscout = helpscout
        self._scorer = scorer
        self._config = scanner_config or ScannerConfig()
        self._decision = decision or TriageDecision(self._config.escalation_threshold)
        self._codec = codec or EscalationStateCodec()
        self._renderer = renderer or NoteRenderer(self._codec)
        self._notifier = notifier
        self._usage = usage_tracker or UsageTracker()

    @property
    def scorer(self) -> BaseScorer:
        return self._scorer

    @property
    def usage(self) -> UsageTracker:
        return self._usage

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def scan(self, options: Optional[ScanOptions] = None) -> ScanSummary:
        """
        Run one scan.

        Raises:
            TransientUpstreamError: the conversation list itself could not be fetched
        """
        options = options or ScanOptions()
        force = effective_force(options.force_reprocess, options.closed_only, options.dry_run)
        summary = ScanSummary(
            dry_run=options.dry_run,
            closed_only=options.closed_only,
            force_reprocess=force,
        )

        conversations = self.fetch_conversations(options)
        logger.info(
            "Scanning %d %s conversation(s)%s",
            len(conversations),
            "closed" if options.closed_only else "active/pending",
            " (dry run)" if options.dry_run else "",
        )

        for conversation in conversations:
            report = self.process_conversation(conversation, dry_run=options.dry_run, force=force)
            summary.record(report)

        logger.info(
            "Scan complete: %d scanned, %d notes, %d skipped, %d stable, %d errors, $%.4f",
            summary.scanned, summary.notes_added, summary.skipped,
            summary.stable, summary.errors, summary.cost,
        )
        return summary

    def fetch_conversations(self, options: ScanOptions) -> List[Conversation]:
        if options.conversation_id is not None:
            return [self._helpscout.get_conversation(options.conversation_id)]

        if options.closed_only:
            statuses = [ConversationStatus.CLOSED]
        else:
            statuses = [ConversationStatus.ACTIVE, ConversationStatus.PENDING]

        max_items = self._config.max_items
        if options.limit is not None:
            max_items = max(1, min(max_items, options.limit))

        conversations: List[Conversation] = []
        for status in statuses:
            remaining = max_items - len(conversations)
            if remaining <= 0:
                break
            crawler = BoundedConversationCrawler(
                page_size=self._config.page_size,
                max_pages=self._config.max_pages,
                max_items=remaining,
            )
            result = crawler.crawl(
                lambda page, size, status=status: self._helpscout.list_conversations(status, page, size)
            )
            conversations.extend(result.items)
        return conversations

    # ------------------------------------------------------------------
    # Per conversation
    # ------------------------------------------------------------------

    def process_conversation(
        self,
        conversation: Conversation,
        dry_run: bool = False,
        force: bool = False,
    ) -> ConversationReport:
        """Triage one conversation. Never raises; errors land on the report."""
        report = ConversationReport(
            conversation_id=conversation.id,
            subject=conversation.subject,
            customer_email=conversation.customer.email if conversation.customer else "",
        )
        try:
            self._process(conversation, report, dry_run, force)
        except Exception as e:
            logger.exception("Failed to process conversation %s", conversation.id)
            report.error = f"{type(e).__name__}: {e}"
        return report

    def _process(
        self,
        conversation: Conversation,
        report: ConversationReport,
        dry_run: bool,
        force: bool,
    ) -> None:
        threads = self._helpscout.list_threads(conversation.id)
        marker = self._codec.decode(threads)

        if not self._decision.needs_scoring(threads, marker, force):
            outcome = self._decision.decide(threads, marker, force=force)
            report.action = outcome.action
            logger.info("%s: no new customer messages, skipping", conversation.id)
            return

        text = analysis_text(conversation.subject, threads, conversation.preview)
        result = self._scorer.analyze(text, build_context(conversation, threads, marker))
        usage_line = self._record_usage(result, report)

        outcome = self._decision.decide(threads, marker, result, force)
        self._fill_report(report, result, outcome)

        tags = tags_for(result, conversation.tags)
        note = self._renderer.render(result, outcome, conversation.subject, usage_line)
        report.tags = tags
        if note:
            report.note_preview = note[:NOTE_PREVIEW_CHARS]

        if dry_run:
            logger.info(
                "[DRY RUN] %s: %s, would add tags %s%s",
                conversation.id, outcome.action.value, tags or "none",
                ", would add note" if note else "",
            )
            return

        current_tags = list(conversation.tags)
        for tag in tags:
            self._helpscout.add_tag(conversation.id, tag, existing=current_tags)
            current_tags.append(tag)

        if note is None:
            logger.info("%s: sentiment stable, no note", conversation.id)
            return

        if outcome.action == TriageAction.INITIAL and self._marker_appeared(conversation.id):
            report.race_skipped = True
            logger.info("%s: analysis note appeared during processing, not posting", conversation.id)
            return

        self._helpscout.publish_note(conversation.id, note)
        report.note_posted = True

        self._maybe_create_draft(conversation, threads, result, report)
        self._maybe_notify(conversation, note, result, report)

    def _marker_appeared(self, conversation_id: int) -> bool:
        return self._codec.decode(self._helpscout.list_threads(conversation_id)) is not None

    def _record_usage(self, result: ScoringResult, report: ConversationReport) -> Optional[str]:
        if result.source != ScoreSource.AI or result.usage is None:
            return None
        cost = self._usage.track(result.usage.input_tokens, result.usage.output_tokens)
        report.ai_call = True
        report.input_tokens = result.usage.input_tokens
        report.output_tokens = result.usage.output_tokens
        report.cost = cost
        return self._usage.usage_line(cost)

    @staticmethod
    def _fill_report(report: ConversationReport, result: ScoringResult, outcome: TriageOutcome) -> None:
        report.action = outcome.action
        report.anger_score = result.anger_score
        report.urgency_score = result.urgency_score
        report.is_angry = result.is_angry
        report.is_high_urgency = result.is_high_urgency
        report.is_spam = result.is_spam
        report.degraded = result.degraded
        if result.failed:
            report.error = result.error
        if outcome.score_delta is not None:
            report.anger_delta = outcome.score_delta.anger_delta
            report.urgency_delta = outcome.score_delta.urgency_delta

    def _maybe_create_draft(
        self,
        conversation: Conversation,
        threads: Sequence[Thread],
        result: ScoringResult,
        report: ConversationReport,
    ) -> None:
        if not self._config.drafts_enabled or not result.suggested_response:
            return
        if result.is_spam or result.failed or has_draft_reply(threads):
            return
        customer_id = conversation.customer.id if conversation.customer else None
        if customer_id is None:
            return
        try:
            self._helpscout.create_draft_reply(conversation.id, customer_id, result.suggested_response)
            report.draft_created = True
        except TransientUpstreamError as e:
            logger.warning("Failed to create draft reply for %s: %s", conversation.id, e)

    def _maybe_notify(
        self,
        conversation: Conversation,
        note: str,
        result: ScoringResult,
        report: ConversationReport,
    ) -> None:
        if self._notifier is None or result.is_spam or result.failed:
            return
        if not (result.is_angry or result.is_high_urgency):
            return
        report.notified = self._notifier.notify(
            conversation.id,
            conversation.subject,
            note,
            result,
            customer_email=report.customer_email,
        )
