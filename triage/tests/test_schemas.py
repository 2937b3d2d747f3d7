"""Tests for conversation helpers."""

from datetime import datetime, timedelta, timezone

from triage.common.schemas import (
    Customer,
    Thread,
    ThreadKind,
    ThreadState,
    analysis_text,
    has_draft_reply,
    latest_customer_thread,
    strip_html,
)

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def thread(kind, minutes, body="x", **kwargs):
    return Thread(kind=kind, body=body, created_at=T0 + timedelta(minutes=minutes), **kwargs)


class TestStripHtml:
    def test_tags_and_entities(self):
        assert strip_html("<p>Hello&nbsp;<b>there</b></p><br>&amp; bye") == "Hello there & bye"

    def test_empty(self):
        assert strip_html("") == ""


class TestThreadHelpers:
    def test_latest_customer_by_timestamp(self):
        threads = [
            thread(ThreadKind.CUSTOMER, 30, "newest"),
            thread(ThreadKind.CUSTOMER, 0, "oldest"),
            thread(ThreadKind.REPLY, 60, "agent"),
        ]
        assert latest_customer_thread(threads).body == "newest"

    def test_no_customer_thread(self):
        assert latest_customer_thread([thread(ThreadKind.NOTE, 0)]) is None

    def test_draft_detection(self):
        assert has_draft_reply([thread(ThreadKind.DRAFT, 0)])
        assert has_draft_reply([thread(ThreadKind.REPLY, 0, state=ThreadState.DRAFT)])
        assert not has_draft_reply([thread(ThreadKind.REPLY, 0)])


class TestAnalysisText:
    def test_subject_and_latest_message(self):
        threads = [thread(ThreadKind.CUSTOMER, 0, "<p>My card was charged twice</p>")]
        assert analysis_text("Billing", threads) == "Billing\n\nMy card was charged twice"

    def test_preview_fallback(self):
        assert analysis_text("Hi", [], preview="preview text") == "Hi\n\npreview text"

    def test_nothing_available(self):
        assert analysis_text("", []) == ""


class TestCustomer:
    def test_display_name_falls_back_to_email(self):
        assert Customer(email="a@b.com").display_name == "a@b.com"
        assert Customer().display_name == "Unknown"
