"""
Conversation Schema

Read-only view of a HelpScout conversation and its thread history as seen by
the triage core. Threads are kept in the order the platform returns them;
timestamps, not list position, are authoritative for ordering.
"""

import html
import re
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(body: str) -> str:
    """Replace markup with spaces and collapse whitespace"""
    if not body:
        return ""
    text = html.unescape(_TAG_RE.sub(" ", body))
    return _WS_RE.sub(" ", text).strip()


# ============================================================================
# Enums
# ============================================================================

class ConversationStatus(str, Enum):
    """Conversation lifecycle status"""
    ACTIVE = "active"
    PENDING = "pending"
    CLOSED = "closed"


class ThreadKind(str, Enum):
    """Kind of entry in a conversation's history"""
    CUSTOMER = "customer"
    REPLY = "reply"
    NOTE = "note"
    DRAFT = "draft"


class ThreadState(str, Enum):
    """Publication state of a thread"""
    PUBLISHED = "published"
    DRAFT = "draft"


# ============================================================================
# Models
# ============================================================================

class Thread(BaseModel):
    """One entry in a conversation's history"""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    kind: ThreadKind
    body: str = ""
    created_at: datetime
    state: ThreadState = ThreadState.PUBLISHED
    author: Optional[str] = None

    @property
    def plain_text(self) -> str:
        return strip_html(self.body)

    @property
    def is_customer_message(self) -> bool:
        return self.kind == ThreadKind.CUSTOMER

    @property
    def is_note(self) -> bool:
        return self.kind == ThreadKind.NOTE

    @property
    def is_draft(self) -> bool:
        return self.kind == ThreadKind.DRAFT or self.state == ThreadState.DRAFT


class Customer(BaseModel):
    """Primary customer on a conversation"""
    id: Optional[int] = None
    email: str = ""
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email or "Unknown"


class Conversation(BaseModel):
    """A support ticket with its ordered history"""
    id: int
    number: Optional[int] = None
    subject: str = ""
    status: ConversationStatus = ConversationStatus.ACTIVE
    threads: List[Thread] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    customer: Optional[Customer] = None
    preview: str = ""
    created_at: Optional[datetime] = None


# ============================================================================
# Helpers
# ============================================================================

def latest_customer_thread(threads: Sequence[Thread]) -> Optional[Thread]:
    """Most recent customer message by creation time"""
    customer_threads = [t for t in threads if t.is_customer_message]
    if not customer_threads:
        return None
    return max(customer_threads, key=lambda t: t.created_at)


def has_draft_reply(threads: Sequence[Thread]) -> bool:
    return any(t.is_draft for t in threads)


def analysis_text(subject: str, threads: Sequence[Thread], preview: str = "") -> str:
    """Build the text that gets scored.

    Subject plus the latest customer message. Falls back to the conversation
    preview when no customer message is available.
    """
    latest = latest_customer_thread(threads)
    message = latest.plain_text if latest else strip_html(preview)
    parts = [p for p in (subject.strip(), message) if p]
    return "\n\n".join(parts)
