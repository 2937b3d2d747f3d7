"""
HelpScout Mailbox API client.

Thin synchronous wrapper over the v2 REST API using httpx. Authenticates with
the OAuth2 client-credentials flow and caches the access token until shortly
before it expires.

Errors are mapped onto the triage error taxonomy and never retried here:
- 401/403             -> UpstreamAuthError
- 429, 5xx, transport -> TransientUpstreamError
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import httpx

from ..analysis.crawler import BoundedConversationCrawler, Page
from .config import HelpScoutConfig
from .errors import TransientUpstreamError, UpstreamAuthError
from .schemas import Conversation, ConversationStatus, Customer, Thread, ThreadKind, ThreadState

logger = logging.getLogger("triage.common.helpscout_client")

TOKEN_EXPIRY_MARGIN_SECONDS = 60

_CUSTOMER_TYPES = {"customer", "chat", "phone"}
_REPLY_TYPES = {"message", "reply"}


def parse_thread(data: Dict[str, Any]) -> Optional[Thread]:
    """Map a HelpScout thread payload; returns None for non-message entries (line items)"""
    raw_type = (data.get("type") or "").lower()
    state = ThreadState.DRAFT if data.get("state") == "draft" else ThreadState.PUBLISHED

    if raw_type in _CUSTOMER_TYPES:
        kind = ThreadKind.CUSTOMER
    elif raw_type == "note":
        kind = ThreadKind.NOTE
    elif raw_type in _REPLY_TYPES:
        kind = ThreadKind.DRAFT if state == ThreadState.DRAFT else ThreadKind.REPLY
    else:
        return None

    created_by = data.get("createdBy") or {}
    author = created_by.get("email") or created_by.get("first")
    return Thread(
        id=data.get("id"),
        kind=kind,
        body=data.get("body") or "",
        created_at=data["createdAt"],
        state=state,
        author=author,
    )


def parse_conversation(data: Dict[str, Any]) -> Conversation:
    customer_data = data.get("primaryCustomer") or {}
    customer = None
    if customer_data:
        customer = Customer(
            id=customer_data.get("id"),
            email=customer_data.get("email") or "",
            first_name=customer_data.get("first") or "",
            last_name=customer_data.get("last") or "",
        )

    threads = []
    for raw in (data.get("_embedded") or {}).get("threads", []):
        thread = parse_thread(raw)
        if thread is not None:
            threads.append(thread)

    status = data.get("status") or "active"
    try:
        status = ConversationStatus(status)
    except ValueError:
        logger.debug("Unknown conversation status %r, treating as active", status)
        status = ConversationStatus.ACTIVE

    return Conversation(
        id=data["id"],
        number=data.get("number"),
        subject=data.get("subject") or "",
        status=status,
        threads=threads,
        tags=[t.get("tag") for t in data.get("tags") or [] if t.get("tag")],
        customer=customer,
        preview=data.get("preview") or "",
        created_at=data.get("createdAt"),
    )


def _page_info(payload: Dict[str, Any], page_number: int) -> Dict[str, Any]:
    info = payload.get("page") or {}
    return {
        "page_number": info.get("number", page_number),
        "total_pages": info.get("totalPages"),
    }


class HelpScoutClient:
    """
    HelpScout Mailbox API v2 client.

    Usage:
        client = HelpScoutClient(config.helpscout)
        page = client.list_conversations(ConversationStatus.ACTIVE, page=1, page_size=50)
        threads = client.list_threads(page.items[0].id)
    """

    def __init__(self, config: HelpScoutConfig, http_client: Optional[httpx.Client] = None):
        self._config = config
        self._http = http_client or httpx.Client(timeout=config.timeout)
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self._config.app_id and self._config.app_secret)

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _authenticate(self) -> str:
        if self._access_token and time.time() < self._token_expiry:
            return self._access_token

        if not self.is_configured:
            raise UpstreamAuthError("HelpScout app id/secret are not configured")

        try:
            response = self._http.post(
                self._config.token_url,
                json={
                    "grant_type": "client_credentials",
                    "client_id": self._config.app_id,
                    "client_secret": self._config.app_secret,
                },
            )
        except httpx.HTTPError as e:
            raise TransientUpstreamError(f"HelpScout token request failed: {e}") from e

        self._raise_for_status(response, "token")
        data = response.json()
        self._access_token = data["access_token"]
        expires_in = int(data.get("expires_in", 7200))
        self._token_expiry = time.time() + max(0, expires_in - TOKEN_EXPIRY_MARGIN_SECONDS)
        logger.debug("Obtained HelpScout access token (expires in %ds)", expires_in)
        return self._access_token

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        status = response.status_code
        if status in (401, 403):
            raise UpstreamAuthError(f"HelpScout rejected credentials for {what} ({status})", status)
        if status == 429 or status >= 500:
            raise TransientUpstreamError(f"HelpScout {what} failed with {status}", status)
        if status >= 400:
            raise TransientUpstreamError(
                f"HelpScout {what} failed with {status}: {response.text[:200]}", status
            )

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        token = self._authenticate()
        url = f"{self._config.base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise TransientUpstreamError(f"HelpScout {method} {path} failed: {e}") from e

        if response.status_code == 401:
            # Token revoked early; drop it so the next call re-authenticates
            self._access_token = None
        self._raise_for_status(response, f"{method} {path}")
        return response

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def list_conversations(
        self,
        status: ConversationStatus = ConversationStatus.ACTIVE,
        page: int = 1,
        page_size: int = 50,
    ) -> Page:
        """One page of conversations with the given status.

        HelpScout fixes the page size server-side (50), so the whole page is
        returned and ``page_size`` is only a hint; callers cap totals.
        """
        response = self._request(
            "GET",
            "/conversations",
            params={"status": ConversationStatus(status).value, "page": page, "sortField": "modifiedAt"},
        )
        payload = response.json()
        raw = (payload.get("_embedded") or {}).get("conversations", [])
        items = [parse_conversation(c) for c in raw]
        return Page(items=items, **_page_info(payload, page))

    def get_conversation(self, conversation_id: int) -> Conversation:
        response = self._request("GET", f"/conversations/{conversation_id}")
        return parse_conversation(response.json())

    def list_threads(self, conversation_id: int) -> List[Thread]:
        """All threads of a conversation, bounded by ``thread_max_pages``"""
        def fetch(page_number: int, page_size: int) -> Page:
            response = self._request(
                "GET",
                f"/conversations/{conversation_id}/threads",
                params={"page": page_number},
            )
            payload = response.json()
            raw = (payload.get("_embedded") or {}).get("threads", [])
            return Page(items=raw, **_page_info(payload, page_number))

        crawler = BoundedConversationCrawler(
            page_size=50,
            max_pages=self._config.thread_max_pages,
            max_items=50 * self._config.thread_max_pages,
        )
        result = crawler.crawl(fetch)
        if result.stop_reason in ("max_pages", "max_items"):
            logger.warning(
                "Thread listing for conversation %s may be truncated (%s)",
                conversation_id, result.stop_reason,
            )

        threads = []
        for raw in result.items:
            thread = parse_thread(raw)
            if thread is not None:
                threads.append(thread)
        return threads

    def publish_note(self, conversation_id: int, text: str) -> None:
        """Add an internal note. HTML line breaks keep the layout in the UI."""
        self._request(
            "POST",
            f"/conversations/{conversation_id}/notes",
            json={"text": text.replace("\n", "<br>")},
        )
        logger.info("Published note on conversation %s", conversation_id)

    def add_tag(self, conversation_id: int, tag: str, existing: Iterable[str] = ()) -> None:
        """Add one tag. The tags endpoint replaces the full set, so existing tags are resent."""
        tags = list(dict.fromkeys([*existing, tag]))
        self._request(
            "PUT",
            f"/conversations/{conversation_id}/tags",
            json={"tags": tags},
        )
        logger.info("Tagged conversation %s with %s", conversation_id, tag)

    def create_draft_reply(self, conversation_id: int, customer_id: int, text: str) -> None:
        self._request(
            "POST",
            f"/conversations/{conversation_id}/reply",
            json={
                "customer": {"id": customer_id},
                "text": text.replace("\n", "<br>"),
                "draft": True,
            },
        )
        logger.info("Created draft reply on conversation %s", conversation_id)
