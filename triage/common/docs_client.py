"""
HelpScout Docs client

Fetches knowledge base articles for AI scoring context and ranks them
against a customer message with simple keyword relevance.

The article list is held in a TimedCache owned by whoever builds the client,
so its lifetime and invalidation are explicit.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

import httpx

from .config import DocsConfig
from .errors import TransientUpstreamError, UpstreamAuthError

logger = logging.getLogger("triage.common.docs_client")

T = TypeVar("T")

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "how", "what", "when", "where", "why", "can", "could",
    "would", "should", "i", "you", "we", "they", "it", "this", "that", "my",
    "your",
})

SUPPORT_TOPICS = (
    ("cancel", "cancellation", "subscription"),
    ("refund", "money", "payment", "billing"),
    ("login", "password", "account", "access"),
    ("broken", "not working", "error", "bug"),
    ("upgrade", "downgrade", "plan", "pricing"),
)

MAX_KEY_TERMS = 10
TITLE_MATCH_POINTS = 10
TEXT_MATCH_POINTS = 1
TOPIC_BOOST_POINTS = 5


@dataclass
class Article:
    """A published knowledge base article"""
    id: str
    title: str
    text: str = ""
    url: str = ""
    collection_id: Optional[str] = None


class TimedCache(Generic[T]):
    """
    Single-value cache refreshed after ``ttl_seconds``.

    A failed refresh keeps serving the previous value.
    """

    def __init__(self, ttl_seconds: float = 3600, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._value: Optional[T] = None
        self._fetched_at: Optional[float] = None

    @property
    def is_fresh(self) -> bool:
        return self._fetched_at is not None and self._clock() - self._fetched_at < self._ttl

    def invalidate(self) -> None:
        self._fetched_at = None

    def get(self, loader: Callable[[], T]) -> Optional[T]:
        if self.is_fresh:
            return self._value
        try:
            self._value = loader()
            self._fetched_at = self._clock()
        except (TransientUpstreamError, httpx.HTTPError) as e:
            if self._value is None:
                raise
            logger.warning("Cache refresh failed, serving stale value: %s", e)
        return self._value


def extract_key_terms(message: str) -> List[str]:
    words = re.sub(r"[^\w\s]", " ", message.lower()).split()
    terms = [w for w in words if len(w) > 2 and w not in STOPWORDS]
    return terms[:MAX_KEY_TERMS]


def _is_common_topic(message: str, article_text: str) -> bool:
    return any(
        any(word in message and word in article_text for word in topic)
        for topic in SUPPORT_TOPICS
    )


def rank_articles(message: str, articles: List[Article], limit: int = 3) -> List[Article]:
    """Keyword relevance ranking. Articles scoring zero are dropped."""
    lowered = message.lower()
    terms = extract_key_terms(lowered)
    scored = []
    for article in articles:
        title = article.title.lower()
        text = f"{title} {article.text.lower()}"
        score = 0
        for term in terms:
            if term in title:
                score += TITLE_MATCH_POINTS
            if term in text:
                score += TEXT_MATCH_POINTS
        if _is_common_topic(lowered, text):
            score += TOPIC_BOOST_POINTS
        if score > 0:
            scored.append((score, article))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [article for _, article in scored[:limit]]


def _items(data: Any, key: str) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return data
    section = data.get(key)
    if isinstance(section, dict):
        return section.get("items", [])
    return section or data.get("items", [])


class DocsClient:
    """
    HelpScout Docs API v1 client.

    Usage:
        cache = TimedCache(ttl_seconds=config.docs.cache_ttl_seconds)
        docs = DocsClient(config.docs, cache=cache)
        articles = docs.find_relevant_articles("how do I cancel my plan?")
    """

    def __init__(
        self,
        config: DocsConfig,
        cache: Optional[TimedCache] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self._config = config
        self._cache = cache if cache is not None else TimedCache(config.cache_ttl_seconds)
        self._http = http_client or httpx.Client(timeout=config.timeout)

    @property
    def is_available(self) -> bool:
        return bool(self._config.api_key)

    def close(self) -> None:
        self._http.close()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = self._http.get(
                f"{self._config.base_url}{path}",
                params=params,
                auth=(self._config.api_key, "X"),
            )
        except httpx.HTTPError as e:
            raise TransientUpstreamError(f"Docs API {path} failed: {e}") from e
        if response.status_code in (401, 403):
            raise UpstreamAuthError(f"Docs API rejected credentials ({response.status_code})", response.status_code)
        if response.status_code >= 400:
            raise TransientUpstreamError(f"Docs API {path} failed with {response.status_code}", response.status_code)
        return response.json()

    def list_collections(self) -> List[Dict[str, Any]]:
        return _items(self._get("/collections"), "collections")

    def list_articles(self, collection_id: str) -> List[Article]:
        data = self._get(
            f"/collections/{collection_id}/articles",
            params={"status": "published", "sort": "updated"},
        )
        return [
            Article(
                id=str(a.get("id")),
                title=a.get("name") or a.get("title") or "",
                text=a.get("text") or a.get("preview") or "",
                url=a.get("publicUrl") or a.get("url") or "",
                collection_id=collection_id,
            )
            for a in _items(data, "articles")
        ]

    def get_article(self, article_id: str) -> Optional[Article]:
        try:
            data = self._get(f"/articles/{article_id}")
        except TransientUpstreamError as e:
            logger.warning("Failed to fetch article %s: %s", article_id, e)
            return None
        a = data.get("article") or {}
        if not a:
            return None
        return Article(
            id=str(a.get("id", article_id)),
            title=a.get("name") or "",
            text=a.get("text") or "",
            url=a.get("publicUrl") or "",
            collection_id=a.get("collectionId"),
        )

    def _load_all_articles(self) -> List[Article]:
        articles: List[Article] = []
        for collection in self.list_collections():
            collection_id = str(collection.get("id"))
            try:
                articles.extend(self.list_articles(collection_id))
            except TransientUpstreamError as e:
                logger.warning("Skipping collection %s: %s", collection_id, e)
        logger.info("Loaded %d knowledge base articles", len(articles))
        return articles

    def cached_articles(self) -> List[Article]:
        return self._cache.get(self._load_all_articles) or []

    def find_relevant_articles(self, message: str, limit: Optional[int] = None) -> List[Article]:
        """Top articles for a customer message; empty when unavailable"""
        if not self.is_available:
            return []
        try:
            articles = self.cached_articles()
        except TransientUpstreamError as e:
            logger.warning("Knowledge base unavailable: %s", e)
            return []
        return rank_articles(message, articles, limit or self._config.max_articles)
