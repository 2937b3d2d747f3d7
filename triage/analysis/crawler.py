"""
Bounded Conversation Crawler

Pulls pages from a paginated upstream until it runs out or a hard cap is hit.
Reported page totals are treated as stop hints only; the page and item caps
bound the number of API calls regardless of what the upstream claims.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("triage.analysis.crawler")

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page returned by a fetcher"""
    items: List[T] = field(default_factory=list)
    page_number: int = 1
    total_pages: Optional[int] = None
    has_more: Optional[bool] = None


@dataclass
class CrawlResult(Generic[T]):
    items: List[T]
    pages_fetched: int
    stop_reason: str


PageFetcher = Callable[[int, int], Page]


class BoundedConversationCrawler:
    """
    Accumulates items across pages under page and item caps.

    Stops when:
    - a page comes back empty
    - the fetcher reports this was the last page
    - ``max_pages`` pages have been fetched
    - ``max_items`` items have been accumulated
    """

    def __init__(self, page_size: int = 50, max_pages: int = 10, max_items: int = 500):
        if page_size < 1 or max_pages < 1 or max_items < 1:
            raise ValueError("page_size, max_pages and max_items must be positive")
        self.page_size = page_size
        self.max_pages = max_pages
        self.max_items = max_items

    def crawl(self, fetch_page: PageFetcher) -> CrawlResult:
        items: List = []
        pages_fetched = 0
        page_number = 1
        stop_reason = "max_pages"

        while pages_fetched < self.max_pages:
            page = fetch_page(page_number, self.page_size)
            pages_fetched += 1

            if not page.items:
                stop_reason = "empty_page"
                break

            items.extend(page.items)
            if len(items) >= self.max_items:
                items = items[:self.max_items]
                stop_reason = "max_items"
                break

            if page.has_more is False:
                stop_reason = "last_page"
                break
            if page.total_pages is not None and page_number >= page.total_pages:
                stop_reason = "last_page"
                break

            page_number += 1

        logger.debug(
            "Crawl stopped (%s) after %d page(s), %d item(s)",
            stop_reason, pages_fetched, len(items),
        )
        return CrawlResult(items=items, pages_fetched=pages_fetched, stop_reason=stop_reason)


def crawl(fetch_page: PageFetcher, page_size: int, max_pages: int, max_items: int) -> List:
    """Functional shortcut returning only the accumulated items"""
    crawler = BoundedConversationCrawler(page_size=page_size, max_pages=max_pages, max_items=max_items)
    return crawler.crawl(fetch_page).items
