"""
Listing crawler for the LinkedIn public job search.

Loads one search-results page in the shared browser, scrolls to trigger the
lazy-loaded cards, and parses them into crawl candidates.
"""
import logging
from typing import Iterator, List, Optional
from urllib.parse import urlencode

from bs4 import BeautifulSoup
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.dedup_ledger import DedupLedger, normalize_url
from core.models import CrawlCandidate, SearchQuery, DEFAULT_LOCATION

logger = logging.getLogger(__name__)

SEARCH_BASE_URL = "https://www.linkedin.com/jobs/search"
GEO_ID_BRAZIL = "106057199"
PAGE_SIZE = 25
MAX_PAGES = 4

RESULTS_SELECTOR = "ul.jobs-search__results-list"
CARD_SELECTOR = "ul.jobs-search__results-list li"

NAVIGATION_TIMEOUT_MS = 30000
RESULTS_TIMEOUT_MS = 10000
SCROLL_CYCLES = 3
SCROLL_WAIT_MS = 2000
VIEWPORT = {"width": 1280, "height": 800}


def build_search_url(query: SearchQuery, page: int = 0) -> str:
    """Build the search URL for a query and zero-based page index."""
    params = {
        "keywords": (query.keyword or "").strip(),
        "location": (query.location or "").strip() or DEFAULT_LOCATION,
        "geoId": GEO_ID_BRAZIL,
    }
    if query.last_24h:
        params["f_TPR"] = "r86400"
    if query.remote:
        params["f_WT"] = "2"
    if page:
        params["start"] = str(page * PAGE_SIZE)
    params["origin"] = "JOB_SEARCH_PAGE_SEARCH_BUTTON"
    params["refresh"] = "true"
    return f"{SEARCH_BASE_URL}?{urlencode(params)}"


def _text(card, selector: str) -> str:
    el = card.select_one(selector)
    return el.get_text(strip=True) if el else ""


def parse_job_cards(html: str, dropped: Optional[List[str]] = None) -> Iterator[CrawlCandidate]:
    """
    Yield a candidate per result card, in card order.

    Cards without a title or link are dropped and, when `dropped` is given,
    reported there by title, url or position. URLs are returned without their
    query string.
    """
    if not html:
        return
    soup = BeautifulSoup(html, "html.parser")
    for position, card in enumerate(soup.select(CARD_SELECTOR), start=1):
        title = _text(card, ".base-search-card__title")
        link = card.select_one("a.base-card__full-link")
        url = normalize_url(link.get("href", "")) if link else ""
        if not title or not url:
            logger.debug("[scraper] Dropping card without title or url")
            if dropped is not None:
                dropped.append(title or url or f"card {position}")
            continue
        yield CrawlCandidate(
            title=title,
            company=_text(card, ".base-search-card__subtitle"),
            location=_text(card, ".job-search-card__location"),
            posted_date_text=_text(card, "time"),
            url=url,
        )


class ListingCrawler:
    """Fetches and parses search-result pages."""

    def __init__(self, session, scroll_cycles: int = SCROLL_CYCLES, scroll_wait_ms: int = SCROLL_WAIT_MS):
        self.session = session
        self.scroll_cycles = scroll_cycles
        self.scroll_wait_ms = scroll_wait_ms

    async def fetch_page_html(self, url: str) -> str:
        """
        Load a results page and return its rendered HTML.

        A timeout waiting for the results list is tolerated; whatever HTML is
        present is returned. Navigation errors propagate.
        """
        page = None
        try:
            page = await self.session.new_page(viewport=VIEWPORT)
            await page.goto(url, wait_until='domcontentloaded', timeout=NAVIGATION_TIMEOUT_MS)

            try:
                await page.wait_for_selector(RESULTS_SELECTOR, timeout=RESULTS_TIMEOUT_MS)
            except PlaywrightTimeoutError:
                logger.warning(f"[scraper] Timeout waiting for results list: {url}")

            # Infinite scroll loads more cards
            for _ in range(self.scroll_cycles):
                await page.evaluate("() => window.scrollBy(0, document.body.scrollHeight)")
                await page.wait_for_timeout(self.scroll_wait_ms)

            return await page.content()
        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.debug(f"[scraper] Error closing page: {e}")

    async def fetch_candidates(self, query: SearchQuery, page_index: int,
                               ledger: DedupLedger,
                               dropped: Optional[List[str]] = None) -> Optional[List[CrawlCandidate]]:
        """
        Return the candidates of one page that the ledger has not seen.

        Returns None when the page could not be loaded, so the caller moves on
        to the next page instead of treating it as the end of results. Cards
        that could not be parsed are appended to `dropped`.
        """
        url = build_search_url(query, page_index)
        logger.info(f"[scraper] Fetching page {page_index + 1} ({query.describe()}): {url}")

        try:
            html = await self.fetch_page_html(url)
        except Exception as e:
            logger.error(f"[scraper] Error loading page {page_index + 1}: {e}")
            return None

        if not html:
            return None

        page_dropped: List[str] = []
        cards = list(parse_job_cards(html, page_dropped))
        if dropped is not None:
            dropped.extend(page_dropped)
        new_candidates = [c for c in cards if ledger.add(c.url)]

        logger.info(
            f"[scraper] Page {page_index + 1}: {len(cards)} cards, {len(new_candidates)} new, "
            f"{len(page_dropped)} dropped"
        )
        return new_candidates
