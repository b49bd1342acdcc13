"""
Crawl cycles: one query paginated to persistence, and the keyword fan-out
that runs one cycle per distinct active-user keyword.
"""
import logging
import asyncio
from typing import Iterable, List, Optional

from core.dedup_ledger import DedupLedger
from core.models import SearchQuery, DEFAULT_LOCATION
from core.outcomes import CrawlSummary, FailureKind, FanoutSummary, UnitResult, UnitStatus
from core.pacing import Pacer
from crawler.listing_crawler import MAX_PAGES

logger = logging.getLogger(__name__)


def distinct_keywords(raw_keywords: Iterable[Optional[str]]) -> List[str]:
    """Trim, drop empty values and dedupe, keeping first-seen order."""
    seen = set()
    keywords = []
    for keyword in raw_keywords:
        keyword = (keyword or "").strip()
        if keyword and keyword not in seen:
            seen.add(keyword)
            keywords.append(keyword)
    return keywords


class KeywordFanout:
    """
    Runs crawl cycles sequentially.

    Pages within a query, and keywords within a fan-out, never run
    concurrently; only candidates within one batch group do.
    """

    def __init__(
        self,
        crawler,
        batch_processor,
        user_directory,
        page_pacer: Pacer,
        keyword_pacer: Pacer,
        max_pages: int = MAX_PAGES,
        location: str = DEFAULT_LOCATION,
    ):
        self.crawler = crawler
        self.batch_processor = batch_processor
        self.user_directory = user_directory
        self.page_pacer = page_pacer
        self.keyword_pacer = keyword_pacer
        self.max_pages = max_pages
        self.location = location

    async def run_query(self, query: SearchQuery) -> CrawlSummary:
        """Crawl up to `max_pages` pages for one query and persist the results."""
        ledger = DedupLedger()
        summary = CrawlSummary(query=query.describe())

        for page_index in range(self.max_pages):
            dropped: List[str] = []
            candidates = await self.crawler.fetch_candidates(query, page_index, ledger, dropped)
            summary.results.extend(
                UnitResult.failed(card, FailureKind.PARSE_FAILURE, "card without title or url")
                for card in dropped
            )

            if candidates is None:
                summary.results.append(
                    UnitResult.failed(f"page {page_index + 1}", FailureKind.NAVIGATION_TIMEOUT, "page not loaded")
                )
            elif not candidates:
                logger.info(f"[fanout] No new postings on page {page_index + 1}, stopping")
                break
            else:
                summary.pages_fetched += 1
                results = await self.batch_processor.process_with_results(candidates)
                summary.results.extend(results)
                summary.created += sum(1 for r in results if r.status is UnitStatus.CREATED)
                summary.candidates.extend(candidates)

            if page_index < self.max_pages - 1:
                await self.page_pacer.wait()

        logger.info(f"[fanout] Query done ({summary.query}): {summary.created} new postings saved")
        return summary

    def default_query(self, keyword: str = "") -> SearchQuery:
        return SearchQuery(keyword=keyword, location=self.location, last_24h=True, remote=True)

    async def run_for_users(self) -> FanoutSummary:
        """Run one crawl cycle per distinct active-user keyword, or one broad fallback cycle."""
        logger.info("[fanout] Starting user keyword crawl cycle...")
        raw_keywords = await asyncio.to_thread(self.user_directory.list_active_keywords)
        keywords = distinct_keywords(raw_keywords)
        summary = FanoutSummary(keywords=keywords)

        if not keywords:
            logger.info("[fanout] No user keywords found, running default broad search")
            summary.fallback = True
            result = await self.run_query(self.default_query())
            summary.created = result.created
            return summary

        logger.info(f"[fanout] Found {len(keywords)} distinct keywords: {', '.join(keywords)}")

        for position, keyword in enumerate(keywords):
            if position > 0:
                await self.keyword_pacer.wait()

            logger.info(f"[fanout] >>> Processing keyword: {keyword!r}")
            try:
                result = await self.run_query(self.default_query(keyword))
                summary.created += result.created
                summary.results.append(UnitResult(keyword, UnitStatus.OK))
            except Exception as e:
                logger.error(f"[fanout] Error processing keyword {keyword!r}: {e}", exc_info=True)
                summary.results.append(UnitResult.failed(keyword, FailureKind.UNEXPECTED, str(e)))

        logger.info(f"[fanout] Keyword crawl cycle finished: {summary.created} new postings")
        return summary
