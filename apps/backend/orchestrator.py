"""
Pipeline orchestrator: wires the crawl, enrichment and retention cycles and
runs each on its own timer.
"""
import logging
import asyncio
from typing import Awaitable, Callable, Dict, List, Optional
from datetime import datetime, timedelta, timezone

from app.ai_service import AIService
from app.config import Settings
from app.enrichment_worker import EnrichmentProcessor
from app.job_store import JobStore
from app.user_directory import UserDirectory
from core.errors import ConfigurationMissingError
from core.models import SearchQuery
from core.outcomes import CrawlSummary, EnrichmentReport, FanoutSummary
from core.pacing import Pacer
from crawler.batch_processor import BatchProcessor
from crawler.browser_session import BrowserSession
from crawler.detail_fetcher import DetailFetcher
from crawler.fanout import KeywordFanout
from crawler.listing_crawler import ListingCrawler

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_ERRORS = 5


class JobPipeline:
    """
    Trigger surface for the three cycles.

    Every collaborator is injected; `build_pipeline` constructs the real ones
    once at process start.
    """

    def __init__(
        self,
        store,
        session,
        fanout: KeywordFanout,
        enrichment: EnrichmentProcessor,
        retention_hours: float = 25.0,
    ):
        self.store = store
        self.session = session
        self.fanout = fanout
        self.enrichment = enrichment
        self.retention_hours = retention_hours

    async def run_crawl_cycle(self, query: Optional[SearchQuery] = None) -> CrawlSummary | FanoutSummary:
        """
        Crawl one query, or fan out over active users' keywords when no query
        is given.

        Raises:
            BrowserUnavailableError: the browser session could not be started
        """
        # Fail fast if the cycle cannot start at all
        await self.session.acquire()

        if query is not None:
            return await self.fanout.run_query(query)
        return await self.fanout.run_for_users()

    def run_enrichment_cycle(self) -> EnrichmentReport:
        return self.enrichment.run_cycle()

    def run_retention_sweep(self, now: Optional[datetime] = None) -> int:
        """Delete postings older than the retention window. Returns the count deleted."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(hours=self.retention_hours)
        deleted = self.store.delete_older_than(cutoff)
        logger.info(f"[orchestrator] Cleaned up {deleted} old job(s) (older than {self.retention_hours:g} hours)")
        return deleted

    async def close(self):
        await self.session.close()


def build_pipeline(settings: Settings) -> JobPipeline:
    """Construct the pipeline and its collaborators from settings."""
    if not settings.db_url:
        raise ConfigurationMissingError("No database URL configured (SUPABASE_DB_URL or DATABASE_URL)")

    store = JobStore(settings.db_url)
    session = BrowserSession(headless=settings.browser_headless)
    fetcher = DetailFetcher(session)
    batch = BatchProcessor(store, fetcher, Pacer(settings.batch_delay_seconds, name="batch"))
    fanout = KeywordFanout(
        crawler=ListingCrawler(session),
        batch_processor=batch,
        user_directory=UserDirectory(settings.db_url),
        page_pacer=Pacer(settings.page_delay_seconds, name="page"),
        keyword_pacer=Pacer(settings.keyword_delay_seconds, name="keyword"),
    )
    enrichment = EnrichmentProcessor(
        store,
        AIService.from_settings(settings),
        batch_size=settings.enrich_batch_size,
    )
    return JobPipeline(store, session, fanout, enrichment, retention_hours=settings.retention_hours)


class PipelineScheduler:
    """Runs crawl, enrichment and retention on independent intervals."""

    def __init__(self, pipeline: JobPipeline, settings: Settings, sleep=asyncio.sleep):
        self.pipeline = pipeline
        self.settings = settings
        self.running = False
        self._sleep = sleep
        self._tasks: List[asyncio.Task] = []
        self.last_runs: Dict[str, datetime] = {}

    def _jobs(self) -> Dict[str, tuple]:
        jobs = {
            "crawl": (self.settings.crawl_interval_seconds, self._crawl_once),
            "retention": (self.settings.retention_interval_seconds, self._retention_once),
        }
        if self.pipeline.enrichment.ai_service.enabled:
            jobs["enrichment"] = (self.settings.enrich_interval_seconds, self._enrichment_once)
        else:
            logger.warning("[orchestrator] Text generation not configured, enrichment timer not started")
        return jobs

    async def _crawl_once(self):
        summary = await self.pipeline.run_crawl_cycle()
        logger.info(f"[orchestrator] Crawl cycle result: {summary.to_dict()}")

    async def _enrichment_once(self):
        # Store and HTTP calls are blocking; keep them off the event loop
        await asyncio.to_thread(self.pipeline.run_enrichment_cycle)

    async def _retention_once(self):
        await asyncio.to_thread(self.pipeline.run_retention_sweep)

    async def loop(self, name: str, interval: float, run_once: Callable[[], Awaitable[None]]):
        """Run `run_once` every `interval` seconds. Runs of one loop never overlap."""
        logger.info(f"[orchestrator] {name} loop started (every {interval:.0f}s)")
        consecutive_errors = 0

        while self.running:
            try:
                logger.info(f"[orchestrator] Running scheduled {name} task...")
                await run_once()
                self.last_runs[name] = datetime.now(timezone.utc)
                consecutive_errors = 0
            except asyncio.CancelledError:
                raise
            except Exception as e:
                consecutive_errors += 1
                logger.error(f"[orchestrator] Error in scheduled {name} task: {e}", exc_info=True)
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    logger.error(f"[orchestrator] Too many consecutive {name} errors, backing off")
                    consecutive_errors = 0
                    await self._sleep(interval * 2)
                    continue

            await self._sleep(interval)

        logger.info(f"[orchestrator] {name} loop stopped")

    async def start(self):
        if self.settings.disable_scheduler:
            logger.info("[orchestrator] Scheduler disabled by JOBMATCH_DISABLE_SCHEDULER")
            return

        self.running = True
        for name, (interval, run_once) in self._jobs().items():
            self._tasks.append(asyncio.create_task(self.loop(name, interval, run_once), name=f"scheduler-{name}"))
        logger.info(f"[orchestrator] Scheduler started with {len(self._tasks)} task(s)")

    async def stop(self):
        self.running = False
        logger.info("[orchestrator] Scheduler stopping...")
        for task in self._tasks:
            task.cancel()
        # In-flight cycles are abandoned
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
