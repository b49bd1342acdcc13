"""
Tests for the pipeline trigger surface and the scheduler loops.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.config import Settings
from app.enrichment_worker import EnrichmentProcessor
from core.errors import BrowserUnavailableError, ConfigurationMissingError
from core.models import JobPosting, SearchQuery
from core.pacing import Pacer
from crawler.batch_processor import BatchProcessor
from crawler.fanout import KeywordFanout
from orchestrator import JobPipeline, PipelineScheduler, build_pipeline, MAX_CONSECUTIVE_ERRORS
from conftest import FakeSession, FakeUserDirectory

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class EmptyCrawler:
    def __init__(self):
        self.calls = 0

    async def fetch_candidates(self, query, page_index, ledger, dropped=None):
        self.calls += 1
        return []


class StubAI:
    enabled = True

    def generate(self, system_instruction, user_content):
        return "resumo"


def make_pipeline(store, session=None, keywords=None, ai=None):
    crawler = EmptyCrawler()
    fanout = KeywordFanout(
        crawler=crawler,
        batch_processor=BatchProcessor(store, None, Pacer(0)),
        user_directory=FakeUserDirectory(keywords),
        page_pacer=Pacer(0),
        keyword_pacer=Pacer(0),
    )
    enrichment = EnrichmentProcessor(store, ai or StubAI())
    pipeline = JobPipeline(store, session or FakeSession(), fanout, enrichment, retention_hours=25)
    pipeline.crawler = crawler
    return pipeline


def add_posting(store, n, age):
    store.create(JobPosting(title=f"Vaga {n}", company="", location="", posted_date_text="",
                            url=f"https://br.linkedin.com/jobs/view/{n}", raw_description="x",
                            created_at=NOW - age))


def test_retention_sweep_deletes_only_expired(store):
    add_posting(store, 1, timedelta(hours=26))
    add_posting(store, 2, timedelta(hours=1))
    pipeline = make_pipeline(store)

    deleted = pipeline.run_retention_sweep(now=NOW)

    assert deleted == 1
    assert list(store.rows) == ["https://br.linkedin.com/jobs/view/2"]


def test_retention_sweep_removes_enriched_and_pending_alike(store):
    add_posting(store, 1, timedelta(hours=30))
    add_posting(store, 2, timedelta(hours=30))
    store.mark_enriched(store.rows["https://br.linkedin.com/jobs/view/1"].id, "resumo")

    assert make_pipeline(store).run_retention_sweep(now=NOW) == 2
    assert store.rows == {}


@pytest.mark.asyncio
async def test_crawl_cycle_fails_fast_without_browser(store):
    session = FakeSession(acquire_error=BrowserUnavailableError("chromium missing"))
    pipeline = make_pipeline(store, session=session)

    with pytest.raises(BrowserUnavailableError):
        await pipeline.run_crawl_cycle(SearchQuery(keyword="Python"))

    assert pipeline.crawler.calls == 0


@pytest.mark.asyncio
async def test_crawl_cycle_without_query_fans_out(store):
    pipeline = make_pipeline(store, keywords=["Java", "Go"])

    summary = await pipeline.run_crawl_cycle()

    assert summary.keywords == ["Java", "Go"]
    assert pipeline.crawler.calls == 2


def test_enrichment_cycle_delegates(store):
    add_posting(store, 1, timedelta(minutes=5))
    report = make_pipeline(store).run_enrichment_cycle()
    assert report.enriched == 1


def test_build_pipeline_requires_database():
    with pytest.raises(ConfigurationMissingError):
        build_pipeline(Settings(db_url=None))


def test_build_pipeline_wires_settings():
    settings = Settings(db_url="postgresql://localhost/jobs", retention_hours=12, page_delay_seconds=1,
                        enrich_batch_size=4)
    pipeline = build_pipeline(settings)
    assert pipeline.retention_hours == 12
    assert pipeline.fanout.page_pacer.delay_seconds == 1
    assert pipeline.enrichment.batch_size == 4


class StopAfter:
    """Sleep replacement that stops the scheduler after `n` sleeps."""

    def __init__(self, scheduler, n):
        self.scheduler = scheduler
        self.n = n
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        if len(self.calls) >= self.n:
            self.scheduler.running = False
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_loop_survives_a_failing_run(store):
    scheduler = PipelineScheduler(make_pipeline(store), Settings())
    sleep = StopAfter(scheduler, 3)
    scheduler._sleep = sleep
    runs = []

    async def run_once():
        runs.append(1)
        if len(runs) == 1:
            raise RuntimeError("site down")

    scheduler.running = True
    await scheduler.loop("crawl", 900, run_once)

    assert len(runs) == 3
    assert sleep.calls == [900, 900, 900]
    assert "crawl" in scheduler.last_runs


@pytest.mark.asyncio
async def test_loop_backs_off_after_repeated_errors(store):
    scheduler = PipelineScheduler(make_pipeline(store), Settings())
    sleep = StopAfter(scheduler, MAX_CONSECUTIVE_ERRORS)
    scheduler._sleep = sleep

    async def run_once():
        raise RuntimeError("still down")

    scheduler.running = True
    await scheduler.loop("enrichment", 600, run_once)

    assert sleep.calls == [600] * (MAX_CONSECUTIVE_ERRORS - 1) + [1200]


@pytest.mark.asyncio
async def test_start_respects_disable_flag(store):
    scheduler = PipelineScheduler(make_pipeline(store), Settings(disable_scheduler=True))
    await scheduler.start()
    assert scheduler.running is False
    assert scheduler._tasks == []


def test_enrichment_timer_skipped_without_ai(store):
    class DisabledAI:
        enabled = False

    scheduler = PipelineScheduler(make_pipeline(store, ai=DisabledAI()), Settings())
    assert set(scheduler._jobs()) == {"crawl", "retention"}


@pytest.mark.asyncio
async def test_start_and_stop(store):
    pipeline = make_pipeline(store)
    gate = asyncio.Event()

    async def blocking_sleep(seconds):
        await gate.wait()

    scheduler = PipelineScheduler(pipeline, Settings(), sleep=blocking_sleep)
    await scheduler.start()
    await asyncio.sleep(0.05)

    assert scheduler.running is True
    assert {t.get_name() for t in scheduler._tasks} == {
        "scheduler-crawl", "scheduler-enrichment", "scheduler-retention",
    }

    await scheduler.stop()
    assert scheduler.running is False
    assert scheduler._tasks == []
