"""
Shared fakes for pipeline tests: an in-memory job store, scripted browser
pages and a recording pacer. No browser, database or network is touched.
"""
import uuid
import asyncio
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from core.errors import DuplicateKeyError
from core.models import JobPosting
from core.pacing import Pacer


class FakeJobStore:
    """In-memory store enforcing url uniqueness like the jobs table."""

    def __init__(self):
        self.rows: Dict[str, JobPosting] = {}
        self.create_calls = 0
        self._lock = threading.Lock()

    def find_by_url(self, url: str) -> Optional[JobPosting]:
        return self.rows.get(url)

    def create(self, posting: JobPosting) -> JobPosting:
        # Store calls arrive from worker threads; check-and-insert is atomic like UNIQUE(url)
        with self._lock:
            self.create_calls += 1
            if posting.url in self.rows:
                raise DuplicateKeyError(posting.url)
            posting.id = posting.id or str(uuid.uuid4())
            posting.created_at = posting.created_at or datetime.now(timezone.utc)
            self.rows[posting.url] = posting
            return posting

    def select_pending(self, limit: int) -> List[JobPosting]:
        pending = [p for p in self.rows.values() if not p.enriched and p.raw_description]
        pending.sort(key=lambda p: p.created_at)
        return pending[:limit]

    def mark_enriched(self, job_id: str, text: str) -> bool:
        for posting in self.rows.values():
            if posting.id == job_id:
                posting.enriched_description = text
                posting.enriched = True
                return True
        return False

    def delete_older_than(self, cutoff: datetime) -> int:
        old = [url for url, p in self.rows.items() if p.created_at < cutoff]
        for url in old:
            del self.rows[url]
        return len(old)

    def list_recent(self, keyword: str = "", location: str = "", limit: int = 20) -> List[JobPosting]:
        matches = [
            p for p in self.rows.values()
            if keyword.lower() in p.title.lower() and location.lower() in p.location.lower()
        ]
        matches.sort(key=lambda p: p.created_at, reverse=True)
        return matches[:limit]

    def ping(self) -> bool:
        return True


class FakeElement:
    def __init__(self, text: str):
        self.text = text

    async def inner_text(self) -> str:
        return self.text


class FakePage:
    """
    Scripted stand-in for a Playwright page.

    `goto_error` is raised from goto(), `wait_error` from wait_for_selector(),
    `elements` maps selectors to inner text, `html` is returned by content().
    """

    def __init__(self, html: str = "", elements: Optional[Dict[str, str]] = None,
                 goto_error: Optional[BaseException] = None, wait_error: Optional[BaseException] = None):
        self.html = html
        self.elements = elements or {}
        self.goto_error = goto_error
        self.wait_error = wait_error
        self.closed = False
        self.visited: List[str] = []
        self.headers: Dict[str, str] = {}
        self.scrolls = 0

    async def set_extra_http_headers(self, headers):
        self.headers.update(headers)

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        await asyncio.sleep(0)
        if self.goto_error is not None:
            raise self.goto_error

    async def wait_for_selector(self, selector, **kwargs):
        if self.wait_error is not None:
            raise self.wait_error

    async def wait_for_timeout(self, ms):
        return None

    async def evaluate(self, script):
        self.scrolls += 1

    async def query_selector(self, selector):
        if selector in self.elements:
            return FakeElement(self.elements[selector])
        return None

    async def content(self) -> str:
        return self.html

    async def close(self):
        self.closed = True


class FakeSession:
    """Hands out pages produced by `page_factory(call_index)`."""

    def __init__(self, page_factory=None, acquire_error: Optional[BaseException] = None):
        self.page_factory = page_factory or (lambda index: FakePage())
        self.acquire_error = acquire_error
        self.pages: List[FakePage] = []
        self.page_kwargs: List[dict] = []
        self.closed = False

    async def acquire(self):
        if self.acquire_error is not None:
            raise self.acquire_error
        return self

    async def new_page(self, **kwargs):
        await self.acquire()
        page = self.page_factory(len(self.pages))
        self.pages.append(page)
        self.page_kwargs.append(kwargs)
        return page

    async def close(self):
        self.closed = True


class FakeUserDirectory:
    def __init__(self, keywords=None, error: Optional[BaseException] = None):
        self.keywords = list(keywords or [])
        self.error = error

    def list_active_keywords(self):
        if self.error is not None:
            raise self.error
        return list(self.keywords)


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)
        await asyncio.sleep(0)


def card_html(title: str, url: str, company: str = "ACME", location: str = "São Paulo, Brasil",
              posted: str = "1 hour ago") -> str:
    return f"""
    <li>
      <div class="base-card">
        <a class="base-card__full-link" href="{url}"></a>
        <h3 class="base-search-card__title"> {title} </h3>
        <h4 class="base-search-card__subtitle">{company}</h4>
        <span class="job-search-card__location">{location}</span>
        <time datetime="2026-10-18">{posted}</time>
      </div>
    </li>
    """


def results_page(*cards: str) -> str:
    return f'<html><body><ul class="jobs-search__results-list">{"".join(cards)}</ul></body></html>'


@pytest.fixture
def store():
    return FakeJobStore()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def zero_pacer():
    return Pacer(0, name="test")
