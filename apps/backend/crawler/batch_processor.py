"""
Batch processing of crawl candidates.

Candidates are handled in small concurrent groups with a pause between groups
to avoid request bursts against the listing site.
"""
import re
import logging
import asyncio
from typing import List, Sequence

from core.errors import DuplicateKeyError
from core.models import CrawlCandidate, JobPosting
from core.outcomes import FailureKind, UnitResult, UnitStatus, count_by_status
from core.pacing import Pacer

logger = logging.getLogger(__name__)

MAX_CANDIDATES_PER_PAGE = 20
BATCH_SIZE = 3
FALLBACK_DESCRIPTION = "Descrição indisponível no momento."

# Postings that require English are out of scope for our users
ENGLISH_REQUIRED = re.compile(r"english|inglês", re.IGNORECASE)


def requires_english(text: str) -> bool:
    return bool(text) and ENGLISH_REQUIRED.search(text) is not None


class BatchProcessor:
    """Drives detail fetch, filtering and persistence for one page of candidates."""

    def __init__(
        self,
        store,
        fetcher,
        pacer: Pacer,
        max_per_page: int = MAX_CANDIDATES_PER_PAGE,
        batch_size: int = BATCH_SIZE,
    ):
        self.store = store
        self.fetcher = fetcher
        self.pacer = pacer
        self.max_per_page = max_per_page
        self.batch_size = max(1, batch_size)

    async def process(self, candidates: Sequence[CrawlCandidate]) -> int:
        """Persist the candidates that pass filtering. Returns the number created."""
        results = await self.process_with_results(candidates)
        return sum(1 for r in results if r.status is UnitStatus.CREATED)

    async def process_with_results(self, candidates: Sequence[CrawlCandidate]) -> List[UnitResult]:
        to_process = list(candidates)[:self.max_per_page]
        total_batches = (len(to_process) + self.batch_size - 1) // self.batch_size
        results: List[UnitResult] = []

        for index in range(0, len(to_process), self.batch_size):
            batch = to_process[index:index + self.batch_size]
            logger.info(f"[batch] Processing batch {index // self.batch_size + 1} of {total_batches}")

            # Join-all: the group finishes only when every member has
            batch_results = await asyncio.gather(
                *(self.process_candidate(c) for c in batch),
                return_exceptions=True,
            )
            for candidate, outcome in zip(batch, batch_results):
                if isinstance(outcome, BaseException):
                    outcome = UnitResult.failed(candidate.url, FailureKind.UNEXPECTED, str(outcome))
                results.append(outcome)

            if index + self.batch_size < len(to_process):
                await self.pacer.wait()

        logger.info(f"[batch] Page done: {count_by_status(results)}")
        return results

    async def process_candidate(self, candidate: CrawlCandidate) -> UnitResult:
        """Check, fetch, filter and create a single posting."""
        try:
            # Store calls block; keep them off the loop so group members overlap
            if await asyncio.to_thread(self.store.find_by_url, candidate.url) is not None:
                return UnitResult(candidate.url, UnitStatus.EXISTS)

            logger.info(f"[batch] Fetching details for: {candidate.title}")
            description = await self.fetcher.fetch(candidate.url)

            if description and requires_english(description):
                logger.info(f"[batch] Skipping posting that requires English: {candidate.title}")
                return UnitResult(candidate.url, UnitStatus.FILTERED, FailureKind.FILTERED_BY_POLICY)

            posting = JobPosting.from_candidate(candidate, description or FALLBACK_DESCRIPTION)
            try:
                await asyncio.to_thread(self.store.create, posting)
            except DuplicateKeyError:
                # Lost a create race with a concurrent unit or run
                logger.debug(f"[batch] Already stored: {candidate.url}")
                return UnitResult(candidate.url, UnitStatus.EXISTS, FailureKind.DUPLICATE_KEY)

            return UnitResult(candidate.url, UnitStatus.CREATED)

        except Exception as e:
            logger.error(f"[batch] Error processing {candidate.title}: {e}", exc_info=True)
            return UnitResult.failed(candidate.url, FailureKind.UNEXPECTED, str(e))
