"""
Explicit outcomes for units of work (one page, one candidate, one keyword,
one enrichment item). Orchestrating loops inspect these instead of relying
on exceptions unwinding across sibling units.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class UnitStatus(Enum):
    CREATED = "created"
    EXISTS = "exists"
    FILTERED = "filtered"
    ENRICHED = "enriched"
    OK = "ok"
    FAILED = "failed"


class FailureKind(Enum):
    NAVIGATION_TIMEOUT = "navigation_timeout"
    SELECTOR_MISSING = "selector_missing"
    PARSE_FAILURE = "parse_failure"
    DUPLICATE_KEY = "duplicate_key"
    FILTERED_BY_POLICY = "filtered_by_policy"
    GENERATION_SERVICE_FAILURE = "generation_service_failure"
    CONFIGURATION_MISSING = "configuration_missing"
    UNEXPECTED = "unexpected"


@dataclass
class UnitResult:
    unit: str
    status: UnitStatus
    kind: Optional[FailureKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not UnitStatus.FAILED

    @classmethod
    def failed(cls, unit: str, kind: FailureKind, message: str) -> "UnitResult":
        return cls(unit=unit, status=UnitStatus.FAILED, kind=kind, message=message)


def count_by_status(results: List[UnitResult]) -> Dict[str, int]:
    counts = {status.value: 0 for status in UnitStatus}
    for result in results:
        counts[result.status.value] += 1
    return counts


@dataclass
class CrawlSummary:
    """Result of one crawl cycle for a single query."""
    query: str
    created: int = 0
    pages_fetched: int = 0
    candidates: list = field(default_factory=list)
    results: List[UnitResult] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "query": self.query,
            "count": self.created,
            "pages": self.pages_fetched,
            "jobs": [
                {
                    "title": c.title,
                    "company": c.company,
                    "location": c.location,
                    "posted_date_text": c.posted_date_text,
                    "url": c.url,
                }
                for c in self.candidates
            ],
            "outcomes": count_by_status(self.results),
        }


@dataclass
class FanoutSummary:
    keywords: List[str] = field(default_factory=list)
    fallback: bool = False
    created: int = 0
    results: List[UnitResult] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "keywords": self.keywords,
            "fallback": self.fallback,
            "count": self.created,
            "failed_keywords": [r.unit for r in self.results if not r.ok],
        }


@dataclass
class EnrichmentReport:
    selected: int = 0
    results: List[UnitResult] = field(default_factory=list)

    @property
    def enriched(self) -> int:
        return sum(1 for r in self.results if r.status is UnitStatus.ENRICHED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def to_dict(self) -> Dict:
        return {"selected": self.selected, "enriched": self.enriched, "failed": self.failed}
