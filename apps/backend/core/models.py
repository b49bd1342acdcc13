"""
Data model for postings, crawl candidates and search queries.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

DEFAULT_LOCATION = "Brasil"


@dataclass
class SearchQuery:
    """Filters for one listing search."""
    keyword: str = ""
    location: str = DEFAULT_LOCATION
    last_24h: bool = True
    remote: bool = True

    def describe(self) -> str:
        filters = [f"keyword={self.keyword!r}" if self.keyword else "keyword=<any>", self.location]
        if self.last_24h:
            filters.append("24h")
        if self.remote:
            filters.append("remote")
        return ", ".join(filters)


@dataclass
class CrawlCandidate:
    """A parsed search-result card. Never persisted."""
    title: str
    company: str
    location: str
    posted_date_text: str
    url: str


@dataclass
class JobPosting:
    """A persisted posting. `url` is the natural key."""
    title: str
    company: str
    location: str
    posted_date_text: str
    url: str
    raw_description: Optional[str] = None
    enriched_description: Optional[str] = None
    enriched: bool = False
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_candidate(cls, candidate: CrawlCandidate, raw_description: Optional[str]) -> "JobPosting":
        return cls(
            title=candidate.title,
            company=candidate.company,
            location=candidate.location,
            posted_date_text=candidate.posted_date_text,
            url=candidate.url,
            raw_description=raw_description,
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "JobPosting":
        """Build from a RealDictCursor row."""
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            title=row.get("title") or "",
            company=row.get("company") or "",
            location=row.get("location") or "",
            posted_date_text=row.get("posted_date_text") or "",
            url=row["url"],
            raw_description=row.get("raw_description"),
            enriched_description=row.get("enriched_description"),
            enriched=bool(row.get("enriched")),
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "posted_date_text": self.posted_date_text,
            "url": self.url,
            "raw_description": self.raw_description,
            "enriched_description": self.enriched_description,
            "enriched": self.enriched,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
