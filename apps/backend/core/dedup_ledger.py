"""
Per-run ledger of candidate URLs already emitted by the listing crawler.

Only prevents redundant reads within one crawl run. Duplicate writes are
resolved by the job store's unique constraint on url.
"""
from typing import Set
from urllib.parse import urlsplit, urlunsplit


def normalize_url(url: str) -> str:
    """Strip query string and fragment from a posting URL."""
    url = (url or "").strip()
    if not url:
        return ""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class DedupLedger:
    """In-memory set of normalized URLs seen during one run."""

    def __init__(self):
        self._seen: Set[str] = set()

    def __contains__(self, url: str) -> bool:
        return normalize_url(url) in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def add(self, url: str) -> bool:
        """Record a URL. Returns False if it was already seen."""
        key = normalize_url(url)
        if not key or key in self._seen:
            return False
        self._seen.add(key)
        return True
