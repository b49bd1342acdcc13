"""
Unit tests for the per-run URL ledger.
"""
from core.dedup_ledger import DedupLedger, normalize_url


def test_normalize_url_strips_query_and_fragment():
    url = "https://br.linkedin.com/jobs/view/dev-python-123?refId=abc&trackingId=xyz#top"
    assert normalize_url(url) == "https://br.linkedin.com/jobs/view/dev-python-123"
    assert normalize_url("  ") == ""
    assert normalize_url(None) == ""


def test_add_reports_first_sighting_only():
    ledger = DedupLedger()
    assert ledger.add("https://br.linkedin.com/jobs/view/1?trk=a") is True
    assert ledger.add("https://br.linkedin.com/jobs/view/1?trk=b") is False
    assert ledger.add("https://br.linkedin.com/jobs/view/2") is True
    assert len(ledger) == 2


def test_contains_uses_normalized_key():
    ledger = DedupLedger()
    ledger.add("https://br.linkedin.com/jobs/view/1")
    assert "https://br.linkedin.com/jobs/view/1?position=3" in ledger
    assert "https://br.linkedin.com/jobs/view/9" not in ledger


def test_empty_url_is_never_recorded():
    ledger = DedupLedger()
    assert ledger.add("") is False
    assert len(ledger) == 0
