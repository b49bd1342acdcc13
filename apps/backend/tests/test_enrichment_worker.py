"""
Tests for the enrichment cycle.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.enrichment_worker import EnrichmentProcessor, JOB_SYSTEM_PROMPT, build_user_content
from core.errors import ConfigurationMissingError, GenerationServiceError
from core.models import JobPosting
from core.outcomes import FailureKind, UnitStatus


class FakeAIService:
    def __init__(self, responses=None, enabled=True):
        # url -> str or exception; anything missing gets a default summary
        self.responses = responses or {}
        self.enabled = enabled
        self.calls = []

    def generate(self, system_instruction, user_content):
        self.calls.append((system_instruction, user_content))
        for marker, response in self.responses.items():
            if marker in user_content:
                if isinstance(response, BaseException):
                    raise response
                return response
        return "🏢 Cargo: Dev"


def seed(store, count):
    base = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    postings = []
    for i in range(count):
        posting = JobPosting(
            title=f"Vaga {i}", company="ACME", location="Brasil", posted_date_text="",
            url=f"https://br.linkedin.com/jobs/view/{i}", raw_description=f"raw text {i}",
            created_at=base + timedelta(minutes=i),
        )
        postings.append(store.create(posting))
    return postings


def test_build_user_content():
    assert build_user_content("Vaga Python") == "Job Description:\nVaga Python"


def test_enriches_pending_postings(store):
    seed(store, 2)
    ai = FakeAIService()

    report = EnrichmentProcessor(store, ai).run_cycle()

    assert report.selected == 2
    assert report.enriched == 2
    assert all(p.enriched and p.enriched_description == "🏢 Cargo: Dev" for p in store.rows.values())
    assert ai.calls[0][0] == JOB_SYSTEM_PROMPT
    assert ai.calls[0][1] == "Job Description:\nraw text 0"


def test_enriched_postings_are_not_selected_again(store):
    seed(store, 2)
    ai = FakeAIService()
    processor = EnrichmentProcessor(store, ai)

    processor.run_cycle()
    second = processor.run_cycle()

    assert second.selected == 0
    assert len(ai.calls) == 2


def test_empty_response_leaves_posting_pending(store):
    seed(store, 1)
    ai = FakeAIService(responses={"raw text 0": ""})

    report = EnrichmentProcessor(store, ai).run_cycle()

    posting = store.rows["https://br.linkedin.com/jobs/view/0"]
    assert report.failed == 1
    assert report.results[0].kind is FailureKind.GENERATION_SERVICE_FAILURE
    assert posting.enriched is False
    assert posting.enriched_description is None


def test_service_failure_does_not_stop_the_batch(store):
    seed(store, 3)
    ai = FakeAIService(responses={"raw text 1": GenerationServiceError("HTTP 500")})

    report = EnrichmentProcessor(store, ai).run_cycle()

    assert [r.status for r in report.results] == [UnitStatus.ENRICHED, UnitStatus.FAILED, UnitStatus.ENRICHED]
    assert store.rows["https://br.linkedin.com/jobs/view/1"].enriched is False
    # The failed one is retried on the next cycle
    assert [p.title for p in store.select_pending(10)] == ["Vaga 1"]


def test_unexpected_error_is_isolated(store):
    seed(store, 2)
    ai = FakeAIService(responses={"raw text 0": RuntimeError("boom")})

    report = EnrichmentProcessor(store, ai).run_cycle()

    assert report.results[0].kind is FailureKind.UNEXPECTED
    assert report.enriched == 1


def test_batch_size_bounds_one_cycle(store):
    seed(store, 12)
    report = EnrichmentProcessor(store, FakeAIService(), batch_size=10).run_cycle()

    assert report.selected == 10
    assert [p.title for p in store.select_pending(10)] == ["Vaga 10", "Vaga 11"]


def test_disabled_service_skips_cycle(store):
    seed(store, 1)
    ai = FakeAIService(enabled=False)

    report = EnrichmentProcessor(store, ai).run_cycle()

    assert report.selected == 0
    assert ai.calls == []


def test_configuration_missing_stops_cycle(store):
    seed(store, 3)
    ai = FakeAIService(responses={"raw text 0": ConfigurationMissingError("no key")})

    report = EnrichmentProcessor(store, ai).run_cycle()

    assert len(report.results) == 1
    assert report.results[0].kind is FailureKind.CONFIGURATION_MISSING
    assert len(ai.calls) == 1


def test_system_prompt_carries_a_worked_example():
    assert "EXEMPLO DE REFERÊNCIA" in JOB_SYSTEM_PROMPT
    example, output_format = JOB_SYSTEM_PROMPT.split("### FORMATO DE SAÍDA OBRIGATÓRIO:")
    assert "🏢 Cargo: Desenvolvedor Backend" in example
    assert "✨ Hard Skills (Desejáveis): Kafka" in example
    assert "🏢 Cargo: [Título do cargo]" in output_format


def test_postings_with_empty_raw_text_are_not_selected(store):
    seed(store, 1)
    store.create(JobPosting(title="Vazia", company="ACME", location="Brasil", posted_date_text="",
                            url="https://br.linkedin.com/jobs/view/empty", raw_description=""))
    ai = FakeAIService()

    report = EnrichmentProcessor(store, ai).run_cycle()

    assert report.selected == 1
    assert len(ai.calls) == 1
    assert store.rows["https://br.linkedin.com/jobs/view/empty"].enriched is False
