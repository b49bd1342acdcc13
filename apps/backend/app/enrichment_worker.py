"""
Enrichment Worker.
Turns raw posting text into a structured technical summary, a bounded batch
per invocation. Meant to be called repeatedly on a timer until the backlog
is empty; a failed item simply stays pending for the next cycle.
"""
import logging

from core.errors import ConfigurationMissingError, GenerationServiceError
from core.outcomes import EnrichmentReport, FailureKind, UnitResult, UnitStatus

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10

JOB_SYSTEM_PROMPT = """
Você é um Engenheiro de Dados de Recrutamento especializado em extrair entidades técnicas de descrições de vagas de TI.

### DIRETRIZES:
1. **Somente técnico**: ignore benefícios, cultura da empresa e textos motivacionais.
2. **Padronização**: use o nome de mercado de cada tecnologia (ex.: "Experiência em ReactJS" -> "React").
3. **Senioridade**: informe Junior, Pleno, Sênior ou Especialista. Se não estiver explícito, use "Não informado".
4. **Atividades**: cada atividade começa com um verbo no infinitivo.

### EXEMPLO DE REFERÊNCIA:
**Entrada:** "Buscamos desenvolvedor Backend Java Sênior para trabalhar em São Paulo (Híbrido). Requisitos: Java 17, Spring Boot, Microserviços, SQL e vivência com AWS. Desejável Kafka."
**Saída:**
🏢 Cargo: Desenvolvedor Backend
📈 Nível: Sênior
📍 Local & Regime: São Paulo - Híbrido
🎯 Hard Skills (Obrigatórias): Java 17, Spring Boot, Microserviços, SQL, AWS
✨ Hard Skills (Desejáveis): Kafka
📝 Formação/Certificação: Não informado
⚙️ Atividades Principais:
- Desenvolver sistemas backend em Java.
- Projetar e manter arquitetura de microserviços.

### FORMATO DE SAÍDA OBRIGATÓRIO:
🏢 Cargo: [Título do cargo]
📈 Nível: [Junior/Pleno/Sênior/Especialista/Não informado]
📍 Local & Regime: [Cidade/Estado - Presencial/Híbrido/Remoto]
🎯 Hard Skills (Obrigatórias): [tecnologias separadas por vírgula]
✨ Hard Skills (Desejáveis): [tecnologias separadas por vírgula]
📝 Formação/Certificação: [requisitos acadêmicos ou certificações]
⚙️ Atividades Principais:
- [Atividade 1]
- [Atividade 2]

Responda somente nesse formato, sem saudações nem explicações.
""".strip()


def build_user_content(raw_description: str) -> str:
    return f"Job Description:\n{raw_description}"


class EnrichmentProcessor:
    def __init__(self, store, ai_service, batch_size: int = DEFAULT_BATCH_SIZE,
                 system_prompt: str = JOB_SYSTEM_PROMPT):
        self.store = store
        self.ai_service = ai_service
        self.batch_size = batch_size
        self.system_prompt = system_prompt

    def run_cycle(self) -> EnrichmentReport:
        """Enrich up to `batch_size` pending postings."""
        report = EnrichmentReport()

        if not getattr(self.ai_service, "enabled", True):
            logger.warning("[enrichment] Text generation not configured, skipping cycle")
            return report

        jobs = self.store.select_pending(self.batch_size)
        report.selected = len(jobs)
        logger.info(f"[enrichment] Found {len(jobs)} jobs to process")

        for job in jobs:
            result = self.enrich_one(job)
            report.results.append(result)
            if result.kind is FailureKind.CONFIGURATION_MISSING:
                break

        logger.info(f"[enrichment] Cycle done: {report.to_dict()}")
        return report

    def enrich_one(self, job) -> UnitResult:
        unit = str(job.id)
        if not job.raw_description:
            return UnitResult(unit, UnitStatus.OK, message="no raw text")

        try:
            logger.info(f"[enrichment] Processing job {job.id}...")
            text = self.ai_service.generate(self.system_prompt, build_user_content(job.raw_description))
        except ConfigurationMissingError as e:
            logger.warning(f"[enrichment] {e}")
            return UnitResult.failed(unit, FailureKind.CONFIGURATION_MISSING, str(e))
        except GenerationServiceError as e:
            logger.warning(f"[enrichment] Failed to process job {job.id}: {e}")
            return UnitResult.failed(unit, FailureKind.GENERATION_SERVICE_FAILURE, str(e))
        except Exception as e:
            logger.error(f"[enrichment] Error processing job {job.id}: {e}", exc_info=True)
            return UnitResult.failed(unit, FailureKind.UNEXPECTED, str(e))

        if not text:
            logger.warning(f"[enrichment] Failed to process job {job.id}: empty response")
            return UnitResult.failed(unit, FailureKind.GENERATION_SERVICE_FAILURE, "empty response")

        try:
            self.store.mark_enriched(job.id, text)
        except Exception as e:
            logger.error(f"[enrichment] Error saving job {job.id}: {e}", exc_info=True)
            return UnitResult.failed(unit, FailureKind.UNEXPECTED, str(e))

        logger.info(f"[enrichment] Job {job.id} processed successfully.")
        return UnitResult(unit, UnitStatus.ENRICHED)
