from fastapi import FastAPI, Query, HTTPException, Request, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from typing import Optional
from contextlib import asynccontextmanager
import os
import logging
import traceback

from app.config import Capabilities, Settings, get_env_presence
from app.rate_limit import limiter, RATE_LIMIT_JOBS, RATE_LIMIT_TRIGGER
from slowapi.errors import RateLimitExceeded
from slowapi import _rate_limit_exceeded_handler
from core.errors import BrowserUnavailableError, ConfigurationMissingError
from core.models import SearchQuery, DEFAULT_LOCATION
from orchestrator import JobPipeline, PipelineScheduler, build_pipeline

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline once and start the background timers."""
    settings = Settings.from_env()
    logger.info(f"[jobmatch] env: JOBMATCH_ENV={settings.env}")

    pipeline = None
    scheduler = None
    try:
        pipeline = build_pipeline(settings)
    except ConfigurationMissingError as e:
        logger.warning(f"[jobmatch] {e}; crawl, enrichment and scheduler disabled")

    if pipeline is not None:
        try:
            pipeline.store.ensure_schema()
        except Exception as e:
            logger.error(f"[jobmatch] Could not ensure database schema: {e}")

        scheduler = PipelineScheduler(pipeline, settings)
        try:
            await scheduler.start()
        except Exception as e:
            logger.error(f"[orchestrator] Failed to start scheduler: {e}")

    app.state.pipeline = pipeline
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop()
    if pipeline is not None:
        await pipeline.close()


app = FastAPI(title="JobMatch API", version="0.1.0", lifespan=lifespan)

app.state.limiter = limiter
app.state.pipeline = None
app.state.scheduler = None
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def error_masking_middleware(request: Request, call_next):
    """Mask detailed errors in production; show full errors in dev."""
    try:
        return await call_next(request)
    except HTTPException:
        raise
    except Exception as e:
        is_dev = os.getenv("JOBMATCH_ENV", "").lower() == "dev"

        logger.error(f"Unhandled error: {str(e)}")
        if is_dev:
            logger.error(traceback.format_exc())
            return JSONResponse(
                status_code=500,
                content={"status": "error", "error": str(e), "traceback": traceback.format_exc()},
            )
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": "An internal error occurred. Please try again later."},
        )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def get_pipeline(request: Request) -> JobPipeline:
    pipeline = request.app.state.pipeline
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return pipeline


@app.get("/api/healthz")
def healthz(request: Request):
    pipeline = request.app.state.pipeline
    scheduler = request.app.state.scheduler
    components = {
        "db": bool(pipeline is not None and pipeline.store.ping()),
        "ai": Capabilities.is_ai_enabled(),
        "scheduler": bool(scheduler is not None and scheduler.running),
    }
    body = {"status": "green" if all(components.values()) else "amber", "components": components}
    if os.getenv("JOBMATCH_ENV", "").lower() == "dev":
        body["env"] = get_env_presence()
    return body


@app.get("/api/scrape")
@limiter.limit(RATE_LIMIT_TRIGGER)
async def scrape(
    request: Request,
    keyword: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    last24h: Optional[str] = Query(None),
    remote: Optional[str] = Query(None),
):
    """Run one crawl cycle for the given query and wait for it to finish."""
    pipeline = get_pipeline(request)
    query = SearchQuery(
        keyword=(keyword or "").strip(),
        location=(location or "").strip() or DEFAULT_LOCATION,
        last_24h=last24h != "false",
        remote=remote == "true",
    )
    try:
        summary = await pipeline.run_crawl_cycle(query)
    except BrowserUnavailableError as e:
        logger.error(f"[jobmatch] Scrape could not start: {e}")
        raise HTTPException(status_code=503, detail="Browser session unavailable")
    return {"message": "Scraping finished", "result": summary.to_dict()}


async def _run_fanout_in_background(pipeline: JobPipeline):
    try:
        summary = await pipeline.run_crawl_cycle()
        logger.info(f"[jobmatch] On-demand fan-out finished: {summary.to_dict()}")
    except Exception as e:
        logger.error(f"[jobmatch] On-demand fan-out failed: {e}", exc_info=True)


@app.post("/api/crawl/run")
@limiter.limit(RATE_LIMIT_TRIGGER)
async def run_fanout(request: Request, background_tasks: BackgroundTasks):
    """Start a keyword fan-out crawl in the background."""
    pipeline = get_pipeline(request)
    background_tasks.add_task(_run_fanout_in_background, pipeline)
    return {"message": "Keyword crawl started in background."}


@app.post("/api/process-jobs")
@limiter.limit(RATE_LIMIT_TRIGGER)
async def process_jobs(request: Request, background_tasks: BackgroundTasks):
    """Start one enrichment cycle in the background."""
    pipeline = get_pipeline(request)
    if not pipeline.enrichment.ai_service.enabled:
        raise HTTPException(status_code=503, detail="Text generation service not configured")
    background_tasks.add_task(pipeline.run_enrichment_cycle)
    return {"message": "Job processing started in background."}


@app.post("/api/cleanup")
@limiter.limit(RATE_LIMIT_TRIGGER)
def cleanup(request: Request):
    pipeline = get_pipeline(request)
    deleted = pipeline.run_retention_sweep()
    return {"deleted": deleted}


@app.get("/api/jobs")
@limiter.limit(RATE_LIMIT_JOBS)
def list_jobs(
    request: Request,
    keyword: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
):
    """Latest 20 postings matching title/location filters."""
    pipeline = get_pipeline(request)
    jobs = pipeline.store.list_recent(keyword or "", location or "", limit=20)
    return [job.to_dict() for job in jobs]


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    logger.info(f"[jobmatch] Starting API on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
