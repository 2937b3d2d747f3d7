"""
Triage Server

FastAPI server exposing the triage pipeline.

Endpoints:
- GET /health: Health check
- POST /scan: Run one scan over HelpScout conversations
- POST /analyze: Lexical scoring of arbitrary text
- GET /stats: Last scan summary and AI usage
"""

import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .. import __version__
from ..common.config import TriageConfig, USAGE_PATH, ensure_directories, load_config
from ..common.docs_client import DocsClient, TimedCache
from ..common.errors import TransientUpstreamError, UpstreamAuthError
from ..common.helpscout_client import HelpScoutClient
from ..common.llm_client import LLMClient
from ..common.teams_client import TeamsNotifier
from ..common.usage_tracker import UsageTracker
from .pipeline import ScanOptions, ScanSummary, TriagePipeline
from .scorer import build_scorer
from .sentiment import LexicalSentimentScorer

logger = logging.getLogger("triage.analysis.server")

# Global state
config: Optional[TriageConfig] = None
pipeline: Optional[TriagePipeline] = None
lexical_scorer: Optional[LexicalSentimentScorer] = None
last_summary: Optional[ScanSummary] = None
last_scan_at: Optional[str] = None
# One scan at a time per process; a second request gets 409
scan_lock = threading.Lock()


def build_pipeline(cfg: TriageConfig) -> TriagePipeline:
    """Wire clients, scorer and notifier from configuration"""
    helpscout = HelpScoutClient(cfg.helpscout)

    docs_client = None
    if cfg.docs.api_key:
        docs_client = DocsClient(cfg.docs, cache=TimedCache(cfg.docs.cache_ttl_seconds))

    llm_client = None
    if cfg.scanner.scorer == "ai":
        llm_client = LLMClient.from_config(cfg.llm)

    notifier = None
    if cfg.notifier.teams_webhook_url:
        notifier = TeamsNotifier(cfg.notifier)

    return TriagePipeline(
        helpscout,
        build_scorer(cfg, llm_client=llm_client, docs_client=docs_client),
        scanner_config=cfg.scanner,
        notifier=notifier,
        usage_tracker=UsageTracker(
            input_cost_per_million=cfg.llm.input_cost_per_million,
            output_cost_per_million=cfg.llm.output_cost_per_million,
            usage_path=USAGE_PATH,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, pipeline, lexical_scorer

    load_dotenv()
    ensure_directories()
    config = load_config()
    lexical_scorer = LexicalSentimentScorer(weights=config.scoring)
    pipeline = build_pipeline(config)
    logger.info("Triage server ready (scorer: %s)", pipeline.scorer.name)
    yield
    logger.info("Triage server shutting down")


app = FastAPI(
    title="Helpdesk Triage",
    description="Sentiment and escalation triage for HelpScout conversations",
    version=__version__,
    lifespan=lifespan,
)


# =============================================================================
# Request Models
# =============================================================================

class ScanRequest(BaseModel):
    """Scan request"""
    dry_run: bool = False
    limit: Optional[int] = Field(None, ge=1)
    closed_only: bool = False
    force_reprocess: bool = False
    conversation_id: Optional[int] = None


class AnalyzeRequest(BaseModel):
    text: str = ""


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "version": __version__,
        "scorer": pipeline.scorer.name if pipeline else None,
        "helpscout_configured": bool(config and config.helpscout.app_id and config.helpscout.app_secret),
    }


@app.post("/scan")
def scan(request: ScanRequest):
    """Run one triage scan. Blocking; runs in FastAPI's threadpool."""
    global last_summary, last_scan_at

    if not pipeline:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")

    if not scan_lock.acquire(blocking=False):
        logger.warning("Rejected /scan: a scan is already running")
        raise HTTPException(status_code=409, detail="A scan is already running")

    try:
        summary = pipeline.scan(ScanOptions(**request.model_dump()))
    except UpstreamAuthError as e:
        raise HTTPException(status_code=502, detail=f"HelpScout authentication failed: {e}")
    except TransientUpstreamError as e:
        raise HTTPException(status_code=503, detail=f"HelpScout unavailable: {e}")
    else:
        last_summary = summary
        last_scan_at = datetime.now(timezone.utc).isoformat()
    finally:
        scan_lock.release()
    return summary.to_dict()


@app.post("/analyze")
async def analyze(request: AnalyzeRequest):
    """Score text with the lexical scorer"""
    if not lexical_scorer:
        raise HTTPException(status_code=503, detail="Scorer not initialized")

    result = lexical_scorer.analyze(request.text)
    return {
        "result": result.model_dump(mode="json"),
        "is_angry": result.is_angry,
        "is_high_urgency": result.is_high_urgency,
        "explanation": lexical_scorer.explain(result),
    }


@app.get("/stats")
async def get_stats():
    """Last scan and usage statistics"""
    stats = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "last_scan_at": last_scan_at,
        "last_scan": None,
        "usage": None,
    }
    if last_summary:
        summary = last_summary.to_dict()
        summary.pop("reports")
        stats["last_scan"] = summary
    if pipeline:
        stats["usage"] = pipeline.usage.summary()
    return stats


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the triage server"""
    import uvicorn

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    cfg = load_config()
    port = cfg.scanner.server_port
    logger.info("Starting server on port %d", port)
    uvicorn.run(
        "triage.analysis.server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
