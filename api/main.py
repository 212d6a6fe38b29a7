import asyncio
import logging
from typing import Dict, Optional, Set
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sse_starlette.sse import EventSourceResponse

from agents.supervisor import AnalysisRequest, AnalysisSupervisor, create_supervisor
from config import config, configure_logging
from core.events import StreamEmitter
from core.roles import PROVIDERS, ROLES
from core.tuning import learning_report
from core.types import Depth, Feedback, Style
from storage.memory import cache_store, memory_store

logger = logging.getLogger(__name__)

_supervisor: Optional[AnalysisSupervisor] = None

# Producer tasks keep running after the observer disconnects
_background_tasks: Set[asyncio.Task] = set()


def get_supervisor() -> AnalysisSupervisor:
    """Supervisor wired from the global config, created on first use."""
    global _supervisor
    if _supervisor is None:
        _supervisor = create_supervisor(config)
    return _supervisor


# Request Models
class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_input: Optional[str] = Field(default=None, alias="userInput", description="The business question to analyze")
    depth: Depth = Field(default=Depth.STANDARD, description="quick, standard, deep or comprehensive")
    style: Style = Field(default=Style.BUSINESS, description="formal, casual, technical or business")
    use_cache: bool = Field(default=True, alias="useCache")
    explain_terms: bool = Field(default=True, alias="explainTerms")


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rating: int = Field(..., ge=1, le=5)
    adopted: bool = False
    comment: str = ""
    correction: str = ""
    role_feedback: Dict[str, bool] = Field(default_factory=dict, alias="roleFeedback")
    session_id: Optional[str] = Field(default=None, alias="sessionId")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config.log_level)
    logger.info("Decision Analysis Orchestrator API starting...")
    if not config.validate():
        logger.warning("No model backend API key configured; every role will fail")
    yield
    logger.info("Decision Analysis Orchestrator API shutting down...")


app = FastAPI(
    title="Multi-Agent Decision Analysis Orchestrator",
    description="""
    Fans a business question out across analytical roles and streams the result:
    - **Role execution**: per-role model chains with fallback and dual-model cross-validation
    - **Modes**: forward, reverse and mixed analysis
    - **Five firewalls**: pre-fill search, triangulation, dual-model, real-time correction, post-hoc audit
    - **Streaming**: server-sent progress events for steps 0..12
    """,
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


# API Endpoints
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "providers_configured": sorted(
            name for name, p in PROVIDERS.items() if config.get_api_key(p.api_key_env)
        ),
        "tavily_configured": bool(config.tavily_api_key),
        "serper_configured": bool(config.serper_api_key),
    }


@app.get("/api/roles")
async def list_roles():
    """List the analytical roles and their model chains."""
    return {"roles": [role.to_dict() for role in ROLES]}


@app.post("/api/analyze")
async def analyze(request: AnalyzeRequest, supervisor: AnalysisSupervisor = Depends(get_supervisor)):
    """
    Run an analysis and stream its progress as server-sent events.

    A missing question is rejected before any stream is opened.
    """
    if not request.user_input or not request.user_input.strip():
        return _error(400, "INPUT_001", "请输入问题")

    emitter = StreamEmitter()
    task = asyncio.create_task(supervisor.run(
        AnalysisRequest(
            user_input=request.user_input,
            depth=request.depth,
            style=request.style,
            use_cache=request.use_cache,
            explain_terms=request.explain_terms,
        ),
        emitter,
    ))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return EventSourceResponse(
        emitter.stream(),
        sep="\n",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.get("/api/model-calls")
async def model_calls(limit: int = 50, supervisor: AnalysisSupervisor = Depends(get_supervisor)):
    """Most recent model attempts, oldest first, including failed fallbacks."""
    calls = supervisor.invoker.call_log[-limit:] if limit > 0 else []
    return {"calls": [entry.to_dict() for entry in calls]}


@app.get("/api/cache/stats")
async def cache_stats(supervisor: AnalysisSupervisor = Depends(get_supervisor)):
    """Cached result count and hit total."""
    if supervisor.cache is None:
        return {**cache_store.stats(), "totalHits": 0}
    return supervisor.cache.stats()


@app.post("/api/feedback")
async def submit_feedback(request: FeedbackRequest):
    """Store feedback; later sessions fold it into role prompts."""
    memory_store.add_feedback(Feedback(
        rating=request.rating,
        adopted=request.adopted,
        comment=request.comment,
        correction=request.correction,
        role_feedback=request.role_feedback,
        session_id=request.session_id,
    ))
    return {"status": "recorded", "feedbackCount": len(memory_store.get_feedback())}


@app.get("/api/accuracy")
async def accuracy_report():
    """Accuracy and learning effect drawn from stored feedback."""
    return learning_report(memory_store.get_feedback())


@app.get("/api/sessions")
async def list_sessions(limit: int = 20):
    """List finished sessions, newest first."""
    return {"sessions": [record.summary() for record in memory_store.list_sessions(limit)]}


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str):
    """Get the full result of a finished session."""
    record = memory_store.get_session(session_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return record.to_dict()


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.api_host, port=config.api_port)
