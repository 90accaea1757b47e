"""Interview Orchestrator — FastAPI application.

Runs AI-conducted interviews from published templates, stores every turn,
and aggregates completed sessions into multilingual reports.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from config import settings
from db.database import close_db, init_db
from db.models import ConversationLog
from db.repository import InterviewStore
from models.schemas import (
    SUPPORTED_LANGUAGES,
    AggregationInfo,
    AggregationReport,
    ChatRequest,
    ChatResponse,
    InitResponse,
    ReportDetailInfo,
    RunAggregationResponse,
    SessionInfo,
    SessionStartRequest,
    SessionStatusUpdate,
    SettingsResponse,
    SummaryResponse,
    TemplateInfo,
    TemplateRequest,
    TurnInfo,
)
from services.exceptions import (
    GenerationError,
    NotFoundError,
    ProviderConfigurationError,
    SessionStateError,
)
from services.interview import InterviewController
from services.llm_provider import create_llm_provider
from services.question_normalizer import ResponseNormalizer
from services.report_aggregator import ReportAggregator
from services.summary_generator import SummaryGenerator
from services.template_publisher import TemplatePublisher
from services.translation import TranslationEngine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("interviews")


@dataclass
class Services:
    interviews: InterviewController
    publisher: TemplatePublisher
    aggregator: ReportAggregator
    summaries: SummaryGenerator


# --- Application lifecycle ---


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(f"Starting Interview Orchestrator (provider: {settings.llm_provider})")

    session_factory = await init_db(str(settings.db_path.expanduser()))
    store = InterviewStore(session_factory)

    app.state.services = None
    app.state.provider_error = None
    try:
        provider = create_llm_provider(settings)
    except ProviderConfigurationError as e:
        # Keep serving settings and health so the misconfiguration is visible
        logger.error(f"LLM provider not configured: {e}")
        app.state.provider_error = str(e)
    else:
        translator = TranslationEngine(provider, source_language=settings.source_language)
        app.state.services = Services(
            interviews=InterviewController(store, provider, ResponseNormalizer(provider)),
            publisher=TemplatePublisher(store, provider, translator),
            aggregator=ReportAggregator(store, provider, translator, settings),
            summaries=SummaryGenerator(store, provider),
        )

    yield

    logger.info("Shutting down Interview Orchestrator")
    await close_db()


# --- FastAPI app ---

app = FastAPI(
    title="Interview Orchestrator",
    description="AI-conducted multilingual interviews with aggregated reporting",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SessionStateError)
async def session_state_handler(request: Request, exc: SessionStateError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ProviderConfigurationError)
async def provider_config_handler(request: Request, exc: ProviderConfigurationError):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


def _services(request: Request) -> Services:
    services = request.app.state.services
    if services is None:
        raise ProviderConfigurationError(request.app.state.provider_error or "LLM provider not configured")
    return services


def _turn_info(turn: ConversationLog) -> TurnInfo:
    # The ORM attribute is metadata_ because Base.metadata is reserved
    return TurnInfo(
        role=turn.role,
        content=turn.content,
        metadata=turn.metadata_,
        timestamp=turn.timestamp,
    )


# --- Session Endpoints ---


@app.post("/api/sessions", response_model=SessionInfo)
async def start_session(body: SessionStartRequest, request: Request):
    """Start a new interview session for a template."""
    interviews = _services(request).interviews
    session_id = await interviews.start_session(body.template_id, body.language)
    return await interviews.get_session(session_id)


@app.get("/api/sessions/{session_id}", response_model=SessionInfo)
async def get_session(session_id: str, request: Request):
    return await _services(request).interviews.get_session(session_id)


@app.patch("/api/sessions/{session_id}", response_model=SessionInfo)
async def update_session(session_id: str, body: SessionStatusUpdate, request: Request):
    """Complete the session, or extend it past its time limit."""
    interviews = _services(request).interviews
    if body.status == "extended":
        return await interviews.extend_session(session_id)
    return await interviews.end_session(session_id)


@app.post("/api/sessions/{session_id}/init", response_model=InitResponse)
async def initialize_session(session_id: str, request: Request):
    """Generate (or return the stored) greeting for the session."""
    return await _services(request).interviews.initialize_interview(session_id)


@app.post("/api/sessions/{session_id}/messages", response_model=ChatResponse)
async def send_message(session_id: str, body: ChatRequest, request: Request):
    """Submit the participant's answer and get the next question."""
    return await _services(request).interviews.send_turn(session_id, body.message, body.metadata)


@app.get("/api/sessions/{session_id}/messages", response_model=list[TurnInfo])
async def get_messages(session_id: str, request: Request):
    turns = await _services(request).interviews.get_history(session_id)
    return [_turn_info(turn) for turn in turns]


@app.post("/api/sessions/{session_id}/summary", response_model=SummaryResponse)
async def generate_summary(session_id: str, request: Request):
    """Generate the session summary, or return the cached one."""
    summary = await _services(request).summaries.generate(session_id)
    return SummaryResponse(summary=summary)


@app.get("/api/sessions/{session_id}/summary", response_model=SummaryResponse)
async def get_summary(session_id: str, request: Request):
    summary = await _services(request).summaries.get_summary(session_id)
    if not summary:
        raise HTTPException(status_code=404, detail="Summary not generated yet")
    return SummaryResponse(summary=summary)


@app.get("/api/sessions/{session_id}/export")
async def export_session(session_id: str, request: Request):
    """Download the session as a Markdown document."""
    content = await _services(request).interviews.export_markdown(session_id)
    return Response(
        content=content,
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="interview-{session_id}.md"'},
    )


# --- Template Endpoints ---


@app.get("/api/templates", response_model=list[TemplateInfo])
async def list_templates(request: Request):
    return await _services(request).publisher.list_templates()


@app.post("/api/templates", response_model=TemplateInfo)
async def create_template(body: TemplateRequest, request: Request):
    """Publish a new template with its overview and all translations."""
    return await _services(request).publisher.create_or_update_template(
        body.title, body.prompt, body.duration
    )


@app.get("/api/templates/{template_id}", response_model=TemplateInfo)
async def get_template(template_id: str, request: Request):
    return await _services(request).publisher.get_template(template_id)


@app.put("/api/templates/{template_id}", response_model=TemplateInfo)
async def update_template(template_id: str, body: TemplateRequest, request: Request):
    """Re-publish a template; overview and translations are regenerated."""
    return await _services(request).publisher.create_or_update_template(
        body.title, body.prompt, body.duration, template_id=template_id
    )


@app.delete("/api/templates/{template_id}")
async def delete_template(template_id: str, request: Request):
    """Delete a template with its sessions, logs and report rows."""
    await _services(request).publisher.delete_template(template_id)
    return {"status": "ok", "message": "Template deleted"}


# --- Report Endpoints ---


@app.get("/api/reports", response_model=list[AggregationInfo])
async def list_reports(request: Request):
    return await _services(request).aggregator.list_aggregations()


@app.post("/api/reports", response_model=RunAggregationResponse)
async def run_report(request: Request):
    """Run the aggregation over all templates and wait for it to finish."""
    aggregator = _services(request).aggregator
    try:
        aggregation_id = await aggregator.run_aggregation()
    except Exception as e:
        logger.error(f"[REPORT] Aggregation run failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to run report aggregation")
    return RunAggregationResponse(aggregation_id=aggregation_id)


@app.get("/api/reports/{aggregation_id}", response_model=AggregationReport)
async def get_report(aggregation_id: str, request: Request, language: str = "en"):
    """Report rows of one aggregation in the requested language."""
    if language not in SUPPORTED_LANGUAGES:
        raise HTTPException(status_code=422, detail=f"Unsupported language: {language}")
    aggregation, details = await _services(request).aggregator.get_aggregation(aggregation_id, language)
    return AggregationReport(
        aggregation=AggregationInfo.model_validate(aggregation),
        details=[ReportDetailInfo.model_validate(detail) for detail in details],
        language=language,
    )


# --- Settings Endpoints ---


@app.get("/api/settings", response_model=SettingsResponse)
async def get_settings():
    """Get the current provider configuration."""
    return SettingsResponse(
        llm_provider=settings.llm_provider,
        model_name=settings.model_name,
        openai_api_key_set=bool(settings.openai_api_key),
        local_llm_base_url=settings.local_llm_base_url,
        aws_region=settings.aws_region,
        aws_credentials_set=bool(settings.aws_access_key_id and settings.aws_secret_access_key),
        aws_bearer_token_set=bool(settings.aws_bearer_token_bedrock),
        source_language=settings.source_language,
        supported_languages=list(SUPPORTED_LANGUAGES),
    )


# --- Health ---


@app.get("/api/health")
async def health(request: Request):
    """Health check endpoint."""
    return {
        "status": "ok",
        "llm_provider": settings.llm_provider,
        "provider_ready": request.app.state.services is not None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
