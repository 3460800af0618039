import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from wa_inbox.composer import MessageComposer
from wa_inbox.config import settings
from wa_inbox.conversations import ConversationAggregator
from wa_inbox.errors import InboxError, MalformedPayloadError, StorageError
from wa_inbox.ingestion import IngestionEngine
from wa_inbox.logging_utils import setup_logging, RequestLoggingMiddleware, log_webhook_data
from wa_inbox.metrics import get_metrics, get_metrics_content_type
from wa_inbox.normalizer import parse_document
from wa_inbox.storage import init_db, check_db_health, get_db
from wa_inbox.schemas import (
    ConversationsListResponse,
    ErrorResponse,
    HealthResponse,
    MessagesListResponse,
    SendMessageRequest,
    SendMessageResponse,
    WebhookResponse,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables (fatal on failure),
      record the start time reported as uptime by /api/health
    """
    init_db()
    app.state.started_at = time.monotonic()
    yield


app = FastAPI(
    title="WhatsApp Inbox API",
    description="Webhook ingestion and conversation API for WhatsApp-like messages",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGIN.split(",")],
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error Handlers
# =============================================================================

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(by_alias=True),
    )


@app.exception_handler(InboxError)
async def inbox_error_handler(request: Request, exc: InboxError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    reasons = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body') or 'body'}: {err['msg']}"
        for err in exc.errors()
    )
    return _error(status.HTTP_400_BAD_REQUEST, f"Validation failed: {reasons}")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return _error(exc.status_code, "API endpoint not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# =============================================================================
# Dependencies
# =============================================================================

def get_aggregator(db: Session = Depends(get_db)) -> ConversationAggregator:
    return ConversationAggregator(db, logger=logging.getLogger("wa_inbox.conversations"))


def get_composer(db: Session = Depends(get_db)) -> MessageComposer:
    return MessageComposer(db, settings.BUSINESS_PHONE_NUMBER, logger=logging.getLogger("wa_inbox.composer"))


def get_ingestion_engine(db: Session = Depends(get_db)) -> IngestionEngine:
    return IngestionEngine(db, settings.BUSINESS_PHONE_NUMBER, logger=logging.getLogger("wa_inbox.ingestion"))


# =============================================================================
# Info and Health Routes
# =============================================================================

@app.get("/")
async def root() -> dict:
    """API information."""
    return {
        "message": "WhatsApp Inbox API",
        "version": app.version,
        "status": "Running",
        "endpoints": [
            "GET /api/health - System health check",
            "GET /api/conversations - Get all conversations",
            "GET /api/conversations/{conversation_id}/messages - Get messages for a conversation",
            "POST /api/conversations/{conversation_id}/messages - Send message to a conversation",
            "POST /webhook - Ingest one webhook document",
        ],
    }


@app.get("/api/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health(
    request: Request,
    response: Response,
    aggregator: ConversationAggregator = Depends(get_aggregator),
) -> HealthResponse:
    """
    System health and totals.

    Returns 503 with status "Database Error" if the store cannot be queried.
    """
    now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    try:
        stats = aggregator.stats()
    except StorageError as e:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(success=False, status="Database Error", error=e.message, timestamp=now)

    return HealthResponse(
        status="OK",
        total_messages=stats["total_messages"],
        total_conversations=stats["total_conversations"],
        timestamp=now,
        uptime=round(time.monotonic() - request.app.state.started_at, 3),
    )


@app.get("/health/live")
async def health_live() -> dict:
    """Liveness probe - always returns 200 once the app is running."""
    return {"success": True, "status": "ok"}


@app.get("/health/ready")
async def health_ready(response: Response) -> dict:
    """Readiness probe - 200 only if the DB is reachable and the schema is applied."""
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"success": False, "status": "not_ready", "error": "Database not reachable or schema not applied"}
    return {"success": True, "status": "ready"}


# =============================================================================
# Conversation Routes
# =============================================================================

@app.get("/api/conversations", response_model=ConversationsListResponse)
async def list_conversations(
    aggregator: ConversationAggregator = Depends(get_aggregator),
) -> ConversationsListResponse:
    """
    List conversations, most recently active first.

    Only contacts that have sent at least one message are listed.
    """
    conversations = aggregator.list_conversations()
    logger.info(f"GET /api/conversations: returned {len(conversations)} conversations")
    return ConversationsListResponse(conversations=conversations)


@app.get("/api/conversations/{conversation_id}/messages", response_model=MessagesListResponse)
async def list_messages(
    conversation_id: str,
    aggregator: ConversationAggregator = Depends(get_aggregator),
) -> MessagesListResponse:
    """All messages of a conversation, oldest first. Unknown ids return an empty list."""
    messages = aggregator.list_messages(conversation_id)
    logger.info(f"GET messages for {conversation_id}: returned {len(messages)} messages")
    return MessagesListResponse(messages=messages)


@app.post(
    "/api/conversations/{conversation_id}/messages",
    response_model=SendMessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Validation error"}},
)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    composer: MessageComposer = Depends(get_composer),
) -> SendMessageResponse:
    """
    Record a message sent by the business to a conversation.

    Body:
        - text: message text, required and non-blank
        - contactName: optional display name for the contact
    """
    sent = composer.send(conversation_id, body.text or "", contact_name=body.contact_name)
    return SendMessageResponse(message=sent.record)


# =============================================================================
# Webhook Route
# =============================================================================

@app.post(
    "/webhook",
    response_model=WebhookResponse,
    responses={400: {"model": ErrorResponse, "description": "Malformed document"}},
)
async def webhook(
    request: Request,
    engine: IngestionEngine = Depends(get_ingestion_engine),
) -> WebhookResponse:
    """
    Ingest one webhook document.

    - Duplicate message ids are acknowledged without inserting
    - Status entries update existing messages; unknown ids are ignored
    - A document without the entry/changes/value structure is acknowledged as skipped
    """
    raw_body = await request.body()
    logger.debug(f"Webhook body size: {len(raw_body)} bytes")

    try:
        document = parse_document(raw_body, source="request")
    except MalformedPayloadError:
        log_webhook_data(request, result="malformed")
        raise

    source = f"request {getattr(request.state, 'request_id', '-')}"
    report = engine.ingest_document(document, source=source)
    skipped = report.skipped_documents > 0
    log_webhook_data(
        request,
        result="skipped" if skipped else "processed",
        created=report.created,
        duplicates=report.duplicates,
        invalid=report.invalid,
    )
    return WebhookResponse(
        created=report.created,
        duplicates=report.duplicates,
        invalid=report.invalid,
        statuses_updated=report.statuses_updated,
        statuses_unmatched=report.statuses_unmatched,
        skipped=skipped,
    )


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus-style metrics."""
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )


def run() -> None:
    """Serve the API with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)
