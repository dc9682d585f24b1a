"""
HabitAI – Coach Backend API

FastAPI proxy between the mobile app and the Grog model API:
chat with the habit coach, Tiny Habits plan generation and missed-day analysis.

File: api_main.py
"""

import logging
import os
import uuid
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coach_service import CoachService
from config import Settings, get_settings
from errors import ConfigurationError, HabitAIError, ValidationError
from grog_client import GrogClient, UpstreamClient
from history import ConversationHistory, ConversationRegistry
from retry_policy import RetryPolicy
from schemas import (
    AnalyzeMissedRequest,
    AnalyzeMissedResponse,
    ChatHistoryResponse,
    ChatRequest,
    ChatResetRequest,
    ChatResponse,
    ErrorResponse,
    HabitPlanRequest,
    HabitPlanResponse,
    SuccessResponse,
)

# --------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------

logger = logging.getLogger("habitai_api")
logger.setLevel(logging.INFO)

if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

API_VERSION = "1.0.0"


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _error(status_code: int, request: Request, error: str, message: Optional[str] = None, details=None):
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            details=details,
            request_id=_request_id(request),
        ).model_dump(exclude_none=True),
    )


# --------------------------------------------------------------------
# App factory
# --------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    upstream: Optional[UpstreamClient] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> FastAPI:
    """
    Build the API with its own services.

    - settings: defaults to the environment (get_settings()).
    - upstream: completion client; built lazily from settings on first use
      when not given, so a missing key only fails the requests that need it.
    - retry_policy: defaults to the configured delay schedule.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="HabitAI – Habit Coach API",
        description=(
            "Proxy to the Grog model API: coach chat, Tiny Habits plans "
            "and missed-day analysis."
        ),
        version=API_VERSION,
    )

    app.state.settings = settings
    app.state.upstream = upstream
    app.state.retry_policy = retry_policy or RetryPolicy(delays=settings.retry_delays)
    app.state.conversations = ConversationRegistry(
        max_sessions=settings.max_sessions,
        history_limit=settings.history_limit,
    )

    # CORS – the mobile app and local tools call from anywhere
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_middleware(app)
    _register_exception_handlers(app)
    _register_routes(app)
    return app


# --------------------------------------------------------------------
# Middleware
# --------------------------------------------------------------------


def _register_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def add_request_id_and_log(request: Request, call_next):
        """Attach a request ID to each request and log basic info."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as exc:  # global safety net
            logger.exception(f"[{request_id}] Unhandled error: {exc}")
            response = _error(500, request, "Internal server error", str(exc))

        response.headers["X-Request-ID"] = request_id
        return response


# --------------------------------------------------------------------
# Exception Handlers
# --------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.warning(f"[{_request_id(request)}] ValidationError: {exc.message}")
        return _error(exc.status_code, request, exc.message)

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"[{_request_id(request)}] ConfigurationError: {exc.message}")
        return _error(exc.status_code, request, exc.message, exc.details.get("hint"))

    @app.exception_handler(HabitAIError)
    async def habitai_error_handler(request: Request, exc: HabitAIError):
        logger.error(f"[{_request_id(request)}] {type(exc).__name__}: {exc.message}")
        return _error(500, request, "Internal server error", exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"[{_request_id(request)}] Invalid body: {exc.errors()}")
        return _error(400, request, "Invalid request body", details=jsonable_errors(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error(
                404,
                request,
                "Not found",
                f"Endpoint {request.method} {request.url.path} not found",
            )
        logger.warning(f"[{_request_id(request)}] HTTPException {exc.status_code}: {exc.detail}")
        return _error(exc.status_code, request, str(exc.detail))


def jsonable_errors(exc: RequestValidationError):
    """Validation error list without the raw input / ctx objects."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


# --------------------------------------------------------------------
# Utility Helpers
# --------------------------------------------------------------------


def require_api_key(settings: Settings) -> str:
    """Raise a clean error if GROG_API_KEY is not configured."""
    if not settings.grog_api_key:
        raise ConfigurationError(
            "GROG_API_KEY not configured",
            details={"hint": "Set GROG_API_KEY in .env before running HabitAI."},
        )
    return settings.grog_api_key


def _upstream_for(app: FastAPI) -> UpstreamClient:
    settings: Settings = app.state.settings
    require_api_key(settings)

    if app.state.upstream is None:
        app.state.upstream = GrogClient(
            api_key=settings.grog_api_key,
            base_url=settings.grog_api_url,
            model=settings.grog_model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout=settings.timeout_seconds,
        )
    return app.state.upstream


def _coach_for(request: Request, history: Optional[ConversationHistory] = None) -> CoachService:
    app = request.app
    return CoachService(
        client=_upstream_for(app),
        retry_policy=app.state.retry_policy,
        history=history if history is not None else ConversationHistory(app.state.settings.history_limit),
        plan_max_tokens=app.state.settings.plan_max_tokens,
    )


def _required(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message)
    return value


# --------------------------------------------------------------------
# Routes
# --------------------------------------------------------------------


def _register_routes(app: FastAPI) -> None:

    # ---- Basic & Health ----

    @app.get("/", tags=["meta"])
    def root():
        return {
            "status": "ok",
            "message": "HabitAI Backend API",
            "version": API_VERSION,
            "endpoints": {
                "health": "GET /health",
                "chat": "POST /api/chat",
                "chatReset": "POST /api/chat/reset",
                "chatHistory": "GET /api/chat/history",
                "habitPlan": "POST /api/habit-plan",
                "analyzeMissedDay": "POST /api/analyze-missed",
            },
        }

    @app.get("/health", tags=["meta"])
    def health_check(request: Request):
        settings: Settings = request.app.state.settings
        return {
            "status": "ok",
            "grog_key_configured": bool(settings.grog_api_key),
            "environment": settings.env,
            "debug": settings.debug,
        }

    # ---- Chat ----

    @app.post(
        "/api/chat",
        response_model=ChatResponse,
        tags=["chat"],
        summary="Chat with the habit coach",
    )
    async def chat(req: ChatRequest, request: Request):
        """
        One coach turn. Upstream failures never surface here: after the
        retries the caller gets a fallback text with status 200.

        Pass sessionId to keep the last 10 messages as context across calls.
        """
        message = _required(req.message, "Message is required")
        history = request.app.state.conversations.get(req.session_id)
        coach = _coach_for(request, history)

        reply = await coach.chat(message, req.context, voice_mode=req.voice_mode)
        return ChatResponse(response=reply)

    @app.post(
        "/api/chat/reset",
        response_model=SuccessResponse,
        tags=["chat"],
        summary="Forget a conversation's history",
    )
    def chat_reset(req: ChatResetRequest, request: Request):
        session_id = _required(req.session_id, "sessionId is required")
        request.app.state.conversations.reset(session_id)
        return SuccessResponse()

    @app.get(
        "/api/chat/history",
        response_model=ChatHistoryResponse,
        tags=["chat"],
        summary="Most recent messages of a conversation",
    )
    def chat_history(
        request: Request,
        session_id: Optional[str] = Query(default=None, alias="sessionId"),
        limit: int = Query(default=5, ge=0),
    ):
        session_id = _required(session_id, "sessionId is required")
        conversations: ConversationRegistry = request.app.state.conversations
        if session_id not in conversations:
            return ChatHistoryResponse(messages=[])
        return ChatHistoryResponse(messages=conversations.get(session_id).recent(limit))

    # ---- Habit plan ----

    @app.post(
        "/api/habit-plan",
        response_model=HabitPlanResponse,
        tags=["plan"],
        summary="Generate a Tiny Habits plan",
    )
    async def habit_plan(req: HabitPlanRequest, request: Request):
        """
        If the model answer has no usable JSON, or the model API is down,
        the deterministic default plan is returned instead.
        """
        description = _required(req.habit_description, "Habit description is required")
        coach = _coach_for(request)

        plan = await coach.create_habit_plan(description)
        return HabitPlanResponse(plan=plan)

    # ---- Missed day ----

    @app.post(
        "/api/analyze-missed",
        response_model=AnalyzeMissedResponse,
        tags=["coach"],
        summary="Supportive analysis of a missed day",
    )
    async def analyze_missed(req: AnalyzeMissedRequest, request: Request):
        reason = _required(req.reason, "Reason is required")
        coach = _coach_for(request)

        analysis = await coach.analyze_missed_day(reason, req.context)
        return AnalyzeMissedResponse(analysis=analysis)


# --------------------------------------------------------------------
# Local dev runner
# --------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api_main:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.getenv("PORT", get_settings().port)),
        reload=get_settings().debug,
    )
