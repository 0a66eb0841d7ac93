"""
FastAPI application entry point.

This module sets up the FastAPI application with middleware, shared
clients on app.state, error handlers and routers.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from routers import attendance, constraints, dashboards, diagnostics, observations, pdp, practice_blocks, sessions
from core.config import settings
from core.database import build_client_selector, check_db_connection
from core.logging import setup_logging
from core.exceptions import APIException, LLMResponseError, LLMUnavailableError
from services.llm_client import LLMClient
import logging
import time
import traceback

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _filter_sensitive_data(event):
    """Filter sensitive data before sending to Sentry."""
    if "request" in event and "headers" in event["request"]:
        headers = event["request"]["headers"]
        if isinstance(headers, dict):
            headers.pop("authorization", None)
            headers.pop("cookie", None)
    return event


# Initialize Sentry for error tracking
if settings.SENTRY_DSN:
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
            ],
            send_default_pii=False,
            before_send=lambda event, hint: _filter_sensitive_data(event),
        )
        logger.info(f"Sentry initialized for environment: {settings.ENVIRONMENT}")
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")


app = FastAPI(
    title="Basketball Coaching API",
    description="Practice plans, player development plans and coach observation analysis",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# Shared per-process clients. Tests replace these on app.state.
app.state.client_selector = build_client_selector()
app.state.llm_client = LLMClient()


# CORS middleware
if settings.DEBUG:
    allowed_origins = ["*"]
elif settings.CORS_ORIGINS:
    allowed_origins = [origin.strip() for origin in settings.CORS_ORIGINS.split(",")]
else:
    allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing information."""
    start_time = time.time()

    logger.info(
        f"Request: {request.method} {request.url.path}",
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            }
        }
    )

    response = await call_next(request)
    process_time = time.time() - start_time

    logger.info(
        f"Response: {request.method} {request.url.path} - {response.status_code}",
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            }
        }
    )
    response.headers["X-Process-Time"] = str(process_time)
    return response


def _using_service_role(request: Request):
    selector = getattr(request.app.state, "client_selector", None)
    return selector.using_service_role if selector is not None else None


def _error_response(request: Request, status_code: int, message: str, exc: Exception = None) -> JSONResponse:
    content = {
        "success": False,
        "error": message,
        "using_service_role": _using_service_role(request),
    }
    if exc is not None and settings.include_stack_traces:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException):
    return _error_response(request, exc.status_code, exc.detail)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"Invalid request: {location}: {first.get('msg')}" if location else f"Invalid request: {first.get('msg')}"
    else:
        message = "Invalid request body"
    return _error_response(request, status.HTTP_400_BAD_REQUEST, message)


@app.exception_handler(LLMResponseError)
@app.exception_handler(LLMUnavailableError)
async def llm_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"LLM failure: {exc}",
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
                "error_type": type(exc).__name__,
            }
        }
    )
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors."""
    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={
            "extra_fields": {
                "method": request.method,
                "path": request.url.path,
            }
        }
    )
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or "An unknown error occurred", exc)


@app.get("/health")
def health(request: Request):
    """
    Health check for load balancers and uptime monitors.

    Returns:
        - 200: Database reachable
        - 503: Database unavailable
    """
    selector = request.app.state.client_selector
    db_healthy = check_db_connection(selector.select())

    if not db_healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "database": "unavailable",
                "using_service_role": selector.using_service_role,
            }
        )

    return {
        "status": "healthy",
        "timestamp": time.time(),
        "llm_configured": request.app.state.llm_client.available,
        "using_service_role": selector.using_service_role,
    }


# Include routers
app.include_router(attendance.router)
app.include_router(pdp.router)
app.include_router(practice_blocks.router)
app.include_router(observations.router)
app.include_router(constraints.router)
app.include_router(diagnostics.router)
app.include_router(sessions.router)
app.include_router(dashboards.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
