from contextlib import asynccontextmanager
from dotenv import load_dotenv
import logging
import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from account_gate.api.routers.routers import api_router
from account_gate.core.config import settings
from account_gate.core.database import get_database_url
from account_gate.core.logging_config import configure_logging
from account_gate.core.rate_limit import limiter
from account_gate.middleware import RequestIDMiddleware
from account_gate.telegram.bot import TelegramBridge
from account_gate.verification.schemas import to_envelope
from account_gate.verification.store import VerificationStore


# Load environment variables
load_dotenv()

# Configure logging with request_id and update_id support
configure_logging()

# Get logger for this module
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=1.0 if settings.is_local else 0.1,
        environment=settings.ENVIRONMENT,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown.

    On startup, opens the verification store, creates tables, seeds
    pre-approved ids and starts the Telegram bridge (webhook or poller). On
    shutdown, stops the bridge and disposes the database engine.
    """
    logger.info("Starting AccountGate API application...")

    store = VerificationStore.from_url(get_database_url())
    bridge = TelegramBridge(store)
    app.state.verification_store = store
    app.state.telegram_bridge = bridge

    try:
        await store.create_tables()
        logger.info("Database initialized")

        if settings.preapproved_user_ids:
            await store.seed_approved(settings.preapproved_user_ids)

        if not settings.ADMIN_API_TOKEN:
            logger.warning(
                "ADMIN_API_TOKEN not configured - admin endpoints are unauthenticated"
            )

        await bridge.start()
        logger.info("Telegram bridge started")

        logger.info("All services started successfully")
        yield

    except Exception:
        logger.exception("Failed to start services")
        raise
    finally:
        logger.info("Shutting down AccountGate API application...")

        try:
            await bridge.stop()
            logger.info("Telegram bridge stopped")

            await store.close()

            logger.info("All services stopped successfully")
        except Exception:
            logger.exception("Error during shutdown")


# Create FastAPI application
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
    openapi_url="/openapi.json" if settings.is_local else None,
)

# Add rate limiter state
app.state.limiter = limiter

# Add rate limit exceeded handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=to_envelope(False, str(exc.detail)),
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    logger.info(f"Request validation failed on {request.url.path}: {message}")
    return JSONResponse(status_code=400, content=to_envelope(False, message))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500, content=to_envelope(False, "Internal server error")
    )


# Add Request ID middleware (must be added first to ensure request_id is available)
app.add_middleware(RequestIDMiddleware)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include all API routes
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.PROJECT_NAME}
