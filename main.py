# Essential imports
import time
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

# Import all models for SQLAlchemy relationship resolution
import models  # noqa: F401

from routers import auth, users

# Rate limiter imports
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from middleware.rate_limiter import limiter

# Logging imports
from core.logging_config import setup_logging
from middleware import RequestIDMiddleware, get_request_id
from utils.logger import get_logger, log_request

from core.config import settings
from core.database import create_db_engine, create_session_factory
from core.errors import EntropyFailure, StoreUnavailable
from services.auth_service import AuthService
from utils.responses import AuthRejected, auth_rejected_handler, clear_auth_cookies

# CORS imports
from fastapi.middleware.cors import CORSMiddleware

# Initialize logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Process-wide state: one engine (connection pool) per process, created at
    startup and disposed on shutdown.
    """
    engine = create_db_engine(settings.DATABASE_URL, settings.STORE_TIMEOUT_SECONDS)
    app.state.auth_service = AuthService.from_settings(create_session_factory(engine), settings)
    logger.info("Application startup complete", extra={"event": "startup"})
    yield
    logger.info("Application shutting down", extra={"event": "shutdown"})
    engine.dispose()


app = FastAPI(
    title="Content API - Auth",
    description="Registration, email verification and cookie sessions for the content API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,                    # Session cookies
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log all HTTP requests with method, path, status code, and duration.
    """
    start_time = time.time()
    response = await call_next(request)
    duration = (time.time() - start_time) * 1000

    log_request(
        logger,
        request.method,
        request.url.path,
        response.status_code,
        duration,
        client_ip=request.client.host if request.client else None
    )
    return response


# Added last so it wraps the logging middleware
app.add_middleware(RequestIDMiddleware)


@app.get("/health")
async def health_check():
    logger.debug("Health check requested")
    return {"status": "Healthy"}


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(
        f"Store unavailable: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "request_id": get_request_id(request)
        }
    )
    response = JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable", "code": "STORE_UNAVAILABLE"}
    )
    clear_auth_cookies(response)
    return response


@app.exception_handler(EntropyFailure)
async def entropy_failure_handler(request: Request, exc: EntropyFailure):
    logger.critical(
        "Secure random source failed",
        extra={"path": request.url.path, "request_id": get_request_id(request)},
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch all unhandled exceptions, log them with the stack trace and return
    a generic error without internals.
    """
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise

    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "request_id": get_request_id(request)
        },
        exc_info=exc
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


app.add_exception_handler(AuthRejected, auth_rejected_handler)

# Including routers
app.include_router(auth.router)
app.include_router(users.router)


# Add rate limiter to the app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
