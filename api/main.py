"""
FastAPI application initialization and configuration.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agents import registry
from api.routes import health
from api.routes.v1 import bcq_admin, business_case, functions
from core.config import settings
from core.middleware import (
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)
from database.engine import close_db, init_db

# Setup structured logging before anything else logs
setup_logging(
    log_level=settings.log_level,
    json_logs=settings.json_logs,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
    await init_db()

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await registry.aclose()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Business case question video responses: candidate portal, transcription and analysis",
    version=health.VERSION,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

setup_error_handlers(app)

# Middleware executes in reverse order of registration
# 1. Error handling (outermost, catches everything)
app.add_middleware(
    ErrorHandlingMiddleware,
    debug=settings.debug,
)

# 2. Structured request logging
app.add_middleware(
    StructuredLoggingMiddleware,
    log_request_body=settings.log_request_body,
    max_body_size=settings.log_max_body_size,
)

# 3. CORS for the candidate portal and recruiter app
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, tags=["Health"])

app.include_router(
    business_case.router,
    prefix=f"{settings.api_v1_prefix}/business-case",
    tags=["Business Case"],
)
app.include_router(
    functions.router,
    prefix=f"{settings.api_v1_prefix}/functions",
    tags=["Functions"],
)
app.include_router(
    bcq_admin.router,
    prefix=f"{settings.api_v1_prefix}/applications",
    tags=["BCQ Responses"],
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
