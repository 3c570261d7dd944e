import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from newsdebate.api.routes import router
from newsdebate.config import get_settings
from newsdebate.database import engine, Base
from newsdebate.exceptions import InputValidationError, NewsDebateError, UpstreamError
from newsdebate.services.llm import get_generation_client

# Import models so SQLAlchemy knows about them when creating tables
from newsdebate.models import records  # noqa: F401

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# LIFESPAN: Startup and Shutdown Logic
# =============================================================================
#
# Before 'yield': create the four tables if they don't exist yet.
# After 'yield': close the upstream HTTP client and the connection pool.
#
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""

    # === STARTUP ===
    async with engine.begin() as conn:
        # If tables already exist, this does nothing (safe to run repeatedly)
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Using generation backend '{settings.llm_provider}'")

    yield

    # === SHUTDOWN ===
    await get_generation_client().aclose()
    await engine.dispose()


app = FastAPI(
    title="News Debate",
    description="Summarize a news article and stream a debate between two models about it",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


# =============================================================================
# ERROR HANDLERS (non-streaming responses)
# =============================================================================
#
# Streams handle their own errors (see api/streaming.py). These cover the
# JSON endpoints and validation that happens before any stream exists.
#

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


@app.exception_handler(InputValidationError)
async def input_validation_handler(request: Request, exc: InputValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.error(f"Upstream failure on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=502, content={"error": exc.message})


@app.exception_handler(NewsDebateError)
async def app_error_handler(request: Request, exc: NewsDebateError) -> JSONResponse:
    logger.error(f"Request to {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=500, content={"error": exc.message})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
