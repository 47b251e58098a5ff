"""
MatchSQL FastAPI Application.

REST layer over the correction orchestrator. All query logic is delegated
to the orchestrator and the execution gateway; no SQL or LLM logic here.

Endpoints:
- POST /api/ask      Natural-language question -> executed SQL + rows
- POST /api/execute  Raw read-only SQL
- GET  /api/stats    Auto-fix counters and LLM request counts
- GET  /health       Health check
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from configs import ConfigurationError, DATABASE_TYPE, LLM_PROVIDER
from matchsql import __version__

from .deps import ALLOWED_ORIGINS, logger
from .routers import ask, execute, system
from .schemas import ErrorResponse


# ============================================================
# APP LIFECYCLE
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("MatchSQL API started. provider=%s database=%s", LLM_PROVIDER, DATABASE_TYPE)
    yield
    logger.info("MatchSQL API shutting down.")


# ============================================================
# FASTAPI APP
# ============================================================

app = FastAPI(
    title="MatchSQL API",
    description="Natural-language search over matrimonial profiles",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error_type=type(exc).__name__, detail=str(exc)).model_dump(),
    )


app.include_router(ask.router)
app.include_router(execute.router)
app.include_router(system.router)


# ============================================================
# RUN DIRECTLY (for development)
# ============================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
