"""
System router: health check and pipeline statistics.

Endpoints:
- GET /health     Health check (always available)
- GET /api/stats  Auto-fix counters and LLM request counts
"""

import asyncio
from typing import List

from fastapi import APIRouter, Depends

from configs import LLM_PROVIDER
from matchsql import __version__
from matchsql.adapters import DatabaseError, ExecutionGateway
from matchsql.orchestrator import CorrectionOrchestrator

from ..schemas import HealthResponse, StatsResponse
from ..deps import get_gateway, get_orchestrator, logger


router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthResponse)
async def health_check(gateway: ExecutionGateway = Depends(get_gateway)):
    """Check API health and database connectivity."""
    connected = await asyncio.to_thread(gateway.ping)
    missing: List[str] = []
    if not connected:
        logger.warning("Health check: database not reachable")
    else:
        try:
            missing = await asyncio.to_thread(gateway.missing_catalog_tables)
        except DatabaseError as e:
            logger.warning("Health check: could not list tables: %s", e)
        if missing:
            logger.warning("Health check: catalog tables missing from database: %s", missing)

    return HealthResponse(
        status="healthy",
        version=__version__,
        llm_provider=LLM_PROVIDER,
        database_connected=connected,
        db_type=gateway.db_type,
        missing_tables=missing,
    )


@router.get("/api/stats", response_model=StatsResponse)
async def stats(orchestrator: CorrectionOrchestrator = Depends(get_orchestrator)):
    """Validator auto-fix counters and LLM client request counts."""
    return StatsResponse(**orchestrator.get_stats())
