"""
Execute router: raw read-only SQL.

Endpoints:
- POST /api/execute
"""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, status

from matchsql.adapters import DatabaseError, ExecutionGateway, UnsupportedStatement

from ..schemas import ExecuteRequest, ExecuteResponse, ErrorResponse
from ..deps import get_gateway, logger


router = APIRouter(prefix="/api", tags=["Execute"])


@router.post(
    "/execute",
    response_model=ExecuteResponse,
    responses={400: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def execute(request: ExecuteRequest, gateway: ExecutionGateway = Depends(get_gateway)):
    """Run one read-only statement through the execution gateway."""
    try:
        rows = await asyncio.to_thread(gateway.run, request.sql)
    except UnsupportedStatement as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error_type": "UnsupportedStatement", "detail": str(e)},
        )
    except DatabaseError as e:
        logger.warning("Raw execution failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error_type": type(e).__name__, "detail": str(e)},
        )

    return ExecuteResponse(
        success=True,
        executed_sql=request.sql,
        data=rows,
        row_count=len(rows),
    )
