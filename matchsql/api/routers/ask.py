"""
Ask router: natural-language questions through the correction loop.

Endpoints:
- POST /api/ask
"""

import asyncio

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from matchsql.orchestrator import CorrectionOrchestrator
from matchsql.orchestrator.pipeline import RATE_LIMITED

from ..schemas import AskRequest, AskResponse, ErrorResponse
from ..deps import get_orchestrator, logger, REQUEST_TIMEOUT_SECONDS


router = APIRouter(prefix="/api", tags=["Ask"])

# error_type -> HTTP status for failed pipeline results
ERROR_STATUS = {
    "ExecutionFailed": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "ValidationRejected": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "JoinIncomplete": status.HTTP_422_UNPROCESSABLE_ENTITY,
    RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    "SchemaContextUnavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
    "PipelineTimeout": status.HTTP_504_GATEWAY_TIMEOUT,
}


@router.post(
    "/ask",
    response_model=AskResponse,
    responses={
        422: {"model": AskResponse},
        429: {"model": AskResponse},
        500: {"model": ErrorResponse},
        503: {"model": AskResponse},
        504: {"model": AskResponse},
    },
)
async def ask(request: AskRequest, orchestrator: CorrectionOrchestrator = Depends(get_orchestrator)):
    """
    Answer a question about the profile database.

    Extracts intent, builds or synthesizes SQL, validates, executes and
    retries with corrective synthesis up to three attempts.
    """
    try:
        result = await asyncio.wait_for(
            orchestrator.process_question(request.question),
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        logger.error("Question timed out after %ds: %s", REQUEST_TIMEOUT_SECONDS, request.question[:100])
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content=ErrorResponse(
                error_type="PipelineTimeout",
                detail=f"Timed out after {REQUEST_TIMEOUT_SECONDS} seconds",
            ).model_dump(),
        )

    body = AskResponse.from_result(result)
    if result.success:
        return body

    code = ERROR_STATUS.get(result.error_type, status.HTTP_422_UNPROCESSABLE_ENTITY)
    return JSONResponse(status_code=code, content=body.model_dump(mode="json"))
