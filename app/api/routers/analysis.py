"""
app/api/routers/analysis.py

Analysis submit endpoint with streamed or single-body responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, StreamingResponse

from app.api.dependencies import get_analysis_service
from app.errors import RequestValidationError, format_error_response
from app.schemas.analysis import AnalyzeRequestBody
from app.services.analysis_service import (
    COMPLETE_EVENT,
    AnalysisService,
    status_code_for,
    stream_events,
)

router = APIRouter(prefix="/api", tags=["analysis"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def validation_error_response(exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, **format_error_response(exc)},
    )


@router.post("/analyze")
def analyze(
    body: AnalyzeRequestBody,
    stream: bool = Query(default=True, description="Stream progress as server-sent events"),
    analysis_service: AnalysisService = Depends(get_analysis_service),
):
    """
    Validate the request, then run the analysis.

    Streaming mode returns `text/event-stream` with `progress` events and one
    terminal `complete` or `error` event; otherwise one JSON body is returned.
    """

    try:
        analysis_request = analysis_service.validate(body.keyword, body.target_url, body.model)
        if stream:
            run = analysis_service.start(analysis_request)
            return StreamingResponse(
                stream_events(run),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
            )
        outcome = analysis_service.analyze(analysis_request)
    except RequestValidationError as exc:
        return validation_error_response(exc)
    except Exception as exc:
        payload = format_error_response(exc)
        return JSONResponse(
            status_code=status_code_for(payload["type"]),
            content={"success": False, **payload},
        )

    return JSONResponse(content={"success": True, "type": COMPLETE_EVENT, **outcome.to_payload()})
