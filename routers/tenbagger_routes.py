# routers/tenbagger_routes.py
"""
FastAPI routes for tenbagger stock analysis.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import APIRouter, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from middleware.rate_limit import limiter
from schemas.tenbagger_report import AnalysisErrorResponse, AnalysisRequest, TenbaggerReport
from services.ai.tenbagger.analysis_service import analyze_stock
from services.ai.tenbagger.config import TenbaggerConfig
from services.ai.tenbagger.errors import AnalysisError, AnalysisErrorKind
from services.ai.tenbagger.methodology import (
    DEFAULT_METHODOLOGY,
    MethodologyTooLargeError,
    decode_methodology_upload,
)
from services.ai.tenbagger.progress import DEFAULT_INTERVAL_S, stream_analysis_events

logger = logging.getLogger(__name__)

router = APIRouter()

ANALYZE_RATE_LIMIT = os.getenv("RATE_LIMIT_ANALYZE", "5/minute")
PROGRESS_INTERVAL_S = float(os.getenv("TENBAGGER_PROGRESS_INTERVAL_S", str(DEFAULT_INTERVAL_S)))

STATUS_BY_KIND = {
    AnalysisErrorKind.CREDENTIAL_MISSING: 401,
    AnalysisErrorKind.CREDENTIAL_INVALID: 401,
    AnalysisErrorKind.QUOTA_EXCEEDED: 429,
    AnalysisErrorKind.TIMEOUT: 504,
    AnalysisErrorKind.SAFETY_BLOCKED: 422,
    AnalysisErrorKind.MALFORMED_RESPONSE: 502,
    AnalysisErrorKind.UNKNOWN_UPSTREAM: 502,
}

ERROR_RESPONSES = {
    status: {"model": AnalysisErrorResponse} for status in sorted(set(STATUS_BY_KIND.values()))
}


def _sse_pack(event: str, data: Any) -> str:
    payload = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event}\ndata: {payload}\n\n"


async def _parse_request(
    ticker: str,
    methodology: Optional[str],
    methodology_file: Optional[UploadFile],
    cfg: TenbaggerConfig,
) -> AnalysisRequest:
    text = methodology
    if methodology_file is not None:
        # read one byte past the limit so oversize files are detected without reading them whole
        data = await methodology_file.read(cfg.max_methodology_bytes + 1)
        try:
            uploaded = decode_methodology_upload(data, max_bytes=cfg.max_methodology_bytes)
        except MethodologyTooLargeError as exc:
            raise HTTPException(status_code=413, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        # an empty upload leaves the inline text in place
        if uploaded.strip():
            text = uploaded

    try:
        return AnalysisRequest(ticker=ticker, methodology=text)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors()[0].get("msg", "Invalid ticker"))


@router.get("/methodology/default")
async def get_default_methodology() -> Dict[str, str]:
    return {"methodology": DEFAULT_METHODOLOGY}


@router.post(
    "/analyze",
    responses={200: {"model": TenbaggerReport}, **ERROR_RESPONSES},
)
@limiter.limit(ANALYZE_RATE_LIMIT)
async def analyze_ticker(
    request: Request,
    ticker: str = Form(...),
    methodology: Optional[str] = Form(None),
    methodology_file: Optional[UploadFile] = File(None),
    x_gemini_api_key: Optional[str] = Header(None),
) -> Dict[str, Any]:
    """
    Run a tenbagger analysis for one ticker.

    An uploaded methodology file replaces the built-in methodology; a key in
    X-Gemini-Api-Key replaces the server's own credential for this request.
    """
    cfg = TenbaggerConfig.from_env()
    req = await _parse_request(ticker, methodology, methodology_file, cfg)

    try:
        result = await analyze_stock(
            req.ticker,
            req.methodology,
            config=cfg,
            api_key=x_gemini_api_key,
        )
    except AnalysisError as exc:
        status = STATUS_BY_KIND[exc.kind]
        logger.info("tenbagger_analysis_rejected ticker=%s kind=%s status=%s", req.ticker, exc.kind.value, status)
        raise HTTPException(status_code=status, detail=exc.report.to_body())

    logger.info("tenbagger_analysis_completed ticker=%s", req.ticker)
    return result


@router.post("/analyze/stream")
@limiter.limit(ANALYZE_RATE_LIMIT)
async def analyze_ticker_stream(
    request: Request,
    ticker: str = Form(...),
    methodology: Optional[str] = Form(None),
    methodology_file: Optional[UploadFile] = File(None),
    x_gemini_api_key: Optional[str] = Header(None),
):
    cfg = TenbaggerConfig.from_env()
    req = await _parse_request(ticker, methodology, methodology_file, cfg)

    async def run() -> Dict[str, Any]:
        return await analyze_stock(req.ticker, req.methodology, config=cfg, api_key=x_gemini_api_key)

    async def event_stream() -> AsyncGenerator[str, None]:
        events = stream_analysis_events(run, ticker=req.ticker, interval_s=PROGRESS_INTERVAL_S)
        try:
            async for event, data in events:
                yield _sse_pack(event, data)
        finally:
            await events.aclose()

    headers = {
        "Cache-Control": "no-cache",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=headers)
