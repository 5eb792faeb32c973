# services/ai/tenbagger/analysis_service.py
"""
Tenbagger analysis pipeline.

    {ticker, methodology} -> prompts -> one Gemini call -> JSON recovery -> source merge

Each call is independent: it builds its own prompts and its own client, holds
no shared mutable state, and is never retried. Every failure leaves as an
AnalysisError carrying a classified ErrorReport.
"""
from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Callable, Dict, Optional

from prometheus_client import Counter, Histogram

from schemas.tenbagger_report import normalize_ticker

from .config import TenbaggerConfig, resolve_api_key
from .errors import AnalysisError, AnalysisErrorKind, describe_error
from .gemini_client import GeminiAnalysisClient
from .grounding import attach_sources
from .json_extract import extract_json_object
from .methodology import DEFAULT_METHODOLOGY, resolve_methodology
from .prompts import build_prompts

logger = logging.getLogger(__name__)

ANALYSIS_OUTCOMES = Counter(
    "tenbagger_analysis_total",
    "Tenbagger analyses by outcome",
    ["outcome"],
)
ANALYSIS_DURATION = Histogram(
    "tenbagger_analysis_duration_seconds",
    "Wall time of a tenbagger analysis, including failures",
)


async def analyze_stock(
    ticker: str,
    methodology: Optional[str] = None,
    *,
    config: Optional[TenbaggerConfig] = None,
    api_key: Optional[str] = None,
    client_factory: Optional[Callable[[str], Any]] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Run one analysis and return the report dict with merged `sources`.

    Raises ValueError for an empty ticker (before anything is sent) and
    AnalysisError for every pipeline failure.
    """
    symbol = normalize_ticker(ticker)
    cfg = config or TenbaggerConfig.from_env()
    methodology_text = resolve_methodology(methodology, cfg.methodology_override)
    custom = methodology_text is not DEFAULT_METHODOLOGY

    started = time.perf_counter()
    logger.info(
        "tenbagger.analysis.start ticker=%s model=%s custom_methodology=%s",
        symbol,
        cfg.model,
        custom,
    )
    try:
        prompts = build_prompts(
            symbol,
            methodology_text,
            today=today,
            language=cfg.response_language,
        )
        client = GeminiAnalysisClient(
            cfg,
            api_key=resolve_api_key(api_key),
            client_factory=client_factory,
        )
        output = await client.generate(prompts)
        record = extract_json_object(output.raw_text)
        result = attach_sources(record, output.grounding_chunks)
    except Exception as exc:
        report = describe_error(exc, timeout_ms=cfg.timeout_ms)
        ANALYSIS_OUTCOMES.labels(outcome=report.kind.value).inc()
        ANALYSIS_DURATION.observe(time.perf_counter() - started)
        if report.kind is AnalysisErrorKind.UNKNOWN_UPSTREAM:
            logger.exception("tenbagger.analysis.failed ticker=%s kind=%s", symbol, report.kind.value)
        else:
            logger.warning(
                "tenbagger.analysis.failed ticker=%s kind=%s detail=%s",
                symbol,
                report.kind.value,
                report.detail,
            )
        raise AnalysisError(report) from exc

    elapsed = time.perf_counter() - started
    ANALYSIS_OUTCOMES.labels(outcome="ok").inc()
    ANALYSIS_DURATION.observe(elapsed)
    logger.info(
        "tenbagger.analysis.done ticker=%s elapsed_ms=%s sources=%s",
        symbol,
        int(elapsed * 1000),
        len(result["sources"]),
    )
    return result
