"""
Cosmetic progress messages for streamed analyses.

The ticker runs on its own timer and knows nothing about what the Gemini call
is actually doing; it only keeps the client informed that work is ongoing.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Sequence, Tuple

from .errors import AnalysisError, describe_error

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S = 5.0

CONNECTING_STEP = "Connecting to the analysis session..."
DEFAULT_STEPS: Tuple[str, ...] = (
    "Searching and collecting market data...",
    "Calculating forward-year quantitative estimates...",
    "Matching the analysis methodology...",
    "Evaluating unit economics health...",
    "Rendering the final analysis report...",
)

StreamEvent = Tuple[str, Dict[str, Any]]


class ProgressTicker:
    def __init__(self, steps: Sequence[str] = DEFAULT_STEPS):
        if not steps:
            raise ValueError("ProgressTicker needs at least one step")
        self._steps = tuple(steps)
        self._idx = -1

    def next(self) -> str:
        self._idx = (self._idx + 1) % len(self._steps)
        return self._steps[self._idx]


async def stream_analysis_events(
    run: Callable[[], Awaitable[Dict[str, Any]]],
    *,
    ticker: str,
    interval_s: float = DEFAULT_INTERVAL_S,
    steps: Sequence[str] = DEFAULT_STEPS,
) -> AsyncIterator[StreamEvent]:
    """
    Yield (event, data) pairs: meta, progress*, result|error, done.

    If the consumer stops iterating (client disconnect), the analysis task is
    cancelled.
    """
    ticker_steps = ProgressTicker(steps)
    task = asyncio.ensure_future(run())
    try:
        yield "meta", {"ticker": ticker}
        yield "progress", {"step": CONNECTING_STEP}
        while True:
            done, _ = await asyncio.wait({task}, timeout=interval_s)
            if done:
                break
            yield "progress", {"step": ticker_steps.next()}

        try:
            result = task.result()
        except AnalysisError as exc:
            yield "error", exc.report.to_body()
        except Exception as exc:
            logger.exception("tenbagger.stream.unexpected_error ticker=%s", ticker)
            yield "error", describe_error(exc).to_body()
        else:
            yield "result", result
        yield "done", {"status": "ok"}
    finally:
        if not task.done():
            logger.info("tenbagger.stream.cancelled ticker=%s", ticker)
            task.cancel()
