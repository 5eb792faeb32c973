from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-3-pro-preview"
DEFAULT_TIMEOUT_MS = 90_000
DEFAULT_THINKING_BUDGET = 1000
DEFAULT_LANGUAGE = "Korean"
DEFAULT_MAX_METHODOLOGY_BYTES = 2 * 1024 * 1024


@dataclass(frozen=True)
class TenbaggerConfig:
    model: str = DEFAULT_MODEL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    extended_reasoning: bool = True
    thinking_budget: int = DEFAULT_THINKING_BUDGET
    methodology_override: Optional[str] = None
    response_language: str = DEFAULT_LANGUAGE
    max_methodology_bytes: int = DEFAULT_MAX_METHODOLOGY_BYTES

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def with_overrides(self, **changes) -> "TenbaggerConfig":
        return replace(self, **changes)

    @staticmethod
    def from_env() -> "TenbaggerConfig":
        methodology_override = None
        path = (os.getenv("TENBAGGER_METHODOLOGY_PATH") or "").strip()
        if path:
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    methodology_override = fh.read()
            except OSError:
                logger.warning("tenbagger.config.methodology_unreadable path=%s", path)

        return TenbaggerConfig(
            model=os.getenv("TENBAGGER_MODEL") or DEFAULT_MODEL,
            timeout_ms=int(os.getenv("TENBAGGER_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS))),
            extended_reasoning=os.getenv("TENBAGGER_EXTENDED_REASONING", "1") == "1",
            thinking_budget=int(os.getenv("TENBAGGER_THINKING_BUDGET", str(DEFAULT_THINKING_BUDGET))),
            methodology_override=methodology_override,
            response_language=os.getenv("TENBAGGER_LANGUAGE") or DEFAULT_LANGUAGE,
            max_methodology_bytes=int(
                os.getenv("TENBAGGER_MAX_METHODOLOGY_BYTES", str(DEFAULT_MAX_METHODOLOGY_BYTES))
            ),
        )


def resolve_api_key(explicit: Optional[str] = None) -> Optional[str]:
    """Resolve the Gemini credential at call time; an explicit key wins over the environment."""
    for candidate in (explicit, os.getenv("GEMINI_API_KEY"), os.getenv("GOOGLE_API_KEY")):
        if candidate and candidate.strip():
            return candidate.strip()
    return None
