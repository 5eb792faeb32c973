from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .config import TenbaggerConfig
from .errors import AnalysisTimeoutError, CredentialMissingError, SafetyBlockedError
from .grounding import grounding_chunks_from_response
from .prompts import PromptPair
from .response_schema import build_response_schema

logger = logging.getLogger(__name__)

BLOCKING_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}


def _default_client_factory(api_key: str) -> Any:
    from google import genai
    return genai.Client(api_key=api_key)


def _enum_name(value: Any) -> str:
    if value is None:
        return ""
    return str(getattr(value, "name", None) or value).split(".")[-1].upper()


@dataclass
class GenerationOutput:
    raw_text: str
    grounding_chunks: List[Any] = field(default_factory=list)


class GeminiAnalysisClient:
    """
    One schema-constrained, search-grounded generate_content call per instance.

    The credential is handed in at construction so every request builds its
    own client with whatever key is current.
    The call goes through the SDK's async surface, so when the timeout fires
    the local HTTP exchange is cancelled. The provider may still finish (and
    bill) work it already started.
    """

    def __init__(
        self,
        config: TenbaggerConfig,
        *,
        api_key: Optional[str],
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        if not api_key:
            raise CredentialMissingError()
        self.config = config
        self._client = (client_factory or _default_client_factory)(api_key)

    @staticmethod
    def model_supports_thinking(model: str) -> bool:
        m = (model or "").lower()
        if "lite" in m:
            return False
        return "gemini-3" in m or "gemini-2.5" in m

    def _build_config(self, system_instruction: str):
        from google.genai import types

        thinking_config = None
        if self.config.extended_reasoning and self.model_supports_thinking(self.config.model):
            thinking_config = types.ThinkingConfig(thinking_budget=self.config.thinking_budget)

        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=[types.Tool(google_search=types.GoogleSearch())],
            response_mime_type="application/json",
            response_schema=build_response_schema(),
            thinking_config=thinking_config,
        )

    @staticmethod
    def _raise_if_blocked(resp: Any) -> None:
        feedback = getattr(resp, "prompt_feedback", None)
        block_reason = _enum_name(getattr(feedback, "block_reason", None))
        if block_reason and block_reason != "BLOCKED_REASON_UNSPECIFIED":
            raise SafetyBlockedError(f"Prompt blocked by safety filter (block_reason={block_reason})")

        candidates = getattr(resp, "candidates", None) or []
        if candidates:
            finish_reason = _enum_name(getattr(candidates[0], "finish_reason", None))
            if finish_reason in BLOCKING_FINISH_REASONS:
                raise SafetyBlockedError(f"Response blocked by safety filter (finish_reason={finish_reason})")

    async def generate(self, prompts: PromptPair) -> GenerationOutput:
        started = time.perf_counter()
        logger.info(
            "tenbagger.generate.start model=%s timeout_ms=%s thinking=%s prompt_len=%s",
            self.config.model,
            self.config.timeout_ms,
            self.config.extended_reasoning,
            len(prompts.system_instruction),
        )
        call = self._client.aio.models.generate_content(
            model=self.config.model,
            contents=prompts.user_content,
            config=self._build_config(prompts.system_instruction),
        )
        try:
            resp = await asyncio.wait_for(call, timeout=self.config.timeout_s)
        except asyncio.TimeoutError:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.warning("tenbagger.generate.timeout elapsed_ms=%s", elapsed_ms)
            raise AnalysisTimeoutError(self.config.timeout_ms) from None

        self._raise_if_blocked(resp)
        raw_text = getattr(resp, "text", None) or ""
        chunks = grounding_chunks_from_response(resp)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "tenbagger.generate.done elapsed_ms=%s chars=%s grounding_chunks=%s",
            elapsed_ms,
            len(raw_text),
            len(chunks),
        )
        return GenerationOutput(raw_text=raw_text, grounding_chunks=chunks)
