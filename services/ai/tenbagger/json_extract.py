"""
Recover the report object from model output.

Schema-constrained generation usually returns bare JSON, but with search
grounding enabled the model still sometimes wraps it in a ```json fence or
adds prose around it. Attempts, first success wins:

  1. fenced block: text between the first ```json and the next ```
  2. otherwise the whole trimmed text
  3. the widest span from the first "{" to the last "}"

No schema validation happens here; only "is it a JSON object".
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)

FENCE_OPEN = "```json"
FENCE_CLOSE = "```"


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(text)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def _fenced_or_trimmed(text: str) -> str:
    if FENCE_OPEN in text:
        inner = text.split(FENCE_OPEN, 1)[1]
        return inner.split(FENCE_CLOSE, 1)[0].strip()
    return text.strip()


def _brace_span(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return text[start:end + 1]


def extract_json_object(raw_text: Optional[str]) -> Dict[str, Any]:
    text = raw_text or ""

    obj = _loads_object(_fenced_or_trimmed(text))
    if obj is not None:
        return obj

    span = _brace_span(text)
    if span is not None:
        obj = _loads_object(span)
        if obj is not None:
            logger.info("tenbagger.extract.brace_span_fallback chars=%s", len(text))
            return obj

    logger.warning("tenbagger.extract.failed chars=%s", len(text))
    raise MalformedResponseError()
