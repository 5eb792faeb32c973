"""
Methodology text used as the authoritative analysis procedure.

A user-supplied methodology (usually an uploaded .md/.txt file) replaces the
built-in one verbatim. Nothing here interprets the content.
"""
from __future__ import annotations

from typing import Optional

from .config import DEFAULT_MAX_METHODOLOGY_BYTES

DEFAULT_METHODOLOGY = """
Orlando Kim's Tenbagger Quantitative Analysis Methodology

1. Market size (TAM / SAM / SOM)
   - Estimate the total, serviceable and obtainable addressable markets in USD billions
     for the forward fiscal year.
   - Explain how each figure was derived (top-down share, bottom-up unit count, or both).

2. Growth stage
   - Place the company on the S-curve: Introduction, Growth or Maturity.
   - Base the judgement on the current market penetration rate (percent of SAM captured).

3. Unit economics
   - Estimate customer lifetime value (LTV) and customer acquisition cost (CAC) from the
     latest guidance, and report LTV/CAC.
   - Report contribution margin (percent) and CAC payback period (months).
   - State whether the unit economics are healthy (LTV/CAC of 3 or more is the usual bar).

4. Business quality
   - Pricing power: Strong, Average or Weak, with evidence.
   - Economies of scale: fixed-cost ratio (percent) and how margins respond to volume.
   - Break-even (BEP) analysis for the current cost structure.

5. Investment summary
   - An ordered list of points, each with a classification, the supporting content
     (including forward-year estimates) and the resulting investment point.
   - Recent issues with their Positive / Neutral / Negative impact.

6. Verdict and buy strategy
   - A verdict and a tenbagger potential rating from 1 to 10.
   - Given the current share price, a short-term, medium-term and long-term buying strategy.
""".strip()


class MethodologyTooLargeError(ValueError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Methodology file is {size} bytes; the limit is {limit} bytes")


def resolve_methodology(text: Optional[str], fallback: Optional[str] = None) -> str:
    """Return `text` verbatim when it has content, else `fallback`, else the built-in methodology."""
    for candidate in (text, fallback):
        if candidate and candidate.strip():
            return candidate
    return DEFAULT_METHODOLOGY


def decode_methodology_upload(data: bytes, *, max_bytes: int = DEFAULT_MAX_METHODOLOGY_BYTES) -> str:
    if len(data) > max_bytes:
        raise MethodologyTooLargeError(len(data), max_bytes)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError("Methodology file must be UTF-8 text") from exc
