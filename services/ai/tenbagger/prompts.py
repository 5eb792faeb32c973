from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .config import DEFAULT_LANGUAGE


@dataclass(frozen=True)
class PromptPair:
    system_instruction: str
    user_content: str


# The methodology is interpolated as-is; it is user-controlled text.
SYSTEM_TEMPLATE = """
You are a world-class quantitative investment analyst and an expert practitioner of the
analysis methodology given below. Analyze the ticker "{ticker}" in depth and derive
quantitative figures.

[ANALYSIS METHODOLOGY]
Follow this methodology exactly. It is the authoritative analysis procedure.
----- BEGIN METHODOLOGY -----
{methodology}
----- END METHODOLOGY -----

[DATA RULES]
- Today is {today}. Anchor every forward-looking estimate to this date; forward-year
  estimates refer to {forward_year}.
- Use the Google Search tool to ground market sizes, unit economics, prices and recent
  issues in current data. Prefer recent filings, guidance and reputable news.
- Express TAM, SAM and SOM in USD billions. Provide every number as a precise estimate.

[OUTPUT RULES]
- Answer in {language} only.
- The output must be pure JSON matching the response schema. Do not wrap it in markdown
  code blocks (```json) and do not add any text before or after the JSON object.
""".strip()

USER_TEMPLATE = (
    "Apply the supplied analysis methodology to ticker {ticker} and return the detailed "
    "report as JSON."
)


def build_prompts(
    ticker: str,
    methodology: str,
    *,
    today: Optional[date] = None,
    language: str = DEFAULT_LANGUAGE,
) -> PromptPair:
    today = today or date.today()
    system_instruction = SYSTEM_TEMPLATE.format(
        ticker=ticker,
        methodology=methodology,
        today=today.isoformat(),
        forward_year=today.year + 1,
        language=language,
    )
    return PromptPair(
        system_instruction=system_instruction,
        user_content=USER_TEMPLATE.format(ticker=ticker),
    )
