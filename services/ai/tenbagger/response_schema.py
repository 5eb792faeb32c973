from __future__ import annotations

from typing import Dict, List, Optional

from google.genai import types

REQUIRED_FIELDS = [
    "ticker",
    "companyName",
    "verdict",
    "potentialRating",
    "growthStage",
    "marketSize",
    "unitEconomics",
    "investmentSummary",
    "buyStrategy",
]

GROWTH_STAGES = ["Introduction", "Growth", "Maturity"]
PRICING_POWER_LEVELS = ["Strong", "Average", "Weak"]
ISSUE_IMPACTS = ["Positive", "Neutral", "Negative"]


def _string(enum: Optional[List[str]] = None) -> types.Schema:
    return types.Schema(type=types.Type.STRING, enum=enum)


def _number() -> types.Schema:
    return types.Schema(type=types.Type.NUMBER)


def _object(properties: Dict[str, types.Schema], required: Optional[List[str]] = None) -> types.Schema:
    return types.Schema(type=types.Type.OBJECT, properties=properties, required=required)


def _array(items: types.Schema) -> types.Schema:
    return types.Schema(type=types.Type.ARRAY, items=items)


def build_response_schema() -> types.Schema:
    market_size = _object(
        {
            "tam": _number(),
            "sam": _number(),
            "som": _number(),
            "description": _string(),
            "tamReasoning": _string(),
            "samReasoning": _string(),
            "somReasoning": _string(),
        },
        required=["tam", "sam", "som", "description"],
    )
    unit_economics = _object(
        {
            "ltv": _number(),
            "cac": _number(),
            "ratio": _number(),
            "contributionMargin": _number(),
            "paybackPeriod": _number(),
            "isHealthy": types.Schema(type=types.Type.BOOLEAN),
            "ltvReasoning": _string(),
            "cacReasoning": _string(),
            "contributionMarginReasoning": _string(),
        },
        required=["ltv", "cac", "ratio", "isHealthy"],
    )
    buy_strategy = _object(
        {
            "currentPriceContext": _string(),
            "shortTerm": _string(),
            "mediumTerm": _string(),
            "longTerm": _string(),
        },
        required=["currentPriceContext", "shortTerm", "mediumTerm", "longTerm"],
    )
    summary_item = _object(
        {
            "classification": _string(),
            "content": _string(),
            "investmentPoint": _string(),
        }
    )

    return _object(
        {
            "ticker": _string(),
            "companyName": _string(),
            "verdict": _string(),
            "potentialRating": _number(),
            "growthStage": _string(enum=GROWTH_STAGES),
            "penetrationRate": _number(),
            "businessModelReasoning": _string(),
            "marketSize": market_size,
            "unitEconomics": unit_economics,
            "buyStrategy": buy_strategy,
            "investmentSummary": _array(summary_item),
            "pricingPower": _object(
                {"status": _string(enum=PRICING_POWER_LEVELS), "evidence": _string()}
            ),
            "economiesOfScale": _object(
                {"fixedCostRatio": _number(), "analysis": _string()}
            ),
            "bepAnalysis": _string(),
            "recentIssues": _array(
                _object(
                    {
                        "title": _string(),
                        "description": _string(),
                        "impact": _string(enum=ISSUE_IMPACTS),
                    }
                )
            ),
            "sources": _array(_object({"title": _string(), "uri": _string()})),
        },
        required=list(REQUIRED_FIELDS),
    )
