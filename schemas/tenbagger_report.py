from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

GrowthStage = Literal["Introduction", "Growth", "Maturity"]

MAX_TICKER_LEN = 20


def normalize_ticker(value: Optional[str]) -> str:
    symbol = (value or "").strip().upper()
    if not symbol:
        raise ValueError("Ticker is required")
    if len(symbol) > MAX_TICKER_LEN:
        raise ValueError(f"Ticker must be at most {MAX_TICKER_LEN} characters")
    return symbol


class AnalysisRequest(BaseModel):
    ticker: str
    methodology: Optional[str] = None

    @field_validator("ticker")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_ticker(v)


# ── Report (response documentation; the pipeline does not validate) ──

class MarketSize(BaseModel):
    tam: float = Field(description="Total addressable market, USD billions")
    sam: float = Field(description="Serviceable addressable market, USD billions")
    som: float = Field(description="Serviceable obtainable market, USD billions")
    description: str
    tamReasoning: Optional[str] = None
    samReasoning: Optional[str] = None
    somReasoning: Optional[str] = None


class UnitEconomics(BaseModel):
    ltv: float
    cac: float
    ratio: float = Field(description="LTV/CAC as stated by the model; not recomputed")
    contributionMargin: Optional[float] = Field(default=None, description="Percent")
    paybackPeriod: Optional[float] = Field(default=None, description="Months")
    isHealthy: bool
    ltvReasoning: Optional[str] = None
    cacReasoning: Optional[str] = None
    contributionMarginReasoning: Optional[str] = None


class InvestmentSummaryItem(BaseModel):
    classification: Optional[str] = None
    content: Optional[str] = None
    investmentPoint: Optional[str] = None


class BuyStrategy(BaseModel):
    currentPriceContext: str
    shortTerm: str
    mediumTerm: str
    longTerm: str


class PricingPower(BaseModel):
    status: Optional[Literal["Strong", "Average", "Weak"]] = None
    evidence: Optional[str] = None


class EconomiesOfScale(BaseModel):
    fixedCostRatio: Optional[float] = Field(default=None, description="Percent")
    analysis: Optional[str] = None


class RecentIssue(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    impact: Optional[Literal["Positive", "Neutral", "Negative"]] = None


class Source(BaseModel):
    title: Optional[str] = None
    uri: Optional[str] = None


class TenbaggerReport(BaseModel):
    ticker: str
    companyName: str
    verdict: str
    potentialRating: float = Field(ge=1, le=10)
    growthStage: GrowthStage
    marketSize: MarketSize
    unitEconomics: UnitEconomics
    investmentSummary: List[InvestmentSummaryItem]
    buyStrategy: BuyStrategy
    penetrationRate: Optional[float] = Field(default=None, description="Percent")
    businessModelReasoning: Optional[str] = None
    pricingPower: Optional[PricingPower] = None
    economiesOfScale: Optional[EconomiesOfScale] = None
    bepAnalysis: Optional[str] = None
    recentIssues: Optional[List[RecentIssue]] = None
    sources: List[Source] = Field(default_factory=list)

    model_config = {"extra": "allow"}


class AnalysisErrorResponse(BaseModel):
    error: str
    message: str
    detail: str
    canUseAlternateKey: bool
    retryLater: bool
