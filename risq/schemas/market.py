from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class IndustryTrends(BaseModel):
    industry: str = ""
    growth_rate: float = 10.0
    market_size: int = 0
    competition_level: str = "moderate"
    trends: List[str] = Field(default_factory=list)
    outlook: str = "stable"


class NewsItem(BaseModel):
    title: str
    description: str = ""
    url: str = ""
    published_at: Optional[datetime] = None
    source: str = ""
    sentiment: str = ""


class SectorAnalysis(BaseModel):
    sector: str = ""
    is_active: bool = True
    activity: str = "stable"
    key_players: List[str] = Field(default_factory=list)
    market_cap: int = 0
    recent_news: List[NewsItem] = Field(default_factory=list)
    investment_flow: float = 0.0


class MarketHealth(BaseModel):
    target_market: str = ""
    health: str = "fair"
    saturation_level: float = 0.0
    opportunities: List[str] = Field(default_factory=list)
    threats: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


def default_industry_trends(industry: str) -> IndustryTrends:
    """Neutral stand-in used when the industry lookup fails."""
    return IndustryTrends(industry=industry, growth_rate=10.0, competition_level="moderate", outlook="stable")


def default_sector_analysis(sector: str) -> SectorAnalysis:
    return SectorAnalysis(sector=sector, is_active=True, activity="stable")


def default_market_health(target_market: str) -> MarketHealth:
    return MarketHealth(target_market=target_market, health="fair")
