from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Protocol

import httpx

from risq.schemas.market import IndustryTrends, MarketHealth, NewsItem, SectorAnalysis

logger = logging.getLogger("risq.clients.market_data")


class MarketDataClient(Protocol):
    async def get_industry_trends(self, industry: str) -> IndustryTrends: ...

    async def get_sector_analysis(self, sector: str) -> SectorAnalysis: ...

    async def get_market_health(self, target_market: str) -> MarketHealth: ...


# Simulated reference tables. Real providers (Crunchbase, PitchBook, ...) would
# replace these lookups.
GROWTH_RATES: Dict[str, float] = {
    "technology": 12.5,
    "healthcare": 8.3,
    "fintech": 15.2,
    "edutech": 18.7,
    "logistics": 7.4,
    "ecommerce": 14.1,
    "saas": 22.3,
    "ai": 35.6,
    "blockchain": 25.8,
    "renewable": 19.4,
}

MARKET_SIZES: Dict[str, int] = {
    "technology": 500000,
    "healthcare": 350000,
    "fintech": 180000,
    "edutech": 85000,
    "logistics": 450000,
    "ecommerce": 250000,
    "saas": 120000,
    "ai": 65000,
    "blockchain": 25000,
    "renewable": 95000,
}

HIGH_COMPETITION = {"technology", "ecommerce", "saas", "fintech"}
MODERATE_COMPETITION = {"healthcare", "logistics", "edutech"}
POSITIVE_OUTLOOK = {"technology", "ai", "renewable", "edutech"}

INDUSTRY_TRENDS: Dict[str, List[str]] = {
    "technology": [
        "AI and Machine Learning adoption",
        "Cloud-first strategies",
        "Remote work technologies",
        "Cybersecurity focus",
    ],
    "edutech": [
        "Personalized learning platforms",
        "VR/AR in education",
        "Micro-learning content",
        "Skills-based training",
    ],
    "logistics": [
        "Last-mile delivery optimization",
        "Autonomous vehicles",
        "Supply chain digitization",
        "Sustainable packaging",
    ],
}

ACTIVE_SECTORS = {"technology", "healthcare", "edutech", "fintech", "ai", "renewable"}
GROWING_SECTORS = {"ai", "renewable", "edutech", "blockchain"}
STABLE_SECTORS = {"healthcare", "logistics", "technology"}

KEY_PLAYERS: Dict[str, List[str]] = {
    "technology": ["Microsoft", "Google", "Apple", "Amazon"],
    "edutech": ["Coursera", "Udemy", "Khan Academy", "Byju's"],
    "logistics": ["FedEx", "UPS", "DHL", "Amazon Logistics"],
    "fintech": ["Stripe", "PayPal", "Square", "Coinbase"],
}

MARKET_CAPS: Dict[str, int] = {
    "technology": 25000,
    "healthcare": 18000,
    "fintech": 8500,
    "edutech": 4200,
    "logistics": 12000,
}

INVESTMENT_FLOWS: Dict[str, float] = {
    "ai": 25.6,
    "fintech": 18.2,
    "edutech": 8.9,
    "renewable": 45.3,
    "blockchain": 12.1,
}

SATURATION: Dict[str, float] = {
    "global": 85.0,
    "north america": 75.0,
    "europe": 70.0,
    "asia": 45.0,
    "emerging": 25.0,
}


class SimulatedMarketDataClient:
    """
    Market data lookups backed by static reference tables.

    Recent sector news is fetched from a NewsAPI-compatible endpoint when an
    API key is configured; otherwise canned headlines are returned.
    """

    def __init__(
        self,
        *,
        news_api_key: str = "",
        news_api_url: str = "https://newsapi.org/v2",
        timeout_sec: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.news_api_key = news_api_key
        self.news_api_url = news_api_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))

    async def close(self) -> None:
        await self._client.aclose()

    async def get_industry_trends(self, industry: str) -> IndustryTrends:
        logger.info("Fetching industry trends for: %s", industry)
        trends = IndustryTrends(
            industry=industry,
            growth_rate=GROWTH_RATES.get(industry, 10.0),
            market_size=MARKET_SIZES.get(industry, 50000),
            competition_level=_competition_level(industry),
            trends=INDUSTRY_TRENDS.get(
                industry,
                ["Digital transformation", "Customer experience focus", "Sustainability initiatives"],
            ),
            outlook="positive" if industry in POSITIVE_OUTLOOK else "stable",
        )
        logger.info(
            "Industry trends retrieved for %s: growth=%.1f%% competition=%s",
            industry,
            trends.growth_rate,
            trends.competition_level,
        )
        return trends

    async def get_sector_analysis(self, sector: str) -> SectorAnalysis:
        logger.info("Fetching sector analysis for: %s", sector)
        try:
            news = await self._fetch_recent_news(sector)
        except httpx.HTTPError as exc:
            logger.warning("Failed to fetch news for sector %s: %s", sector, exc)
            news = []

        analysis = SectorAnalysis(
            sector=sector,
            is_active=sector in ACTIVE_SECTORS,
            activity=_sector_activity(sector),
            key_players=KEY_PLAYERS.get(sector, ["Market leaders vary by region"]),
            market_cap=MARKET_CAPS.get(sector, 5000),
            recent_news=news,
            investment_flow=INVESTMENT_FLOWS.get(sector, 5.0),
        )
        logger.info(
            "Sector analysis completed for %s: active=%s activity=%s",
            sector,
            analysis.is_active,
            analysis.activity,
        )
        return analysis

    async def get_market_health(self, target_market: str) -> MarketHealth:
        logger.info("Analyzing market health for: %s", target_market)
        health = MarketHealth(
            target_market=target_market,
            # Narrowly described markets tend to be healthier.
            health="good" if len(target_market) > 20 else "fair",
            saturation_level=SATURATION.get(target_market, 50.0),
            opportunities=[
                "Growing digital adoption",
                "Underserved market segments",
                "Technological advancement opportunities",
                "Regulatory support for innovation",
            ],
            threats=[
                "Increased competition",
                "Regulatory changes",
                "Economic uncertainty",
                "Technology disruption",
            ],
            recommendations=[
                "Focus on differentiation",
                "Build strong customer relationships",
                "Monitor regulatory developments",
                "Invest in technology infrastructure",
            ],
        )
        logger.info(
            "Market health analysis completed for %s: health=%s saturation=%.1f%%",
            target_market,
            health.health,
            health.saturation_level,
        )
        return health

    async def _fetch_recent_news(self, sector: str) -> List[NewsItem]:
        if not self.news_api_key or self.news_api_key == "your_news_api_key_here":
            return _mock_news(sector)

        response = await self._client.get(
            f"{self.news_api_url}/everything",
            params={"q": sector, "sortBy": "publishedAt", "pageSize": 5, "apiKey": self.news_api_key},
        )
        if response.status_code != 200:
            return _mock_news(sector)

        try:
            articles = response.json().get("articles") or []
        except ValueError:
            return _mock_news(sector)

        news: List[NewsItem] = []
        for article in articles:
            if not isinstance(article, dict):
                continue
            source = article.get("source") if isinstance(article.get("source"), dict) else {}
            news.append(
                NewsItem(
                    title=article.get("title") or "",
                    description=article.get("description") or "",
                    url=article.get("url") or "",
                    published_at=_parse_ts(article.get("publishedAt")),
                    source=source.get("name") or "",
                )
            )
        return news


def _competition_level(industry: str) -> str:
    if industry in HIGH_COMPETITION:
        return "high"
    if industry in MODERATE_COMPETITION:
        return "moderate"
    return "low"


def _sector_activity(sector: str) -> str:
    if sector in GROWING_SECTORS:
        return "growing"
    if sector in STABLE_SECTORS:
        return "stable"
    return "declining"


def _parse_ts(value: object) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _mock_news(sector: str) -> List[NewsItem]:
    now = datetime.now(timezone.utc)
    return [
        NewsItem(
            title=f"{sector} sector shows promising growth",
            description=f"Recent developments in {sector} indicate positive market trends",
            url="https://example.com/news/1",
            published_at=now - timedelta(days=2),
            source="Market News",
            sentiment="positive",
        ),
        NewsItem(
            title=f"Innovation drives {sector} market expansion",
            description=f"New technologies are reshaping the {sector} landscape",
            url="https://example.com/news/2",
            published_at=now - timedelta(days=5),
            source="Tech Today",
            sentiment="positive",
        ),
    ]
