# risq/pipeline/market_validation.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Collection, List, Set, TypeVar

from risq.clients.market_data import MarketDataClient
from risq.core.bus.async_service import RisqBusAsync
from risq.core.bus.codec import RisqCodec
from risq.core.bus.subjects import SUBJECTS
from risq.schemas.events import (
    MarketHealthLevel,
    MarketValidatedEvent,
    MarketValidationRequestedEvent,
    StartupOnboardedEvent,
)
from risq.schemas.market import (
    IndustryTrends,
    MarketHealth,
    SectorAnalysis,
    default_industry_trends,
    default_market_health,
    default_sector_analysis,
)

logger = logging.getLogger("risq.pipeline.market")

T = TypeVar("T")


def market_health_score(
    trends: IndustryTrends,
    sector: SectorAnalysis,
    health: MarketHealth,
    *,
    fallbacks: Collection[str] = (),
) -> int:
    """
    Weighted 0-100 rubric: industry growth (40), sector activity (35),
    target market health (25).

    `fallbacks` names the lookups ("industry", "sector", "health") that failed
    and were replaced by neutral defaults. A failed industry or sector lookup
    scores the lowest rung of its band; a failed health lookup scores as "fair".
    """
    score = 0

    if "industry" in fallbacks:
        score += 10
    elif trends.growth_rate > 15:
        score += 40
    elif trends.growth_rate > 10:
        score += 30
    elif trends.growth_rate > 5:
        score += 20
    else:
        score += 10

    if "sector" in fallbacks or not sector.is_active:
        score += 5
    elif sector.activity == "growing":
        score += 35
    elif sector.activity == "stable":
        score += 25
    else:
        score += 10

    score += {"excellent": 25, "good": 20, "fair": 15}.get(health.health, 10)
    return score


def market_health_from_score(score: float) -> MarketHealthLevel:
    if score >= 80:
        return "active"
    if score >= 60:
        return "moderately_active"
    if score >= 40:
        return "cautious"
    return "inactive"


def market_recommendations(trends: IndustryTrends, sector: SectorAnalysis, health: MarketHealth) -> List[str]:
    recommendations: List[str] = []

    if trends.growth_rate > 15:
        recommendations.append("Leverage high industry growth rate for rapid scaling")
    if trends.competition_level == "high":
        recommendations.append("Focus on differentiation due to high competition")
    if sector.is_active and sector.activity == "growing":
        recommendations.append("Take advantage of growing sector trends")
    if sector.investment_flow > 10:
        recommendations.append("Strong investor interest - good timing for fundraising")
    if health.saturation_level > 70:
        recommendations.append("Market is saturated - consider niche targeting")

    recommendations.extend(health.recommendations)
    return recommendations


class MarketValidationStage:
    """Turns an onboarded startup into a market-validation verdict."""

    def __init__(
        self,
        bus: RisqBusAsync,
        market_data: MarketDataClient,
        *,
        lookup_timeout_sec: float = 10.0,
        codec: RisqCodec | None = None,
    ) -> None:
        self.bus = bus
        self.market_data = market_data
        self.lookup_timeout_sec = lookup_timeout_sec
        self.codec = codec or RisqCodec()

    async def handle_onboarded(self, data: bytes) -> None:
        logger.info("Processing startup onboarded event for market validation")

        decoded = self.codec.decode(data, StartupOnboardedEvent)
        if not decoded.ok or decoded.event is None:
            logger.error("Failed to decode startup onboarded event: %s", decoded.error)
            return
        event = decoded.event
        profile = event.profile()

        logger.info("Validating market for startup %s in %s sector", event.startup_id, profile.sector)

        request = MarketValidationRequestedEvent(
            startup_id=event.startup_id,
            industry=profile.industry,
            sector=profile.sector,
            target_market=profile.target_market,
            business_model=profile.business_model,
        )
        try:
            await self.bus.publish(SUBJECTS.market_validation_requested, request)
        except Exception as exc:
            logger.error("Failed to publish market validation requested event: %s", exc)
            return

        logger.info("Market validation requested for startup %s", event.startup_id)

    async def handle_validation_requested(self, data: bytes) -> None:
        logger.info("Processing market validation requested event")

        decoded = self.codec.decode(data, MarketValidationRequestedEvent)
        if not decoded.ok or decoded.event is None:
            logger.error("Failed to decode market validation requested event: %s", decoded.error)
            return
        event = decoded.event

        fallbacks: Set[str] = set()
        trends = await self._lookup(
            "industry",
            lambda: self.market_data.get_industry_trends(event.industry),
            lambda: default_industry_trends(event.industry),
            fallbacks,
        )
        sector = await self._lookup(
            "sector",
            lambda: self.market_data.get_sector_analysis(event.sector),
            lambda: default_sector_analysis(event.sector),
            fallbacks,
        )
        health = await self._lookup(
            "health",
            lambda: self.market_data.get_market_health(event.target_market),
            lambda: default_market_health(event.target_market),
            fallbacks,
        )

        score = market_health_score(trends, sector, health, fallbacks=fallbacks)
        overall = market_health_from_score(score)

        validated = MarketValidatedEvent(
            startup_id=event.startup_id,
            market_data={
                "industry_trends": trends.model_dump(mode="json"),
                "market_health": health.model_dump(mode="json"),
            },
            sector_analysis={
                "sector_analysis": sector.model_dump(mode="json"),
                "is_active": sector.is_active,
                "activity": sector.activity,
                "investment_flow": sector.investment_flow,
            },
            market_health=overall,
            recommendations=market_recommendations(trends, sector, health),
        )
        try:
            await self.bus.publish(SUBJECTS.market_validated, validated)
        except Exception as exc:
            logger.error("Failed to publish market validated event: %s", exc)
            return

        logger.info(
            "Market validation completed for startup %s: health=%s score=%d",
            event.startup_id,
            overall,
            score,
        )

    async def _lookup(
        self,
        what: str,
        call: Callable[[], Awaitable[T]],
        fallback: Callable[[], T],
        fallbacks: Set[str],
    ) -> T:
        try:
            return await asyncio.wait_for(call(), timeout=self.lookup_timeout_sec)
        except asyncio.TimeoutError:
            logger.error("Timed out on %s lookup after %.1fs; using defaults", what, self.lookup_timeout_sec)
        except Exception as exc:
            logger.error("Failed %s lookup: %s; using defaults", what, exc)
        fallbacks.add(what)
        return fallback()
