# risq/pipeline/risk_analysis.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping

from risq.clients.llm import LLMClient
from risq.core.bus.async_service import RisqBusAsync
from risq.core.bus.codec import RisqCodec
from risq.core.bus.subjects import SUBJECTS
from risq.schemas.events import (
    MarketValidatedEvent,
    RiskAnalysisCompletedEvent,
    RiskAnalysisRequestedEvent,
    RiskLevel,
)
from risq.schemas.risk import InitialRiskResult, RiskAnalysisResult, clamp_score

logger = logging.getLogger("risq.pipeline.risk")

# Score multipliers keyed by target-market health; anything else is neutral.
MARKET_HEALTH_FACTORS: Dict[str, float] = {
    "excellent": 0.85,
    "good": 0.92,
    "declining": 1.15,
    "poor": 1.25,
}

DEFAULT_STRENGTHS = ["Market analysis completed", "Initial assessment positive"]
DEFAULT_WEAKNESSES = ["Market conditions uncertain", "Need more validation"]
WEAK_MARKET_RECOMMENDATIONS = [
    "Consider pivoting to a more stable market segment",
    "Develop stronger competitive differentiation",
    "Build strategic partnerships to mitigate market risks",
]

ANALYSIS_PROMPT = """
COMPREHENSIVE STARTUP RISK ANALYSIS REQUEST

Startup ID: {startup_id}

MARKET DATA ANALYSIS:
- Market Health: {market_health}
- Sector Analysis: {sector_analysis}
- Market Data: {market_data}

FOUNDER & BUSINESS INFORMATION:
- Founder CV: {founder_cv}
- Business Plan: {business_plan}
- Startup Data: {startup_data}

Please provide a comprehensive risk assessment considering:
1. Market conditions and competitiveness
2. Founder experience and team composition
3. Business model viability
4. Financial projections and funding requirements
5. Regulatory and operational risks
6. Technology and execution risks

Focus on actionable insights and specific recommendations.
"""


def risk_level(score: float) -> RiskLevel:
    if score >= 80:
        return "very_high"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    if score >= 20:
        return "low"
    return "very_low"


def market_health_of(market_data: Mapping[str, Any]) -> str:
    """
    Health label carried in `market_data["market_health"]`.

    Validation publishes the lookup result as a map with a `health` key;
    a bare string is accepted too. Anything else reads as "fair".
    """
    value = market_data.get("market_health")
    if isinstance(value, str) and value:
        return value
    if isinstance(value, Mapping):
        health = value.get("health")
        if isinstance(health, str) and health:
            return health
    return "fair"


def build_analysis_prompt(event: RiskAnalysisRequestedEvent) -> str:
    return ANALYSIS_PROMPT.format(
        startup_id=event.startup_id,
        market_health=event.market_data.get("market_health"),
        sector_analysis=event.sector_analysis,
        market_data=event.market_data,
        founder_cv=event.founder_cv,
        business_plan=event.business_plan,
        startup_data=event.startup_data,
    )


def enhance_with_market_data(initial: InitialRiskResult, market_data: Mapping[str, Any]) -> RiskAnalysisResult:
    health = market_health_of(market_data)
    adjusted = clamp_score(initial.risk_score * MARKET_HEALTH_FACTORS.get(health, 1.0))

    half = len(initial.factors) // 2
    strengths = list(initial.factors[:half]) or list(DEFAULT_STRENGTHS)
    weaknesses = list(initial.factors[half:]) or list(DEFAULT_WEAKNESSES)

    recommendations = list(initial.suggestions)
    if health in ("declining", "poor"):
        recommendations.extend(WEAK_MARKET_RECOMMENDATIONS)

    return RiskAnalysisResult(
        risk_score=adjusted,
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=recommendations,
        detailed_analysis={
            "market_health": health,
            "initial_score": initial.risk_score,
            "adjusted_score": adjusted,
            "market_factor": f"Market conditions: {health}",
            "analysis_source": "AI-powered comprehensive assessment",
            "confidence": 0.85,
            "reasoning": initial.reasoning,
        },
    )


class RiskAnalysisStage:
    """Scores a validated startup with the LLM and adjusts for market conditions."""

    def __init__(
        self,
        bus: RisqBusAsync,
        llm: LLMClient,
        *,
        llm_timeout_sec: float = 60.0,
        codec: RisqCodec | None = None,
    ) -> None:
        self.bus = bus
        self.llm = llm
        self.llm_timeout_sec = llm_timeout_sec
        self.codec = codec or RisqCodec()

    async def handle_market_validated(self, data: bytes) -> None:
        logger.info("Processing market validated event for risk analysis")

        decoded = self.codec.decode(data, MarketValidatedEvent)
        if not decoded.ok or decoded.event is None:
            logger.error("Failed to decode market validated event: %s", decoded.error)
            return
        event = decoded.event

        logger.info(
            "Starting risk analysis for startup %s with market health: %s",
            event.startup_id,
            event.market_health,
        )

        # startup_data / founder_cv / business_plan are not carried by
        # market.validated, so the analysis request goes out with them empty.
        request = RiskAnalysisRequestedEvent(
            startup_id=event.startup_id,
            startup_data={},
            founder_cv={},
            business_plan={},
            market_data=dict(event.market_data),
            sector_analysis=dict(event.sector_analysis),
        )
        try:
            await self.bus.publish(SUBJECTS.risk_analysis_requested, request)
        except Exception as exc:
            logger.error("Failed to publish risk analysis requested event: %s", exc)
            return

        logger.info("Risk analysis requested for startup %s", event.startup_id)

    async def handle_risk_analysis_requested(self, data: bytes) -> None:
        logger.info("Processing risk analysis requested event")

        decoded = self.codec.decode(data, RiskAnalysisRequestedEvent)
        if not decoded.ok or decoded.event is None:
            logger.error("Failed to decode risk analysis requested event: %s", decoded.error)
            return
        event = decoded.event

        logger.info("Generating comprehensive risk analysis for startup %s", event.startup_id)
        prompt = build_analysis_prompt(event)
        try:
            initial = await asyncio.wait_for(
                self.llm.generate_initial_risk_profile(prompt),
                timeout=self.llm_timeout_sec,
            )
        except asyncio.TimeoutError:
            logger.error("Risk analysis for startup %s timed out after %.1fs", event.startup_id, self.llm_timeout_sec)
            return
        except Exception as exc:
            logger.error("Failed to generate risk analysis for startup %s: %s", event.startup_id, exc)
            return

        result = enhance_with_market_data(initial, event.market_data)
        completed = RiskAnalysisCompletedEvent(
            startup_id=event.startup_id,
            risk_score=result.risk_score,
            risk_level=risk_level(result.risk_score),
            strengths=result.strengths,
            weaknesses=result.weaknesses,
            recommendations=result.recommendations,
            detailed_analysis=result.detailed_analysis,
        )
        try:
            await self.bus.publish(SUBJECTS.risk_analysis_completed, completed)
        except Exception as exc:
            logger.error("Failed to publish risk analysis completed event: %s", exc)
            return

        logger.info("Risk analysis completed for startup %s with score: %.2f", event.startup_id, result.risk_score)
