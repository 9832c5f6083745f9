# risq/pipeline/context_storage.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Sequence, Tuple
from uuid import UUID

from risq.clients.context_store import DEFAULT_CONTEXT_TTL_SEC, ContextStore
from risq.core.bus.async_service import RisqBusAsync
from risq.core.bus.codec import RisqCodec
from risq.schemas.events import ContextStoreRequestedEvent, RiskAnalysisCompletedEvent

logger = logging.getLogger("risq.pipeline.context")

CONTEXT_TEMPLATE = """
COMPREHENSIVE RISK ANALYSIS RESULTS

Startup ID: {startup_id}
Overall Risk Score: {score:.2f}/100
Risk Level: {level}

STRENGTHS IDENTIFIED:
{strengths}

WEAKNESSES IDENTIFIED:
{weaknesses}

KEY RECOMMENDATIONS:
{recommendations}

DETAILED ANALYSIS INSIGHTS:
{details}

This analysis was completed on {completed_at} and represents a comprehensive assessment
of market conditions, founder capabilities, business model viability,
and operational risks. The risk score of {score:.2f} indicates a {level} risk level
requiring specific attention to the identified weaknesses and implementation
of the provided recommendations.

CONTEXT FOR FUTURE DECISIONS:
- Current risk profile established at score {score:.2f}
- Market conditions assessed and factored into analysis
- Founder experience and team composition evaluated
- Business model strengths and vulnerabilities identified
- Specific mitigation strategies provided

This context should be referenced for future business decisions,
funding discussions, and strategic planning initiatives.
"""


def format_list_items(items: Sequence[str]) -> str:
    if not items:
        return "None specified"
    return "".join(f"  {i}. {item}\n" for i, item in enumerate(items, start=1))


def format_detailed_analysis(analysis: Mapping[str, Any]) -> str:
    if not analysis:
        return "No detailed analysis available"
    return "".join(f"  - {key}: {value}\n" for key, value in analysis.items())


def build_context_content(event: RiskAnalysisCompletedEvent) -> str:
    return CONTEXT_TEMPLATE.format(
        startup_id=event.startup_id,
        score=event.risk_score,
        level=event.risk_level,
        strengths=format_list_items(event.strengths),
        weaknesses=format_list_items(event.weaknesses),
        recommendations=format_list_items(event.recommendations),
        details=format_detailed_analysis(event.detailed_analysis),
        completed_at=event.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
    )


def context_fragments(event: RiskAnalysisCompletedEvent) -> List[Tuple[str, str, Dict[str, Any]]]:
    """(label, content, metadata) for each non-empty strengths/weaknesses/recommendations list."""
    timestamp = event.timestamp.isoformat()
    base = {"startup_id": str(event.startup_id), "risk_score": event.risk_score, "timestamp": timestamp}
    fragments: List[Tuple[str, str, Dict[str, Any]]] = []

    if event.strengths:
        fragments.append((
            "strengths",
            f"STARTUP STRENGTHS (Risk Score: {event.risk_score:.2f}):\n{format_list_items(event.strengths)}",
            {"type": "strengths", "fragment": "strengths_analysis", **base},
        ))
    if event.weaknesses:
        fragments.append((
            "weaknesses",
            f"STARTUP WEAKNESSES (Risk Score: {event.risk_score:.2f}):\n{format_list_items(event.weaknesses)}",
            {"type": "weaknesses", "fragment": "weaknesses_analysis", **base},
        ))
    if event.recommendations:
        fragments.append((
            "recommendations",
            f"ACTIONABLE RECOMMENDATIONS (Risk Score: {event.risk_score:.2f}):\n"
            f"{format_list_items(event.recommendations)}",
            {"type": "recommendations", "fragment": "recommendations", "actionable": True, **base},
        ))
    return fragments


class ContextStorageStage:
    """Persists risk verdicts (and explicit store requests) as startup context."""

    def __init__(
        self,
        bus: RisqBusAsync,
        store: ContextStore,
        *,
        context_ttl_sec: int = DEFAULT_CONTEXT_TTL_SEC,
        store_timeout_sec: float = 10.0,
        codec: RisqCodec | None = None,
    ) -> None:
        self.bus = bus
        self.store = store
        self.context_ttl_sec = context_ttl_sec
        self.store_timeout_sec = store_timeout_sec
        self.codec = codec or RisqCodec()

    async def handle_risk_analysis_completed(self, data: bytes) -> None:
        logger.info("Processing risk analysis completed event for context storage")

        decoded = self.codec.decode(data, RiskAnalysisCompletedEvent)
        if not decoded.ok or decoded.event is None:
            logger.error("Failed to decode risk analysis completed event: %s", decoded.error)
            return
        event = decoded.event

        metadata = {
            "type": "risk_analysis",
            "startup_id": str(event.startup_id),
            "risk_score": event.risk_score,
            "risk_level": event.risk_level,
            "analysis_timestamp": event.timestamp.isoformat(),
            "source": "comprehensive_risk_analysis",
            "version": "1.0",
        }

        logger.info("Storing risk analysis context for startup %s", event.startup_id)
        try:
            await self._store(event.startup_id, build_context_content(event), metadata)
        except Exception as exc:
            logger.error("Failed to store risk analysis context for startup %s: %s", event.startup_id, exc)
            return

        logger.info(
            "Risk analysis context stored for startup %s - risk score: %.2f, level: %s",
            event.startup_id,
            event.risk_score,
            event.risk_level,
        )

        stored = 0
        for label, content, fragment_meta in context_fragments(event):
            try:
                await self._store(event.startup_id, content, fragment_meta)
            except Exception as exc:
                logger.warning("Failed to store %s context: %s", label, exc)
                continue
            stored += 1
        logger.info("Stored %d detailed context fragments for startup %s", stored, event.startup_id)

    async def handle_context_store_requested(self, data: bytes) -> None:
        logger.info("Processing context store requested event")

        decoded = self.codec.decode(data, ContextStoreRequestedEvent)
        if not decoded.ok or decoded.event is None:
            logger.error("Failed to decode context store requested event: %s", decoded.error)
            return
        event = decoded.event

        logger.info("Storing context for startup %s - type: %s", event.startup_id, event.content_type)
        try:
            await self._store(event.startup_id, event.content, dict(event.metadata))
        except Exception as exc:
            logger.error("Failed to store context for startup %s: %s", event.startup_id, exc)
            return

        logger.info("Context stored successfully for startup %s", event.startup_id)

    async def _store(self, startup_id: UUID, content: str, metadata: Dict[str, Any]) -> None:
        await asyncio.wait_for(
            self.store.store(startup_id, content, metadata, self.context_ttl_sec),
            timeout=self.store_timeout_sec,
        )
