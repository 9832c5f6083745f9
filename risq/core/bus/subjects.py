from __future__ import annotations

"""
Authoritative subject map for the Risq assessment pipeline.

These constants are the single source of truth for:
• Bus subjects (routing keys) every stage publishes to or subscribes on.
• Event type tags carried in the envelope.
• Source names each stage stamps on the events it produces.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class PipelineSubjects:
    """Canonical bus subjects, in pipeline order."""

    # HTTP onboarding -> Market validation
    startup_onboarded: str = "startup.onboarded"

    # Market validation -> itself (async hop)
    market_validation_requested: str = "market.validation.requested"

    # Market validation -> Risk analysis
    market_validated: str = "market.validated"

    # Risk analysis -> itself (async hop)
    risk_analysis_requested: str = "risk.analysis.requested"

    # Risk analysis -> Context storage
    risk_analysis_completed: str = "risk.analysis.completed"

    # Side entry into context storage
    context_store_requested: str = "context.store.requested"

    # Declared for downstream consumers; not published by the default wiring.
    context_stored: str = "context.stored"


@dataclass(frozen=True)
class EventSources:
    """Source names stamped on produced events."""

    startup_service: str = "startup-service"
    market_service: str = "market-service"
    market_validation_service: str = "market-validation-service"
    risk_analysis_service: str = "risk-analysis-service"
    context_storage_service: str = "context-storage-service"


SUBJECTS = PipelineSubjects()
SOURCES = EventSources()

# Fixed subscription order used by the coordinator.
PIPELINE_ORDER: Tuple[str, ...] = (
    SUBJECTS.startup_onboarded,
    SUBJECTS.market_validation_requested,
    SUBJECTS.market_validated,
    SUBJECTS.risk_analysis_requested,
    SUBJECTS.risk_analysis_completed,
    SUBJECTS.context_store_requested,
)
