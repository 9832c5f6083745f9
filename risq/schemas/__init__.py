from .events import (
    ContextStoreRequestedEvent,
    MarketHealthLevel,
    MarketValidatedEvent,
    MarketValidationRequestedEvent,
    RiskAnalysisCompletedEvent,
    RiskAnalysisRequestedEvent,
    RiskLevel,
    StartupOnboardedEvent,
    StartupProfile,
)

__all__ = [
    "ContextStoreRequestedEvent",
    "MarketHealthLevel",
    "MarketValidatedEvent",
    "MarketValidationRequestedEvent",
    "RiskAnalysisCompletedEvent",
    "RiskAnalysisRequestedEvent",
    "RiskLevel",
    "StartupOnboardedEvent",
    "StartupProfile",
]
