from __future__ import annotations

from typing import Any, Dict, List, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from risq.core.bus.bus_schemas import BaseEvent
from risq.core.bus.subjects import SOURCES, SUBJECTS

MarketHealthLevel = Literal["active", "moderately_active", "cautious", "inactive"]
RiskLevel = Literal["very_low", "low", "medium", "high", "very_high"]


class StartupProfile(BaseModel):
    """
    Typed view over the loosely-typed onboarding `startup_data` map.

    Absent or non-string values become "" instead of failing validation.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    industry: str = ""
    sector: str = ""
    target_market: str = ""
    business_model: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _string_or_empty(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @classmethod
    def from_mapping(cls, data: Any) -> "StartupProfile":
        if not isinstance(data, dict):
            return cls()
        return cls.model_validate(data)


class StartupOnboardedEvent(BaseEvent):
    type: str = SUBJECTS.startup_onboarded
    source: str = SOURCES.startup_service
    subject: str = SUBJECTS.startup_onboarded

    startup_id: UUID
    user_id: UUID
    startup_data: Dict[str, Any] = Field(default_factory=dict)
    founder_cv: Dict[str, Any] = Field(default_factory=dict)
    business_plan: Dict[str, Any] = Field(default_factory=dict)

    def profile(self) -> StartupProfile:
        return StartupProfile.from_mapping(self.startup_data)


class MarketValidationRequestedEvent(BaseEvent):
    type: str = SUBJECTS.market_validation_requested
    source: str = SOURCES.startup_service
    subject: str = SUBJECTS.market_validation_requested

    startup_id: UUID
    industry: str = ""
    sector: str = ""
    target_market: str = ""
    business_model: str = ""


class MarketValidatedEvent(BaseEvent):
    type: str = SUBJECTS.market_validated
    source: str = SOURCES.market_validation_service
    subject: str = SUBJECTS.market_validated

    startup_id: UUID
    market_data: Dict[str, Any] = Field(default_factory=dict)
    sector_analysis: Dict[str, Any] = Field(default_factory=dict)
    market_health: MarketHealthLevel
    recommendations: List[str] = Field(default_factory=list)


class RiskAnalysisRequestedEvent(BaseEvent):
    type: str = SUBJECTS.risk_analysis_requested
    source: str = SOURCES.market_service
    subject: str = SUBJECTS.risk_analysis_requested

    startup_id: UUID
    startup_data: Dict[str, Any] = Field(default_factory=dict)
    founder_cv: Dict[str, Any] = Field(default_factory=dict)
    business_plan: Dict[str, Any] = Field(default_factory=dict)
    market_data: Dict[str, Any] = Field(default_factory=dict)
    sector_analysis: Dict[str, Any] = Field(default_factory=dict)


class RiskAnalysisCompletedEvent(BaseEvent):
    type: str = SUBJECTS.risk_analysis_completed
    source: str = SOURCES.risk_analysis_service
    subject: str = SUBJECTS.risk_analysis_completed

    startup_id: UUID
    risk_score: float = Field(..., ge=0.0, le=100.0)
    risk_level: RiskLevel
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    detailed_analysis: Dict[str, Any] = Field(default_factory=dict)


class ContextStoreRequestedEvent(BaseEvent):
    type: str = SUBJECTS.context_store_requested
    source: str = SOURCES.context_storage_service
    subject: str = SUBJECTS.context_store_requested

    startup_id: UUID
    content_type: str = ""
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
