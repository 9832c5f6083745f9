from __future__ import annotations

import math
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator

NEUTRAL_RISK_SCORE = 50.0


def clamp_score(score: float) -> float:
    """Bound a score to [0, 100]; NaN reads as the neutral score."""
    if math.isnan(score):
        return NEUTRAL_RISK_SCORE
    if score < 0:
        return 0.0
    if score > 100:
        return 100.0
    return float(score)


class InitialRiskResult(BaseModel):
    """Raw risk profile returned by the LLM collaborator."""

    risk_score: float = NEUTRAL_RISK_SCORE
    factors: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    reasoning: str = ""

    @field_validator("risk_score")
    @classmethod
    def _bound(cls, v: float) -> float:
        return clamp_score(v)


def fallback_initial_risk() -> InitialRiskResult:
    """Neutral profile used when the LLM answer cannot be parsed."""
    return InitialRiskResult(
        risk_score=NEUTRAL_RISK_SCORE,
        factors=["Market uncertainty", "Team inexperience", "Funding challenges"],
        suggestions=["Conduct market research", "Build team expertise", "Develop funding strategy"],
        reasoning="Unable to parse detailed analysis from LLM response",
    )


class RiskAnalysisResult(BaseModel):
    risk_score: float
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    detailed_analysis: Dict[str, Any] = Field(default_factory=dict)
