from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, Optional, Protocol

import httpx
from pydantic import ValidationError

from risq.schemas.risk import NEUTRAL_RISK_SCORE, InitialRiskResult, clamp_score, fallback_initial_risk

logger = logging.getLogger("risq.clients.llm")

SYSTEM_PROMPT = "You are an expert startup risk analyst. Always respond with valid JSON."

RISK_PROFILE_PROMPT = """You are an expert startup risk analyst. Please analyze the following startup information and provide an initial risk assessment:

STARTUP INFORMATION:
{startup_info}

Please provide:
1. Overall risk score (0-100 scale)
2. Key risk factors identified
3. Specific risk mitigation suggestions
4. Detailed reasoning for the assessment

Format your response as JSON:
{{
  "risk_score": <number>,
  "factors": ["factor1", "factor2", ...],
  "suggestions": ["suggestion1", "suggestion2", ...],
  "reasoning": "detailed explanation"
}}"""


class LLMError(RuntimeError):
    """Raised when the model endpoint cannot produce an answer at all."""


class LLMClient(Protocol):
    async def generate_initial_risk_profile(self, prompt: str) -> InitialRiskResult: ...


def _extract_json(content: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(content)
        return parsed if isinstance(parsed, dict) else None
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", content, re.DOTALL)
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except json.JSONDecodeError:
            return None

    brace_match = re.search(r"\{.*\}", content, re.DOTALL)
    if brace_match:
        try:
            return json.loads(brace_match.group(0))
        except json.JSONDecodeError:
            return None
    return None


def parse_risk_profile(content: str) -> InitialRiskResult:
    """
    Turn raw model text into an InitialRiskResult.

    Anything that is not a usable JSON object yields the neutral fallback
    profile. The score is always clamped to [0, 100].
    """
    data = _extract_json(content)
    if data is None:
        logger.warning("Failed to parse LLM response as JSON; using fallback risk profile")
        return fallback_initial_risk()

    raw_score = data.get("risk_score", NEUTRAL_RISK_SCORE)
    try:
        score = float(raw_score)
    except (TypeError, ValueError):
        score = NEUTRAL_RISK_SCORE
    if not math.isfinite(score):
        score = NEUTRAL_RISK_SCORE

    factors = data.get("factors") or []
    suggestions = data.get("suggestions") or []
    if not isinstance(factors, list) or not isinstance(suggestions, list):
        logger.warning("LLM response factors/suggestions are not lists; using fallback risk profile")
        return fallback_initial_risk()

    try:
        return InitialRiskResult(
            risk_score=clamp_score(score),
            factors=[str(f) for f in factors],
            suggestions=[str(s) for s in suggestions],
            reasoning=str(data.get("reasoning") or ""),
        )
    except (TypeError, ValidationError) as exc:
        logger.warning("LLM response had unexpected shape (%s); using fallback risk profile", exc)
        return fallback_initial_risk()


class OpenAIChatClient:
    """Chat-completions client for any OpenAI-compatible endpoint."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4",
        temperature: float = 0.3,
        max_tokens: int = 1000,
        timeout_sec: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_sec))

    async def close(self) -> None:
        await self._client.aclose()

    async def chat(self, *, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            response = await self._client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise LLMError(f"failed to generate risk analysis: {exc}") from exc

        try:
            body = response.json()
            choices = body.get("choices") or []
        except (ValueError, AttributeError) as exc:
            raise LLMError(f"invalid response from LLM endpoint: {exc}") from exc
        if not choices:
            raise LLMError("no response from LLM")

        message = choices[0].get("message") or {}
        return str(message.get("content") or "")

    async def generate_initial_risk_profile(self, prompt: str) -> InitialRiskResult:
        content = await self.chat(system_prompt=SYSTEM_PROMPT, user_prompt=RISK_PROFILE_PROMPT.format(startup_info=prompt))
        result = parse_risk_profile(content)
        logger.info("LLM risk profile generated: score=%.2f factors=%d", result.risk_score, len(result.factors))
        return result
