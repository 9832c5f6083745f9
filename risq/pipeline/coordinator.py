# risq/pipeline/coordinator.py
from __future__ import annotations

import enum
from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID

from loguru import logger

from risq.clients.context_store import ContextStore, RedisContextStore
from risq.clients.llm import LLMClient, OpenAIChatClient
from risq.clients.market_data import MarketDataClient, SimulatedMarketDataClient
from risq.core.bus.async_service import MessageHandler, RisqBusAsync, Subscription
from risq.core.bus.subjects import SUBJECTS
from risq.schemas.events import StartupOnboardedEvent

from .context_storage import ContextStorageStage
from .errors import CoordinatorStateError, PipelineStartError
from .market_validation import MarketValidationStage
from .risk_analysis import RiskAnalysisStage
from .settings import PipelineSettings


class CoordinatorState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class PipelineCoordinator:
    """
    Owns the bus subscriptions that chain the pipeline stages:

        startup.onboarded -> market.validation.requested -> market.validated
        -> risk.analysis.requested -> risk.analysis.completed -> context store

    plus the side entry context.store.requested. Start is all-or-nothing.
    """

    def __init__(
        self,
        bus: RisqBusAsync,
        market: MarketValidationStage,
        risk: RiskAnalysisStage,
        context: ContextStorageStage,
        *,
        resources: Sequence[Any] = (),
    ) -> None:
        self.bus = bus
        self.market = market
        self.risk = risk
        self.context = context
        self._resources = list(resources)
        self._subscriptions: List[Subscription] = []
        self._state = CoordinatorState.STOPPED

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def subscriptions(self) -> Tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    def routes(self) -> List[Tuple[str, MessageHandler]]:
        """Subject -> handler wiring, in subscription order."""
        return [
            (SUBJECTS.startup_onboarded, self.market.handle_onboarded),
            (SUBJECTS.market_validation_requested, self.market.handle_validation_requested),
            (SUBJECTS.market_validated, self.risk.handle_market_validated),
            (SUBJECTS.risk_analysis_requested, self.risk.handle_risk_analysis_requested),
            (SUBJECTS.risk_analysis_completed, self.context.handle_risk_analysis_completed),
            (SUBJECTS.context_store_requested, self.context.handle_context_store_requested),
        ]

    async def start(self) -> None:
        if self._state is CoordinatorState.RUNNING:
            raise CoordinatorStateError("pipeline coordinator already running")

        logger.info("Starting pipeline coordinator")
        await self.bus.connect()

        logger.info("Setting up event subscriptions")
        for subject, handler in self.routes():
            try:
                sub = await self.bus.subscribe(subject, handler)
            except Exception as exc:
                logger.error(f"Failed to subscribe to {subject}: {exc}; rolling back")
                await self._teardown()
                raise PipelineStartError(f"failed to subscribe to {subject}: {exc}") from exc
            self._subscriptions.append(sub)
            logger.info(f"Subscribed {subject}")

        self._state = CoordinatorState.RUNNING
        logger.info(f"Pipeline coordinator started with {len(self._subscriptions)} subscriptions")
        logger.info("Event flow: startup onboarding -> market validation -> risk analysis -> context storage")

    async def stop(self) -> None:
        if self._state is CoordinatorState.STOPPED:
            raise CoordinatorStateError("pipeline coordinator not running")

        logger.info("Stopping pipeline coordinator")
        await self._teardown()
        self._state = CoordinatorState.STOPPED
        logger.info("Pipeline coordinator stopped")

    async def aclose(self) -> None:
        """Stop if running, then release owned clients (HTTP pools, Redis)."""
        if self._state is CoordinatorState.RUNNING:
            await self.stop()
        for resource in self._resources:
            try:
                await resource.close()
            except Exception as exc:
                logger.warning(f"Failed to close {type(resource).__name__}: {exc}")
        self._resources.clear()

    async def publish_startup_onboarded(
        self,
        startup_id: UUID,
        user_id: UUID,
        startup_data: Optional[Dict[str, Any]] = None,
        founder_cv: Optional[Dict[str, Any]] = None,
        business_plan: Optional[Dict[str, Any]] = None,
    ) -> StartupOnboardedEvent:
        event = StartupOnboardedEvent(
            startup_id=startup_id,
            user_id=user_id,
            startup_data=startup_data or {},
            founder_cv=founder_cv or {},
            business_plan=business_plan or {},
        )
        await self.bus.publish(SUBJECTS.startup_onboarded, event)
        logger.info(f"Startup {startup_id} onboarded; pipeline triggered")
        return event

    async def _teardown(self) -> None:
        while self._subscriptions:
            sub = self._subscriptions.pop()
            try:
                await sub.unsubscribe()
            except Exception as exc:
                logger.warning(f"Failed to unsubscribe from {sub.subject}: {exc}")
        try:
            await self.bus.close()
        except Exception as exc:
            logger.warning(f"Failed to close bus: {exc}")


def build_coordinator(
    settings: PipelineSettings,
    *,
    bus: Optional[RisqBusAsync] = None,
    market_data: Optional[MarketDataClient] = None,
    llm: Optional[LLMClient] = None,
    store: Optional[ContextStore] = None,
) -> PipelineCoordinator:
    """Wire the stages against concrete clients built from settings; any can be overridden."""
    resources: List[Any] = []

    if bus is None:
        bus = RisqBusAsync(
            settings.bus_url,
            enabled=settings.bus_enabled,
            max_reconnects=settings.bus_max_reconnects,
            reconnect_wait_sec=settings.bus_reconnect_wait_sec,
            connect_timeout_sec=settings.bus_connect_timeout_sec,
            drain_timeout_sec=settings.bus_drain_timeout_sec,
        )
    if market_data is None:
        market_data = SimulatedMarketDataClient(
            news_api_key=settings.news_api_key,
            news_api_url=settings.news_api_url,
            timeout_sec=settings.lookup_timeout_sec,
        )
        resources.append(market_data)
    if llm is None:
        llm = OpenAIChatClient(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            timeout_sec=settings.llm_timeout_sec,
        )
        resources.append(llm)
    if store is None:
        store = RedisContextStore(settings.redis_url)
        resources.append(store)

    return PipelineCoordinator(
        bus,
        MarketValidationStage(bus, market_data, lookup_timeout_sec=settings.lookup_timeout_sec),
        RiskAnalysisStage(bus, llm, llm_timeout_sec=settings.llm_timeout_sec),
        ContextStorageStage(
            bus,
            store,
            context_ttl_sec=settings.context_ttl_sec,
            store_timeout_sec=settings.store_timeout_sec,
        ),
        resources=resources,
    )
