import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from _fakes import FakeRedis, wait_until

from risq.clients.context_store import ContextStore
from risq.clients.llm import LLMClient
from risq.clients.market_data import MarketDataClient
from risq.core.bus.async_service import RisqBusAsync
from risq.core.bus.errors import BusConnectionError
from risq.core.bus.subjects import PIPELINE_ORDER
from risq.pipeline.coordinator import CoordinatorState, build_coordinator
from risq.pipeline.errors import CoordinatorStateError, PipelineStartError
from risq.pipeline.settings import PipelineSettings


def _coordinator(redis: FakeRedis):
    bus = RisqBusAsync("redis://fake:6379/0", client=redis)
    return build_coordinator(
        PipelineSettings(),
        bus=bus,
        market_data=MagicMock(spec=MarketDataClient),
        llm=MagicMock(spec=LLMClient),
        store=MagicMock(spec=ContextStore),
    )


class TestPipelineCoordinator(unittest.TestCase):
    def test_start_subscribes_in_pipeline_order(self) -> None:
        async def _run():
            coordinator = _coordinator(FakeRedis())
            await coordinator.start()
            subjects = [s.subject for s in coordinator.subscriptions]
            state = coordinator.state
            await coordinator.stop()
            return subjects, state, coordinator

        subjects, state, coordinator = asyncio.run(_run())
        self.assertEqual(tuple(subjects), PIPELINE_ORDER)
        self.assertEqual(state, CoordinatorState.RUNNING)
        self.assertEqual(coordinator.state, CoordinatorState.STOPPED)
        self.assertEqual(coordinator.subscriptions, ())
        self.assertFalse(coordinator.bus.is_connected)

    def test_double_start_and_double_stop_are_rejected(self) -> None:
        async def _run():
            coordinator = _coordinator(FakeRedis())
            with self.assertRaises(CoordinatorStateError):
                await coordinator.stop()
            await coordinator.start()
            with self.assertRaises(CoordinatorStateError):
                await coordinator.start()
            self.assertEqual(len(coordinator.subscriptions), 6)
            await coordinator.stop()
            with self.assertRaises(CoordinatorStateError):
                await coordinator.stop()

        asyncio.run(_run())

    def test_connect_failure_propagates(self) -> None:
        async def _run():
            coordinator = _coordinator(FakeRedis(fail_ping=True))
            with self.assertRaises(BusConnectionError):
                await coordinator.start()
            self.assertEqual(coordinator.state, CoordinatorState.STOPPED)

        asyncio.run(_run())

    def test_partial_subscribe_failure_rolls_back(self) -> None:
        async def _run():
            redis = FakeRedis(fail_subscribe={"risk.analysis.requested"})
            coordinator = _coordinator(redis)
            with self.assertRaises(PipelineStartError):
                await coordinator.start()
            self.assertEqual(coordinator.state, CoordinatorState.STOPPED)
            self.assertEqual(coordinator.subscriptions, ())
            self.assertEqual(coordinator.bus.subscriptions, ())
            self.assertFalse(coordinator.bus.is_connected)
            self.assertEqual(redis.pubsubs, [])

        asyncio.run(_run())

    def test_lost_subscription_surfaces_and_stop_still_works(self) -> None:
        async def _run():
            redis = FakeRedis()
            coordinator = _coordinator(redis)
            await coordinator.start()
            await redis.drop_connection("risk.analysis.completed")
            lost = await wait_until(lambda: coordinator.bus.dead_subjects == ("risk.analysis.completed",))
            connected = coordinator.bus.is_connected
            active = [s.subject for s in coordinator.subscriptions if s.active]
            await coordinator.stop()
            return coordinator, lost, connected, active

        coordinator, lost, connected, active = asyncio.run(_run())
        self.assertTrue(lost)
        self.assertFalse(connected)
        self.assertEqual(len(active), 5)
        self.assertNotIn("risk.analysis.completed", active)
        self.assertEqual(coordinator.state, CoordinatorState.STOPPED)
        self.assertEqual(coordinator.subscriptions, ())

    def test_publish_startup_onboarded(self) -> None:
        async def _run():
            redis = FakeRedis()
            coordinator = _coordinator(redis)
            await coordinator.bus.connect()
            sid, uid = uuid4(), uuid4()
            event = await coordinator.publish_startup_onboarded(sid, uid, {"sector": "ai"})
            await coordinator.bus.close()
            return redis, event, sid

        redis, event, sid = asyncio.run(_run())
        self.assertEqual(event.startup_id, sid)
        self.assertEqual(event.founder_cv, {})
        self.assertEqual(len(redis.published_on("startup.onboarded")), 1)

    def test_aclose_releases_owned_clients(self) -> None:
        async def _run():
            coordinator = _coordinator(FakeRedis())
            owned = MagicMock()
            owned.close = AsyncMock()
            coordinator._resources.append(owned)
            await coordinator.start()
            await coordinator.aclose()
            return coordinator, owned

        coordinator, owned = asyncio.run(_run())
        self.assertEqual(coordinator.state, CoordinatorState.STOPPED)
        owned.close.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
