import json
import unittest
from datetime import datetime
from uuid import uuid4

from pydantic import ValidationError

from risq.core.bus.codec import RisqCodec
from risq.core.bus.subjects import PIPELINE_ORDER, SUBJECTS
from risq.schemas.events import (
    MarketValidatedEvent,
    RiskAnalysisCompletedEvent,
    RiskAnalysisRequestedEvent,
    StartupOnboardedEvent,
    StartupProfile,
)


class TestRisqCodec(unittest.TestCase):
    def setUp(self) -> None:
        self.codec = RisqCodec()

    def test_encode_keeps_field_names_and_envelope(self) -> None:
        sid = uuid4()
        event = StartupOnboardedEvent(startup_id=sid, user_id=uuid4(), startup_data={"sector": "fintech"})
        raw = json.loads(self.codec.encode(event))

        self.assertEqual(raw["startup_id"], str(sid))
        self.assertEqual(raw["type"], "startup.onboarded")
        self.assertEqual(raw["subject"], "startup.onboarded")
        self.assertEqual(raw["source"], "startup-service")
        self.assertEqual(raw["version"], "1.0")
        self.assertTrue(raw["id"])
        self.assertTrue(raw["timestamp"])

    def test_decode_invalid_json_is_reported_not_raised(self) -> None:
        result = self.codec.decode(b"{not json", StartupOnboardedEvent)
        self.assertFalse(result.ok)
        self.assertIsNone(result.event)
        self.assertTrue(result.error.startswith("invalid_json"))

    def test_decode_non_object_payload(self) -> None:
        result = self.codec.decode(b"[1, 2]", StartupOnboardedEvent)
        self.assertFalse(result.ok)
        self.assertTrue(result.error.startswith("invalid_payload"))

    def test_decode_schema_violation(self) -> None:
        result = self.codec.decode(json.dumps({"startup_id": "nope"}).encode(), StartupOnboardedEvent)
        self.assertFalse(result.ok)
        self.assertIn("event_validation_failed", result.error)
        self.assertEqual(result.raw, {"startup_id": "nope"})

    def test_decoded_event_matches_published(self) -> None:
        event = MarketValidatedEvent(startup_id=uuid4(), market_health="cautious", recommendations=["a", "b"])
        result = self.codec.decode(self.codec.encode(event), MarketValidatedEvent)
        self.assertTrue(result.ok)
        self.assertEqual(result.event, event)
        self.assertIsNotNone(result.event.timestamp.tzinfo)


class TestEventModels(unittest.TestCase):
    def test_events_are_immutable(self) -> None:
        event = StartupOnboardedEvent(startup_id=uuid4(), user_id=uuid4())
        with self.assertRaises(ValidationError):
            event.startup_id = uuid4()

    def test_naive_timestamp_is_made_utc(self) -> None:
        event = StartupOnboardedEvent(startup_id=uuid4(), user_id=uuid4(), timestamp=datetime(2024, 1, 1, 12, 0))
        self.assertEqual(event.timestamp.utcoffset().total_seconds(), 0)

    def test_risk_score_outside_range_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            RiskAnalysisCompletedEvent(startup_id=uuid4(), risk_score=101, risk_level="very_high")

    def test_unknown_market_health_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            MarketValidatedEvent(startup_id=uuid4(), market_health="booming")

    def test_startup_profile_defaults_missing_and_wrong_types(self) -> None:
        profile = StartupProfile.from_mapping({"industry": "fintech", "sector": 42, "target_market": None})
        self.assertEqual(profile.industry, "fintech")
        self.assertEqual(profile.sector, "")
        self.assertEqual(profile.target_market, "")
        self.assertEqual(profile.business_model, "")

    def test_startup_profile_from_non_mapping(self) -> None:
        self.assertEqual(StartupProfile.from_mapping(None), StartupProfile())

    def test_pipeline_order(self) -> None:
        self.assertEqual(
            PIPELINE_ORDER,
            (
                "startup.onboarded",
                "market.validation.requested",
                "market.validated",
                "risk.analysis.requested",
                "risk.analysis.completed",
                "context.store.requested",
            ),
        )
        self.assertEqual(SUBJECTS.context_stored, "context.stored")

    def test_event_sources(self) -> None:
        sid = uuid4()
        self.assertEqual(RiskAnalysisRequestedEvent(startup_id=sid).source, "market-service")
        self.assertEqual(
            MarketValidatedEvent(startup_id=sid, market_health="active").source,
            "market-validation-service",
        )
        self.assertEqual(
            RiskAnalysisCompletedEvent(startup_id=sid, risk_score=10, risk_level="very_low").source,
            "risk-analysis-service",
        )


if __name__ == "__main__":
    unittest.main()
