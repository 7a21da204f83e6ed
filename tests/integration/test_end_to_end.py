# ABOUTME: End-to-end integration tests with a mocked forecast source
# ABOUTME: Validates the full flow from upstream payload to the served calendar feed

import json
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

from waterman.calendar.ics import unfold_lines
from waterman.forecast.models import Site, SiteScoringConfig, datetime_to_ms
from waterman.forecast.source import ForecastSourceClient
from waterman.orchestrator import WatermanOrchestrator
from waterman.scoring.calculator import ScoreCalculator
from waterman.scoring.models import ConditionScore
from waterman.store.memory import DataStore

NOW = datetime(2026, 6, 15, 6, 0, tzinfo=timezone.utc)


def at(hour, day=15):
    return datetime_to_ms(datetime(2026, 6, day, hour, tzinfo=timezone.utc))


def source_payload(speed=20.0, gust=25.0, direction=270):
    """Two days of 08-17 UTC timesteps (09-18 Lisbon summer time)"""
    timestamps = [at(h, day) for day in (15, 16) for h in range(8, 18)]
    n = len(timestamps)
    return {
        "ts": timestamps,
        "timezone": "Europe/Lisbon",
        "wind": {"speed": [speed] * n, "gust": [gust] * n, "direction": [direction] * n},
        "waves": {"height": [1.1] * n, "period": [9.0] * n, "direction": [290] * n},
        "tides": [
            {"time": at(11), "type": "low", "height": 0.7},
            {"time": at(17, day=16), "height": 3.2},
        ],
    }


def mock_source_response(payload, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.text = json.dumps(payload)
    return response


def make_store():
    store = DataStore()
    store.add_site(Site(
        id="caparica",
        name="Costa da Caparica",
        country="Portugal",
        latitude=38.64,
        longitude=-9.24,
        sports=["wingfoil"],
        timezone="Europe/Lisbon",
    ))
    store.set_scoring_config(SiteScoringConfig(
        site_id="caparica", sport="wingfoil", min_speed=15, direction_from=200, direction_to=340,
    ))
    return store


def noon_scorer():
    """Scores the 12:00 UTC slots 92 and everything else 60"""
    scorer = MagicMock()

    def score_slot(slot, site, sport, config=None):
        hour = datetime.fromtimestamp(slot.timestamp / 1000, tz=timezone.utc).hour
        return ConditionScore(
            site_id=site.id,
            sport=sport,
            timestamp=slot.timestamp,
            score=92 if hour == 12 else 60,
            reasoning="Solid westerly, powered up all session.",
            slot_id=slot.slot_id,
        )

    scorer.score_slot.side_effect = score_slot
    return scorer


@pytest.mark.integration
class TestEndToEnd:
    """Upstream payload through ingestion, scoring and feed output"""

    def run(self, payload, slot_scorer=None):
        store = make_store()
        orchestrator = WatermanOrchestrator(
            store,
            ForecastSourceClient(url_template="https://source.test/{site_id}"),
            slot_scorer or noon_scorer(),
        )
        with patch("waterman.forecast.source.requests.get") as mock_get:
            mock_get.return_value = mock_source_response(payload)
            results = orchestrator.run_ingestion(now=NOW)
        return orchestrator, store, results, mock_get

    def test_ingestion_stores_converted_slots(self):
        _, store, results, mock_get = self.run(source_payload())

        assert results[0].success
        assert results[0].slot_count == 20
        assert mock_get.call_args.args[0] == "https://source.test/caparica"

        slots = store.get_forecast_slots("caparica")
        assert len(slots) == 20
        assert slots[0].speed == 38.9
        assert slots[0].gust == 48.6
        assert slots[0].direction == 270

    def test_tides_attached(self):
        _, store, _, _ = self.run(source_payload())

        slot = store.find_slot("caparica", at(12))
        assert slot.tide_type == "low"
        assert slot.tide_time == at(11)

        # derived from height for the tide without a type
        tides = store.get_tides("caparica")
        assert tides[1].type == "high"
        assert tides[1].type_is_derived

    def test_feed_contains_best_sessions(self):
        orchestrator, _, _, _ = self.run(source_payload())

        feed, ics = orchestrator.build_feed("wingfoil", now=NOW)
        lines = unfold_lines(ics)

        assert [e.timestamp for e in feed.events] == [at(12), at(12, day=16)]
        assert "SUMMARY:Costa da Caparica - 39kt E [epic]" in lines
        assert "DTSTART:20260615T120000Z" in lines
        assert "DTEND:20260615T133000Z" in lines
        assert "LOCATION:Costa da Caparica\\, Portugal" in lines
        assert "X-WR-CALNAME:Waterman Wingfoiling" in lines

    def test_feed_response_served(self):
        orchestrator, _, _, _ = self.run(source_payload())

        body, status, headers = orchestrator.feed_response("wingfoil", now=NOW)

        assert status == 200
        assert headers["Content-Disposition"] == "inline; filename=waterman-wingfoil.ics"
        assert body.count("BEGIN:VEVENT") == 2

    def test_heuristic_scoring_flow(self):
        """Real calculator: strong in-range wind at every daylight slot"""
        orchestrator, store, _, _ = self.run(source_payload(speed=11.0, gust=13.0), ScoreCalculator())

        scores = store.get_scores("caparica", "wingfoil", datetime_to_ms(NOW), at(23, day=16))
        assert len(scores) == 20

        feed, _ = orchestrator.build_feed("wingfoil", now=NOW)
        assert len(feed.events) <= 4
        assert all(e.score >= 75 for e in feed.events)

    def test_single_northerly_timestep(self):
        """One 20/25 m/s timestep from 0° with the only tide 4h away: no tide, epic event"""
        payload = {
            "ts": [at(12)],
            "wind": {"speed": [20.0], "gust": [25.0], "direction": [0]},
            "tides": [{"time": at(16), "type": "high", "height": 3.0}],
        }

        orchestrator, store, results, _ = self.run(payload)

        slot = store.find_slot("caparica", at(12))
        assert (slot.speed, slot.gust, slot.direction) == (38.9, 48.6, 0)
        assert slot.tide_type is None
        assert slot.tide_height is None
        assert slot.tide_time is None
        assert results[0].is_complete is False

        _, ics = orchestrator.build_feed("wingfoil", now=NOW)
        lines = unfold_lines(ics)

        assert "SUMMARY:Costa da Caparica - 39kt S [epic]" in lines
        assert "DTSTART:20260615T120000Z" in lines
        assert "DTEND:20260615T133000Z" in lines
        assert not any(line.startswith("DESCRIPTION:") and "Tide" in line for line in lines)

    def test_upstream_error_keeps_previous_batch(self):
        orchestrator, store, _, _ = self.run(source_payload())

        with patch("waterman.forecast.source.requests.get") as mock_get:
            mock_get.return_value = mock_source_response({}, status_code=503)
            results = orchestrator.run_ingestion(now=NOW)

        assert not results[0].success
        assert "503" in results[0].error
        assert len(store.get_forecast_slots("caparica")) == 20

    def test_short_batch_marked_incomplete(self):
        payload = source_payload()
        payload["ts"] = payload["ts"][:5]

        _, store, results, _ = self.run(payload)

        assert results[0].success
        assert results[0].is_complete is False
        assert not store.get_scrapes("caparica")[0].is_successful
